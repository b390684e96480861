"""Accept / dismiss workflow for pending suggestions."""
from __future__ import annotations

import pytest
from sqlalchemy import select

from kinfer.models import Relationship, RelationshipSuggestion, pair_key
from kinfer.services import review
from kinfer.services.relationships import RelationshipExists, create_relationship


async def _suggest(maker, owner: int, a: int, b: int, tier: int = 2, rel_type: str = "aunt") -> int:
    lo, hi = pair_key(a, b)
    async with maker() as s:
        row = RelationshipSuggestion(
            person1_id=a, person2_id=b, pair_low=lo, pair_high=hi,
            relationship_type=rel_type, inverse_type="niece", tier=tier,
            pattern="uncle_aunt" if tier == 2 else "cousin",
            reason="Bea is sibling of Ann, who is parent of Cat.",
            suggested_to_user_id=owner,
        )
        s.add(row)
        await s.commit()
        return row.id


@pytest.mark.asyncio
async def test_accept_creates_linked_relationship(family, session_maker) -> None:
    b = await family.person("Bea")
    c = await family.person("Cat")
    sid = await _suggest(session_maker, family.owner_id, b, c)

    async with session_maker() as db:
        rel = await review.accept(db, sid, family.owner_id)
        s = await review.get_suggestion(db, sid, family.owner_id)

    assert (rel.person1_id, rel.person2_id, rel.relationship_type) == (b, c, "aunt")
    assert rel.confidence == "suggested"
    assert rel.notes.startswith("Auto-suggested (Tier 2): ")
    assert s.status == "accepted"
    assert s.created_relationship_id == rel.id
    assert s.responded_at is not None


@pytest.mark.asyncio
async def test_accepted_suggestion_is_terminal(family, session_maker) -> None:
    b = await family.person("Bea")
    c = await family.person("Cat")
    sid = await _suggest(session_maker, family.owner_id, b, c)

    async with session_maker() as db:
        await review.accept(db, sid, family.owner_id)
        with pytest.raises(review.SuggestionNotPending):
            await review.accept(db, sid, family.owner_id)
        with pytest.raises(review.SuggestionNotPending):
            await review.dismiss(db, sid, family.owner_id)
        rels = (await db.execute(select(Relationship))).scalars().all()
    assert len(rels) == 1


@pytest.mark.asyncio
async def test_dismiss_has_no_side_effect(family, session_maker) -> None:
    b = await family.person("Bea")
    c = await family.person("Cat")
    sid = await _suggest(session_maker, family.owner_id, b, c)

    async with session_maker() as db:
        s = await review.dismiss(db, sid, family.owner_id)
        rels = (await db.execute(select(Relationship))).scalars().all()
    assert s.status == "dismissed"
    assert rels == []


@pytest.mark.asyncio
async def test_other_users_cannot_see_or_act(family, session_maker) -> None:
    b = await family.person("Bea")
    c = await family.person("Cat")
    sid = await _suggest(session_maker, family.owner_id, b, c)
    stranger = await family.user("stranger@example.com")

    async with session_maker() as db:
        with pytest.raises(review.SuggestionNotFound):
            await review.get_suggestion(db, sid, stranger)
        with pytest.raises(review.SuggestionNotFound):
            await review.accept(db, sid, stranger)
        assert await review.list_pending(db, stranger) == []


@pytest.mark.asyncio
async def test_accept_refuses_when_pair_got_related_meanwhile(family, session_maker) -> None:
    b = await family.person("Bea")
    c = await family.person("Cat")
    sid = await _suggest(session_maker, family.owner_id, b, c)
    await family.edge(c, "child", b)

    async with session_maker() as db:
        with pytest.raises(RelationshipExists):
            await review.accept(db, sid, family.owner_id)
        s = await review.get_suggestion(db, sid, family.owner_id)
        assert s.status == "pending"


@pytest.mark.asyncio
async def test_creating_the_relationship_closes_its_pending_suggestion(family, session_maker) -> None:
    b = await family.person("Bea")
    c = await family.person("Cat")
    d = await family.person("Dan")
    sid = await _suggest(session_maker, family.owner_id, b, c)
    other = await _suggest(session_maker, family.owner_id, b, d)

    async with session_maker() as db:
        await create_relationship(db, user_id=family.owner_id, person1_id=c, person2_id=b, relationship_type="child")
        closed = await review.get_suggestion(db, sid, family.owner_id)
        await db.refresh(closed)
        untouched = await review.get_suggestion(db, other, family.owner_id)
        pending = await review.list_pending(db, family.owner_id)

    assert closed.status == "dismissed"
    assert closed.responded_at is not None
    assert untouched.status == "pending"
    assert [s.id for s in pending] == [other]


@pytest.mark.asyncio
async def test_bulk_operations_report_per_item(family, session_maker) -> None:
    people = [await family.person(n) for n in ("A", "B", "C", "D")]
    s1 = await _suggest(session_maker, family.owner_id, people[0], people[1])
    s2 = await _suggest(session_maker, family.owner_id, people[2], people[3], tier=3, rel_type="cousin")

    async with session_maker() as db:
        accepted = await review.bulk_accept(db, [s1, 999], family.owner_id)
        dismissed = await review.bulk_dismiss(db, [s2, s1], family.owner_id)

    assert [x["suggestion_id"] for x in accepted["accepted"]] == [s1]
    assert [x["suggestion_id"] for x in accepted["failed"]] == [999]
    assert dismissed["dismissed"] == [s2]
    assert [x["suggestion_id"] for x in dismissed["failed"]] == [s1]


@pytest.mark.asyncio
async def test_listing_and_stats_by_tier(family, session_maker) -> None:
    people = [await family.person(n) for n in ("A", "B", "C", "D", "E", "F")]
    await _suggest(session_maker, family.owner_id, people[0], people[1])
    s2 = await _suggest(session_maker, family.owner_id, people[2], people[3])
    await _suggest(session_maker, family.owner_id, people[4], people[5], tier=3, rel_type="cousin")

    async with session_maker() as db:
        await review.dismiss(db, s2, family.owner_id)
        grouped = await review.list_by_tier(db, family.owner_id)
        tier3_only = await review.list_pending(db, family.owner_id, tier=3)
        stats = await review.tier_stats(db, family.owner_id)

    assert grouped["tier2"]["count"] == 1
    assert grouped["tier3"]["count"] == 1
    assert grouped["totalCount"] == 2
    assert [s.tier for s in tier3_only] == [3]
    assert stats == {
        "tier2": {"pending": 1, "accepted": 0, "dismissed": 1},
        "tier3": {"pending": 1, "accepted": 0, "dismissed": 0},
    }
