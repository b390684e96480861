"""Read-side graph queries."""
from __future__ import annotations

import pytest

from kinfer.models import RelationshipSuggestion, pair_key
from kinfer.services.graph import GraphAccessor, PersonNotFound


@pytest.mark.asyncio
async def test_kin_folds_parent_and_child_storage(family, db) -> None:
    mom = await family.person("Mom")
    dad = await family.person("Dad")
    kid = await family.person("Kid")
    await family.edge(mom, "parent", kid)
    await family.edge(kid, "child", dad)

    g = GraphAccessor(db)
    assert sorted(await g.kin(kid, "parent")) == sorted([mom, dad])
    assert await g.kin(mom, "child") == [kid]
    assert await g.kin(dad, "child") == [kid]


@pytest.mark.asyncio
async def test_symmetric_roles_ignore_direction(family, db) -> None:
    a = await family.person("A")
    b = await family.person("B")
    await family.edge(a, "sibling", b)

    g = GraphAccessor(db)
    assert await g.kin(a, "sibling") == [b]
    assert await g.kin(b, "sibling") == [a]
    assert await g.kin(a, "spouse") == []


@pytest.mark.asyncio
async def test_inactive_edges_are_invisible(family, db) -> None:
    a = await family.person("A")
    b = await family.person("B")
    await family.edge(a, "spouse", b, is_active=False)

    g = GraphAccessor(db)
    assert await g.kin(a, "spouse") == []
    assert await g.find_edge(a, b) is None


@pytest.mark.asyncio
async def test_edges_of_reports_direction(family, db) -> None:
    p = await family.person("P")
    c = await family.person("C")
    rid = await family.edge(p, "parent", c)

    g = GraphAccessor(db)
    [out] = await g.edges_of(p, "parent")
    [inc] = await g.edges_of(c, "parent")
    assert (out.other_id, out.direction, out.relationship_id) == (c, "out", rid)
    assert (inc.other_id, inc.direction) == (p, "in")


@pytest.mark.asyncio
async def test_find_edge_and_pending_suggestion_are_order_independent(family, db) -> None:
    a = await family.person("A")
    b = await family.person("B")
    c = await family.person("C")
    await family.edge(b, "sibling", a)
    lo, hi = pair_key(c, a)
    db.add(
        RelationshipSuggestion(
            person1_id=c, person2_id=a, pair_low=lo, pair_high=hi,
            relationship_type="cousin", tier=3, reason="test",
            suggested_to_user_id=family.owner_id,
        )
    )
    await db.commit()

    g = GraphAccessor(db)
    assert (await g.find_edge(a, b)).id == (await g.find_edge(b, a)).id
    assert await g.find_pending_suggestion(a, c) is not None
    assert await g.find_pending_suggestion(c, a) is not None
    assert await g.find_pending_suggestion(a, b) is None


@pytest.mark.asyncio
async def test_require_person_raises_for_missing_row(db) -> None:
    g = GraphAccessor(db)
    assert await g.person(999) is None
    with pytest.raises(PersonNotFound) as exc:
        await g.require_person(999)
    assert exc.value.person_id == 999


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(db) -> None:
    with pytest.raises(ValueError):
        await GraphAccessor(db).kin(1, "cousin")
