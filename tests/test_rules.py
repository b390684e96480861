"""Pattern matching for tier 2 and tier 3 rules."""
from __future__ import annotations

import pytest

from kinfer.models import Gender
from kinfer.services.graph import GraphAccessor, PersonNotFound
from kinfer.services.rules import RULES, InferenceTrigger, KinshipRule, PATTERNS, rules_for, walk
from kinfer.services.terms import TermResolver


def _rule(name: str) -> KinshipRule:
    return next(r for r in RULES if r.name == name)


async def _all_candidates(db, trigger: InferenceTrigger, max_tier: int = 3):
    g = GraphAccessor(db)
    out = []
    for rule in rules_for(trigger.edge_type, max_tier):
        out.extend(await rule.apply(g, trigger, TermResolver()))
    return out


def test_pattern_tier_is_hop_count() -> None:
    tiers = {p.name: p.tier for p in PATTERNS}
    assert tiers["uncle_aunt"] == 2
    assert tiers["child_in_law"] == 2
    assert tiers["cousin"] == 3


def test_rules_for_respects_max_tier_and_edge_type() -> None:
    names = {r.name for r in rules_for("sibling", max_tier=2)}
    assert "cousin" not in names
    assert {"uncle_aunt", "niece_nephew"} <= names
    assert "cousin" in {r.name for r in rules_for("sibling", max_tier=3)}
    assert rules_for("ex_spouse") == []
    assert rules_for("grandparent") == []


def test_trigger_steps_cover_both_orientations() -> None:
    t = InferenceTrigger("parent", 1, 2, owner_id=9)
    assert t.steps() == [(2, 1, "parent"), (1, 2, "child")]


@pytest.mark.asyncio
async def test_walk_never_revisits(family, db) -> None:
    a = await family.person("A")
    b = await family.person("B")
    await family.edge(a, "sibling", b)
    ends = await walk(GraphAccessor(db), a, ["sibling", "sibling"])
    assert ends == []


@pytest.mark.asyncio
async def test_sibling_edge_makes_aunt_of_siblings_child(family, db) -> None:
    a = await family.person("Ann", Gender.female)
    b = await family.person("Bea", Gender.female)
    c = await family.person("Cal", Gender.male)
    await family.edge(a, "parent", c)
    await family.edge(a, "sibling", b)

    [cand] = await _rule("uncle_aunt").apply(
        GraphAccessor(db), InferenceTrigger("sibling", a, b, family.owner_id), TermResolver()
    )
    assert (cand.subject_id, cand.target_id) == (b, c)
    assert cand.relationship_type == "aunt"
    assert cand.inverse_type == "nephew"
    assert cand.tier == 2
    assert cand.chain == (b, a, c)
    assert cand.reason == "Bea is sibling of Ann, who is parent of Cal."


@pytest.mark.asyncio
async def test_child_edge_matches_parent_edge(family, db) -> None:
    p = await family.person("Pat")
    s = await family.person("Sam", Gender.male)
    c = await family.person("Cy", Gender.female)
    await family.edge(p, "sibling", s)
    await family.edge(p, "parent", c)

    as_parent = await _all_candidates(db, InferenceTrigger("parent", p, c, family.owner_id))
    as_child = await _all_candidates(db, InferenceTrigger("child", c, p, family.owner_id))

    def key(cands):
        return sorted((x.subject_id, x.target_id, x.relationship_type, x.pattern) for x in cands)

    assert key(as_parent) == key(as_child)
    assert (s, c, "uncle", "uncle_aunt") in key(as_parent)
    assert (c, s, "niece", "niece_nephew") in key(as_parent)


@pytest.mark.asyncio
async def test_spouse_edge_yields_in_laws(family, db) -> None:
    h = await family.person("Hal", Gender.male)
    w = await family.person("Wen", Gender.female)
    wm = await family.person("Wilma", Gender.female)
    wb = await family.person("Walt", Gender.male)
    await family.edge(wm, "parent", w)
    await family.edge(wb, "sibling", w)
    await family.edge(h, "spouse", w)

    cands = await _all_candidates(db, InferenceTrigger("spouse", h, w, family.owner_id), max_tier=2)
    pairs = {(c.subject_id, c.target_id): c.relationship_type for c in cands}
    assert pairs[(wm, h)] == "mother_in_law"
    assert pairs[(h, wm)] == "son_in_law"
    assert pairs[(h, wb)] == "brother_in_law"
    assert pairs[(wb, h)] == "brother_in_law"


@pytest.mark.asyncio
async def test_cousins_are_one_hop_past_uncle(family, db) -> None:
    p1 = await family.person("P1")
    p2 = await family.person("P2")
    x = await family.person("X")
    y = await family.person("Y")
    await family.edge(p1, "parent", x)
    await family.edge(p2, "parent", y)
    await family.edge(p1, "sibling", p2)

    cands = await _rule("cousin").apply(
        GraphAccessor(db), InferenceTrigger("sibling", p1, p2, family.owner_id), TermResolver()
    )
    assert {frozenset((c.subject_id, c.target_id)) for c in cands} == {frozenset((x, y))}
    assert all(c.tier == 3 and c.relationship_type == "cousin" for c in cands)


@pytest.mark.asyncio
async def test_missing_endpoint_fails_the_rule(family, db) -> None:
    a = await family.person("A")
    with pytest.raises(PersonNotFound):
        await _rule("uncle_aunt").apply(
            GraphAccessor(db), InferenceTrigger("sibling", a, 4242, family.owner_id), TermResolver()
        )


@pytest.mark.asyncio
async def test_no_neighbours_no_candidates(family, db) -> None:
    a = await family.person("A")
    b = await family.person("B")
    await family.edge(a, "sibling", b)
    assert await _all_candidates(db, InferenceTrigger("sibling", a, b, family.owner_id)) == []
