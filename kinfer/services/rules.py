"""Tiered kinship rules.

A pattern is a kinship path read from the subject S to the target T, each
step meaning "next is <role> of current". ("sibling", "child") reads "T is a
child of S's sibling", so S is T's uncle or aunt. The tier of a pattern is its
number of hops: tier 2 needs one stored edge next to the trigger, tier 3 two.

A triggering edge "A is k of B" is walked as two oriented steps, B -> A with
role k and A -> B with the inverse role. For every path position matching a
step, the rule walks the prefix backwards from the step's start and the
suffix forwards from its end, using the same ``walk`` primitive for every
pattern. Adding a tier means adding a pattern, not new traversal code.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from kinfer.services.graph import ROLE_INVERSE, GraphAccessor
from kinfer.services.terms import TermResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pattern:
    name: str
    path: Tuple[str, ...]

    @property
    def tier(self) -> int:
        return len(self.path)


PATTERNS: Tuple[Pattern, ...] = (
    # tier 2
    Pattern("uncle_aunt", ("sibling", "child")),
    Pattern("niece_nephew", ("parent", "sibling")),
    Pattern("sibling_in_law", ("spouse", "sibling")),
    Pattern("sibling_spouse", ("sibling", "spouse")),
    Pattern("parent_in_law", ("child", "spouse")),
    Pattern("child_in_law", ("spouse", "parent")),
    # tier 3
    Pattern("cousin", ("parent", "sibling", "child")),
)

# edge types that start an inference pass
TRIGGER_TYPES = frozenset(ROLE_INVERSE)


@dataclass(frozen=True)
class InferenceTrigger:
    """A committed edge: person_a is <edge_type> of person_b."""
    edge_type: str
    person_a: int
    person_b: int
    owner_id: int
    relationship_id: Optional[int] = None

    def steps(self) -> List[Tuple[int, int, str]]:
        """Oriented steps (u, v, role) meaning "v is <role> of u"."""
        k = normalize_edge_type(self.edge_type)
        a, b = int(self.person_a), int(self.person_b)
        return [(b, a, k), (a, b, ROLE_INVERSE[k])]


@dataclass
class Candidate:
    subject_id: int
    target_id: int
    relationship_type: str  # subject is X of target
    inverse_type: str       # target is Y of subject
    tier: int
    pattern: str
    reason: str
    chain: Tuple[int, ...] = field(default_factory=tuple)


def normalize_edge_type(edge_type) -> str:
    value = getattr(edge_type, "value", edge_type)
    return str(value or "").strip().lower()


async def walk(graph: GraphAccessor, start: int, roles: Sequence[str]) -> List[Tuple[int, Tuple[int, ...]]]:
    """Follow ``roles`` from ``start``; returns (end, chain) with chain[0] == start.

    Chains never revisit a person. Fan-out per hop is the node's direct edge count.
    """
    frontier: List[Tuple[int, Tuple[int, ...]]] = [(int(start), (int(start),))]
    for role in roles:
        nxt: List[Tuple[int, Tuple[int, ...]]] = []
        for node, chain in frontier:
            for other in await graph.kin(node, role):
                if other in chain:
                    continue
                nxt.append((other, chain + (other,)))
        frontier = nxt
        if not frontier:
            break
    return frontier


def _first_name(person) -> str:
    return (getattr(person, "given_name", None) or getattr(person, "full_name", None) or f"#{person.id}").strip()


class KinshipRule:
    """Produces candidate suggestions for one pattern."""

    def __init__(self, pattern: Pattern):
        self.pattern = pattern

    @property
    def name(self) -> str:
        return self.pattern.name

    @property
    def tier(self) -> int:
        return self.pattern.tier

    def handles(self, edge_type) -> bool:
        k = normalize_edge_type(edge_type)
        if k not in TRIGGER_TYPES:
            return False
        return k in self.pattern.path or ROLE_INVERSE[k] in self.pattern.path

    async def chains(self, graph: GraphAccessor, trigger: InferenceTrigger) -> List[Tuple[int, ...]]:
        """Every person chain matching the pattern that uses the trigger edge."""
        path = self.pattern.path
        out: List[Tuple[int, ...]] = []
        seen: set[Tuple[int, ...]] = set()
        for i, role in enumerate(path):
            for u, v, step_role in trigger.steps():
                if step_role != role:
                    continue
                back = await walk(graph, u, [ROLE_INVERSE[r] for r in reversed(path[:i])])
                if not back:
                    continue
                fwd = await walk(graph, v, path[i + 1:])
                for _s, s_chain in back:
                    for _t, t_chain in fwd:
                        chain = tuple(reversed(s_chain)) + t_chain
                        if len(set(chain)) != len(chain) or chain in seen:
                            continue
                        seen.add(chain)
                        out.append(chain)
        return out

    def explain(self, people: Sequence) -> str:
        # subject is inverse(path[0]) of chain[1], who is inverse(path[1]) of chain[2], ...
        names = [_first_name(p) for p in people]
        parts = [f"{names[0]} is {ROLE_INVERSE[self.pattern.path[0]]} of {names[1]}"]
        for idx, role in enumerate(self.pattern.path[1:], start=1):
            parts.append(f"who is {ROLE_INVERSE[role]} of {names[idx + 1]}")
        return ", ".join(parts) + "."

    async def apply(
        self, graph: GraphAccessor, trigger: InferenceTrigger, resolver: TermResolver
    ) -> List[Candidate]:
        # both endpoints must exist; a missing one fails the whole rule
        await graph.require_person(trigger.person_a)
        await graph.require_person(trigger.person_b)

        out: List[Candidate] = []
        for chain in await self.chains(graph, trigger):
            people = []
            for pid in chain:
                p = await graph.person(pid)
                if p is None:
                    break
                people.append(p)
            if len(people) != len(chain):
                logger.warning(
                    "kinship rule=%s skipped chain=%s: person %s missing",
                    self.name, chain, chain[len(people)],
                )
                continue
            subject, target = people[0], people[-1]
            out.append(
                Candidate(
                    subject_id=int(subject.id),
                    target_id=int(target.id),
                    relationship_type=resolver.resolve(self.tier, self.name, subject.gender),
                    inverse_type=resolver.resolve_inverse(self.tier, self.name, target.gender),
                    tier=self.tier,
                    pattern=self.name,
                    reason=self.explain(people),
                    chain=chain,
                )
            )
        return out


RULES: Tuple[KinshipRule, ...] = tuple(KinshipRule(p) for p in PATTERNS)


def rules_for(edge_type, max_tier: int = 3, rules: Optional[Iterable[KinshipRule]] = None) -> List[KinshipRule]:
    """Rules that can fire for an edge of ``edge_type``, in registry order."""
    pool = RULES if rules is None else tuple(rules)
    return [r for r in pool if r.tier <= int(max_tier) and r.handles(edge_type)]
