from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kinfer.models import (
    Person,
    Relationship,
    RelationshipSuggestion,
    SuggestionStatus,
    pair_key,
)


# Roles the inference rules walk over. kin(p, role) returns the people who are <role> of p.
ROLE_INVERSE: Dict[str, str] = {
    "parent": "child",
    "child": "parent",
    "sibling": "sibling",
    "spouse": "spouse",
}


class PersonNotFound(LookupError):
    """A relationship references a person row that does not exist."""

    def __init__(self, person_id: int):
        super().__init__(f"person {person_id} not found")
        self.person_id = person_id


@dataclass(frozen=True)
class EdgeRef:
    other_id: int
    direction: str  # "out": person is person1, "in": person is person2
    relationship_id: int


class GraphAccessor:
    """Read-only queries over active relationships. Never writes."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._people: Dict[int, Optional[Person]] = {}

    async def edges_of(self, person_id: int, rel_type: str) -> List[EdgeRef]:
        pid = int(person_id)
        rows = await self.db.execute(
            select(Relationship.id, Relationship.person1_id, Relationship.person2_id)
            .where(
                Relationship.is_active.is_(True),
                Relationship.relationship_type == rel_type,
                or_(Relationship.person1_id == pid, Relationship.person2_id == pid),
            )
            .order_by(Relationship.id)
        )
        out: List[EdgeRef] = []
        for rid, p1, p2 in rows.all():
            if int(p1) == pid:
                out.append(EdgeRef(other_id=int(p2), direction="out", relationship_id=int(rid)))
            else:
                out.append(EdgeRef(other_id=int(p1), direction="in", relationship_id=int(rid)))
        return out

    async def kin(self, person_id: int, role: str) -> List[int]:
        """People who are ``role`` of ``person_id``, folding both storage directions."""
        if role == "parent":
            # parent(X, P) stored as person1=X, or child(P, X) stored as person1=P
            found = [e.other_id for e in await self.edges_of(person_id, "parent") if e.direction == "in"]
            found += [e.other_id for e in await self.edges_of(person_id, "child") if e.direction == "out"]
        elif role == "child":
            found = [e.other_id for e in await self.edges_of(person_id, "parent") if e.direction == "out"]
            found += [e.other_id for e in await self.edges_of(person_id, "child") if e.direction == "in"]
        elif role in ("sibling", "spouse"):
            found = [e.other_id for e in await self.edges_of(person_id, role)]
        else:
            raise ValueError(f"unsupported kinship role: {role!r}")
        return [x for x in dict.fromkeys(found) if x != int(person_id)]

    async def find_edge(self, id_a: int, id_b: int) -> Optional[Relationship]:
        lo, hi = pair_key(id_a, id_b)
        return await self.db.scalar(
            select(Relationship)
            .where(
                Relationship.pair_low == lo,
                Relationship.pair_high == hi,
                Relationship.is_active.is_(True),
            )
            .limit(1)
        )

    async def find_pending_suggestion(self, id_a: int, id_b: int) -> Optional[RelationshipSuggestion]:
        lo, hi = pair_key(id_a, id_b)
        return await self.db.scalar(
            select(RelationshipSuggestion)
            .where(
                RelationshipSuggestion.pair_low == lo,
                RelationshipSuggestion.pair_high == hi,
                RelationshipSuggestion.status == SuggestionStatus.pending.value,
            )
            .limit(1)
        )

    async def person(self, person_id: int) -> Optional[Person]:
        pid = int(person_id)
        if pid not in self._people:
            self._people[pid] = await self.db.get(Person, pid)
        return self._people[pid]

    async def require_person(self, person_id: int) -> Person:
        p = await self.person(person_id)
        if p is None:
            raise PersonNotFound(int(person_id))
        return p
