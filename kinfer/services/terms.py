"""Relationship labels for inferred kinship patterns.

Labels are the stored ``RelationshipType`` values. Gendered families are
resolved by the gender of the person the label describes (the subject).
``other``/``unknown`` genders fall back to the first (masculine) form, e.g.
"uncle" and "nephew"; that convention matches how suggestions were labelled
before gender was tracked and is pinned by tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from kinfer.models import Gender, RelationshipType


@dataclass(frozen=True)
class TermFamily:
    name: str
    male: RelationshipType
    female: RelationshipType

    @property
    def default(self) -> RelationshipType:
        return self.male


UNCLE_AUNT = TermFamily("uncle/aunt", RelationshipType.uncle, RelationshipType.aunt)
NIECE_NEPHEW = TermFamily("niece/nephew", RelationshipType.nephew, RelationshipType.niece)
SIBLING_IN_LAW = TermFamily("sibling-in-law", RelationshipType.brother_in_law, RelationshipType.sister_in_law)
PARENT_IN_LAW = TermFamily("parent-in-law", RelationshipType.father_in_law, RelationshipType.mother_in_law)
CHILD_IN_LAW = TermFamily("child-in-law", RelationshipType.son_in_law, RelationshipType.daughter_in_law)
COUSIN = TermFamily("cousin", RelationshipType.cousin, RelationshipType.cousin)


def _as_gender(value) -> Optional[Gender]:
    if isinstance(value, Gender):
        return value
    g = (str(value or "")).strip().lower()
    if g in {"male", "m", "man", "boy"}:
        return Gender.male
    if g in {"female", "f", "woman", "girl"}:
        return Gender.female
    if g == "other":
        return Gender.other
    return None


def gendered_term(family: TermFamily, gender) -> RelationshipType:
    """Pick the form of ``family`` for ``gender``.

    Every value of ``Gender`` is handled; anything that is not male or female
    (other, unknown, None, garbage strings) gets ``family.default``.
    """
    g = _as_gender(gender)
    if g is Gender.male:
        return family.male
    if g is Gender.female:
        return family.female
    if g is Gender.other or g is Gender.unknown or g is None:
        return family.default
    raise AssertionError(f"unhandled gender {g!r}")


# pattern name -> (tier, subject family, inverse family)
PATTERN_TERMS: Dict[str, Tuple[int, TermFamily, TermFamily]] = {
    "uncle_aunt": (2, UNCLE_AUNT, NIECE_NEPHEW),
    "niece_nephew": (2, NIECE_NEPHEW, UNCLE_AUNT),
    "sibling_in_law": (2, SIBLING_IN_LAW, SIBLING_IN_LAW),
    "sibling_spouse": (2, SIBLING_IN_LAW, SIBLING_IN_LAW),
    "parent_in_law": (2, PARENT_IN_LAW, CHILD_IN_LAW),
    "child_in_law": (2, CHILD_IN_LAW, PARENT_IN_LAW),
    "cousin": (3, COUSIN, COUSIN),
}


class TermResolver:
    """Maps (tier, pattern, gender) to a relationship label."""

    def __init__(self, patterns: Optional[Dict[str, Tuple[int, TermFamily, TermFamily]]] = None):
        self._patterns = dict(patterns or PATTERN_TERMS)

    def _lookup(self, tier: int, pattern: str) -> Tuple[int, TermFamily, TermFamily]:
        try:
            entry = self._patterns[pattern]
        except KeyError:
            raise ValueError(f"unknown kinship pattern: {pattern!r}") from None
        if int(tier) != entry[0]:
            raise ValueError(f"pattern {pattern!r} is tier {entry[0]}, not {tier}")
        return entry

    def resolve(self, tier: int, pattern: str, gender) -> str:
        """Label describing the subject of ``pattern``, chosen by the subject's gender."""
        _tier, family, _inverse = self._lookup(tier, pattern)
        return gendered_term(family, gender).value

    def resolve_inverse(self, tier: int, pattern: str, gender) -> str:
        """Label describing the target, chosen by the target's gender."""
        _tier, _family, inverse = self._lookup(tier, pattern)
        return gendered_term(inverse, gender).value
