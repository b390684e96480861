"""Label resolution for inferred kinship patterns."""
from __future__ import annotations

import pytest

from kinfer.models import Gender
from kinfer.services.terms import (
    NIECE_NEPHEW,
    UNCLE_AUNT,
    TermResolver,
    gendered_term,
)


@pytest.mark.parametrize(
    "gender, expected",
    [
        (Gender.female, "aunt"),
        (Gender.male, "uncle"),
        (Gender.other, "uncle"),
        (Gender.unknown, "uncle"),
        (None, "uncle"),
        ("F", "aunt"),
        ("nonsense", "uncle"),
    ],
)
def test_uncle_aunt_by_gender(gender, expected: str) -> None:
    assert gendered_term(UNCLE_AUNT, gender).value == expected


def test_niece_nephew_defaults_to_nephew() -> None:
    assert gendered_term(NIECE_NEPHEW, Gender.female).value == "niece"
    assert gendered_term(NIECE_NEPHEW, Gender.unknown).value == "nephew"


def test_every_gender_resolves_for_every_pattern() -> None:
    resolver = TermResolver()
    for pattern, tier in [
        ("uncle_aunt", 2),
        ("niece_nephew", 2),
        ("sibling_in_law", 2),
        ("sibling_spouse", 2),
        ("parent_in_law", 2),
        ("child_in_law", 2),
        ("cousin", 3),
    ]:
        for g in Gender:
            assert resolver.resolve(tier, pattern, g)
            assert resolver.resolve_inverse(tier, pattern, g)


def test_in_law_labels() -> None:
    resolver = TermResolver()
    assert resolver.resolve(2, "parent_in_law", Gender.female) == "mother_in_law"
    assert resolver.resolve_inverse(2, "parent_in_law", Gender.male) == "son_in_law"
    assert resolver.resolve(2, "sibling_in_law", Gender.female) == "sister_in_law"
    assert resolver.resolve(3, "cousin", Gender.female) == "cousin"


def test_unknown_pattern_rejected() -> None:
    with pytest.raises(ValueError):
        TermResolver().resolve(2, "second_cousin", Gender.male)


def test_tier_mismatch_rejected() -> None:
    with pytest.raises(ValueError):
        TermResolver().resolve(2, "cousin", Gender.male)
