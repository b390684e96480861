"""Shared fixtures: a throwaway SQLite database per test and a small family builder."""
from __future__ import annotations

from typing import Any

import pytest_asyncio

from kinfer.database import Base, make_session_maker
from kinfer.models import Gender, Person, Relationship, User, pair_key


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine, maker = make_session_maker(f"sqlite+aiosqlite:///{tmp_path}/kinfer.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


class FamilyBuilder:
    """Creates users, people and committed edges with readable one-liners."""

    def __init__(self, maker):
        self.maker = maker
        self.owner_id: int | None = None

    async def user(self, email: str = "owner@example.com") -> int:
        async with self.maker() as s:
            u = User(email=email, username=email.split("@")[0], is_active=True)
            s.add(u)
            await s.commit()
            if self.owner_id is None:
                self.owner_id = u.id
            return u.id

    async def person(self, given_name: str, gender: Gender = Gender.unknown, owner_id: int | None = None) -> int:
        owner = owner_id or self.owner_id or await self.user()
        async with self.maker() as s:
            p = Person(owner_user_id=owner, given_name=given_name, gender=gender)
            s.add(p)
            await s.commit()
            return p.id

    async def edge(self, person1_id: int, rel_type: str, person2_id: int, **extra: Any) -> int:
        """person1 is <rel_type> of person2."""
        lo, hi = pair_key(person1_id, person2_id)
        async with self.maker() as s:
            r = Relationship(
                person1_id=person1_id,
                person2_id=person2_id,
                pair_low=lo,
                pair_high=hi,
                relationship_type=rel_type,
                **{"is_active": True, **extra},
            )
            s.add(r)
            await s.commit()
            return r.id


@pytest_asyncio.fixture
async def family(session_maker) -> FamilyBuilder:
    fb = FamilyBuilder(session_maker)
    await fb.user()
    return fb
