from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Tuple

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kinfer.models import RelationshipSuggestion, SuggestionStatus, pair_key
from kinfer.services.graph import GraphAccessor

logger = logging.getLogger(__name__)


class ProposeOutcome(str, enum.Enum):
    created = "created"
    skipped = "skipped"


class PairLocks:
    """One asyncio.Lock per unordered person pair, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[Tuple[int, int], asyncio.Lock] = {}
        self._users: Dict[Tuple[int, int], int] = {}

    @asynccontextmanager
    async def hold(self, key: Tuple[int, int]) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class SuggestionMaterializer:
    """Deduplicating, idempotent writer of pending suggestions.

    Check-then-insert runs under a per-pair lock inside this process; across
    processes the partial unique index on (pair_low, pair_high) WHERE pending
    turns the insert into an atomic insert-if-absent.
    """

    def __init__(self, locks: Optional[PairLocks] = None):
        self.locks = locks or PairLocks()

    async def propose(
        self,
        db: AsyncSession,
        *,
        person_a: int,
        person_b: int,
        relationship_type: str,
        tier: int,
        justification: str,
        owner_id: int,
        inverse_type: Optional[str] = None,
        pattern: Optional[str] = None,
        trigger_relationship_id: Optional[int] = None,
    ) -> ProposeOutcome:
        a, b = int(person_a), int(person_b)
        if a == b:
            return ProposeOutcome.skipped
        key = pair_key(a, b)
        graph = GraphAccessor(db)

        async with self.locks.hold(key):
            if await graph.find_edge(a, b) is not None:
                logger.debug("suggestion skipped pair=%s: active relationship exists", key)
                return ProposeOutcome.skipped
            if await graph.find_pending_suggestion(a, b) is not None:
                logger.debug("suggestion skipped pair=%s: pending suggestion exists", key)
                return ProposeOutcome.skipped

            values = dict(
                person1_id=a,
                person2_id=b,
                pair_low=key[0],
                pair_high=key[1],
                relationship_type=str(relationship_type),
                inverse_type=inverse_type,
                tier=int(tier),
                pattern=pattern,
                reason=justification,
                trigger_relationship_id=trigger_relationship_id,
                suggested_to_user_id=int(owner_id),
                status=SuggestionStatus.pending.value,
            )
            try:
                new_id = await self._insert_if_absent(db, values)
                await db.commit()
            except SQLAlchemyError:
                await db.rollback()
                raise

        if new_id is None:
            logger.debug("suggestion skipped pair=%s: lost insert race", key)
            return ProposeOutcome.skipped
        logger.info(
            "Created tier %s suggestion id=%s owner=%s: %s is %s of %s",
            tier, new_id, owner_id, a, relationship_type, b,
        )
        return ProposeOutcome.created

    async def _insert_if_absent(self, db: AsyncSession, values: dict) -> Optional[int]:
        """INSERT ... ON CONFLICT DO NOTHING RETURNING id; None when the pair already has a pending row."""
        dialect = db.get_bind().dialect.name
        table = RelationshipSuggestion.__table__
        if dialect == "postgresql":
            stmt = pg_insert(table).values(**values).on_conflict_do_nothing()
        elif dialect == "sqlite":
            stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing()
        else:
            return await self._plain_insert(db, values)
        res = await db.execute(stmt.returning(table.c.id))
        return res.scalar_one_or_none()

    async def _plain_insert(self, db: AsyncSession, values: dict) -> Optional[int]:
        """Insert and let the pending-pair unique index reject a duplicate.

        A conflict rolls back the caller's transaction, which only holds this insert.
        """
        table = RelationshipSuggestion.__table__
        try:
            res = await db.execute(insert(table).values(**values))
        except IntegrityError:
            await db.rollback()
            return None
        return res.inserted_primary_key[0]
