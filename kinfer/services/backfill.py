from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from kinfer.models import Person, Relationship
from kinfer.services.orchestrator import InferenceOrchestrator
from kinfer.services.rules import TRIGGER_TYPES

logger = logging.getLogger(__name__)


@dataclass
class BackfillResult:
    relationships: int = 0
    created: int = 0
    skipped: int = 0
    failed_rules: List[str] = field(default_factory=list)


async def backfill_suggestions(orchestrator: InferenceOrchestrator, db: AsyncSession, owner_id: int) -> BackfillResult:
    """Replay the owner's existing structural relationships through the orchestrator.

    Suggestions already pending or already related are skipped by the
    materializer, so running this twice creates nothing new.
    """
    p1 = aliased(Person)
    p2 = aliased(Person)
    rows = (
        await db.execute(
            select(Relationship.id, Relationship.relationship_type, Relationship.person1_id, Relationship.person2_id)
            .join(p1, p1.id == Relationship.person1_id)
            .join(p2, p2.id == Relationship.person2_id)
            .where(
                Relationship.is_active.is_(True),
                Relationship.relationship_type.in_(sorted(TRIGGER_TYPES)),
                p1.owner_user_id == owner_id,
                p2.owner_user_id == owner_id,
            )
            .order_by(Relationship.id)
        )
    ).all()

    result = BackfillResult()
    for rid, rtype, a, b in rows:
        report = await orchestrator.on_relationship_established(
            rtype, a, b, owner_id, trigger_relationship_id=rid
        )
        result.relationships += 1
        result.created += report.created
        result.skipped += report.skipped
        result.failed_rules.extend(report.failed_rules)

    logger.info(
        "Backfill for user %s: relationships=%s created=%s skipped=%s",
        owner_id, result.relationships, result.created, result.skipped,
    )
    return result
