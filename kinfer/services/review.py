from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kinfer.models import Relationship, RelationshipSuggestion, SuggestionStatus, pair_key
from kinfer.services.relationships import RelationshipExists

logger = logging.getLogger(__name__)


class SuggestionNotFound(LookupError):
    def __init__(self, suggestion_id: int):
        super().__init__(f"suggestion {suggestion_id} not found")
        self.suggestion_id = suggestion_id


class SuggestionNotPending(ValueError):
    def __init__(self, suggestion_id: int, status: str):
        super().__init__(f"suggestion {suggestion_id} already {status}")
        self.suggestion_id = suggestion_id
        self.status = status


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def list_pending(db: AsyncSession, owner_id: int, *, tier: Optional[int] = None) -> List[RelationshipSuggestion]:
    q = select(RelationshipSuggestion).where(
        RelationshipSuggestion.suggested_to_user_id == owner_id,
        RelationshipSuggestion.status == SuggestionStatus.pending.value,
    )
    if tier is not None:
        q = q.where(RelationshipSuggestion.tier == int(tier))
    q = q.order_by(RelationshipSuggestion.created_at.desc(), RelationshipSuggestion.id.desc())
    return list((await db.execute(q)).scalars().all())


async def list_by_tier(db: AsyncSession, owner_id: int) -> Dict[str, object]:
    rows = await list_pending(db, owner_id)
    tier2 = [s for s in rows if s.tier == 2]
    tier3 = [s for s in rows if s.tier == 3]
    return {
        "tier2": {"suggestions": tier2, "count": len(tier2)},
        "tier3": {"suggestions": tier3, "count": len(tier3)},
        "totalCount": len(tier2) + len(tier3),
    }


async def get_suggestion(db: AsyncSession, suggestion_id: int, owner_id: int) -> RelationshipSuggestion:
    s = await db.scalar(
        select(RelationshipSuggestion).where(
            RelationshipSuggestion.id == suggestion_id,
            RelationshipSuggestion.suggested_to_user_id == owner_id,
        )
    )
    if s is None:
        raise SuggestionNotFound(suggestion_id)
    return s


async def _claim(db: AsyncSession, suggestion_id: int, owner_id: int, status: SuggestionStatus) -> None:
    """Move a pending suggestion to ``status``; only one caller can win."""
    res = await db.execute(
        update(RelationshipSuggestion)
        .where(
            RelationshipSuggestion.id == suggestion_id,
            RelationshipSuggestion.suggested_to_user_id == owner_id,
            RelationshipSuggestion.status == SuggestionStatus.pending.value,
        )
        .values(status=status.value, responded_at=_now())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 1:
        return
    await db.rollback()
    current = await get_suggestion(db, suggestion_id, owner_id)
    raise SuggestionNotPending(suggestion_id, current.status)


async def accept(db: AsyncSession, suggestion_id: int, owner_id: int) -> Relationship:
    """Create the proposed relationship and mark the suggestion accepted, atomically."""
    await _claim(db, suggestion_id, owner_id, SuggestionStatus.accepted)
    s = await get_suggestion(db, suggestion_id, owner_id)
    p1, p2 = s.person1_id, s.person2_id
    lo, hi = pair_key(p1, p2)
    rel = Relationship(
        person1_id=p1,
        person2_id=p2,
        pair_low=lo,
        pair_high=hi,
        relationship_type=s.relationship_type,
        confidence="suggested",
        added_by_user_id=owner_id,
        notes=f"Auto-suggested (Tier {s.tier}): {s.reason}",
    )
    db.add(rel)
    try:
        await db.flush()
        s.created_relationship_id = rel.id
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise RelationshipExists(p1, p2) from None
    await db.refresh(s)
    await db.refresh(rel)
    logger.info("Suggestion %s accepted by user %s -> relationship %s", suggestion_id, owner_id, rel.id)
    return rel


async def dismiss(db: AsyncSession, suggestion_id: int, owner_id: int) -> RelationshipSuggestion:
    await _claim(db, suggestion_id, owner_id, SuggestionStatus.dismissed)
    await db.commit()
    s = await get_suggestion(db, suggestion_id, owner_id)
    await db.refresh(s)
    logger.info("Suggestion %s dismissed by user %s", suggestion_id, owner_id)
    return s


async def bulk_accept(db: AsyncSession, suggestion_ids: Iterable[int], owner_id: int) -> Dict[str, list]:
    results: Dict[str, list] = {"accepted": [], "failed": []}
    for sid in suggestion_ids:
        try:
            rel = await accept(db, sid, owner_id)
        except (SuggestionNotFound, SuggestionNotPending):
            results["failed"].append({"suggestion_id": sid, "reason": "Not found or already processed"})
        except RelationshipExists as exc:
            results["failed"].append({"suggestion_id": sid, "reason": str(exc)})
        else:
            results["accepted"].append({"suggestion_id": sid, "relationship_id": rel.id})
    return results


async def bulk_dismiss(db: AsyncSession, suggestion_ids: Iterable[int], owner_id: int) -> Dict[str, list]:
    results: Dict[str, list] = {"dismissed": [], "failed": []}
    for sid in suggestion_ids:
        try:
            await dismiss(db, sid, owner_id)
        except (SuggestionNotFound, SuggestionNotPending):
            results["failed"].append({"suggestion_id": sid, "reason": "Not found or already processed"})
        else:
            results["dismissed"].append(sid)
    return results


async def tier_stats(db: AsyncSession, owner_id: int) -> Dict[str, Dict[str, int]]:
    rows = (
        await db.execute(
            select(RelationshipSuggestion.tier, RelationshipSuggestion.status, func.count(RelationshipSuggestion.id))
            .where(RelationshipSuggestion.suggested_to_user_id == owner_id)
            .group_by(RelationshipSuggestion.tier, RelationshipSuggestion.status)
        )
    ).all()
    out = {f"tier{t}": {st.value: 0 for st in SuggestionStatus} for t in (2, 3)}
    for tier, status, n in rows:
        bucket = out.get(f"tier{tier}")
        if bucket is not None and status in bucket:
            bucket[status] = int(n)
    return out
