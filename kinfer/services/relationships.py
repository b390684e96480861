"""Committed relationship writes: direct creation and connection requests.

Both paths commit their row first and leave inference to the caller, which
hands the new edge to ``dispatch.notify_relationship_established``.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kinfer.models import (
    ConnectionRequest,
    ConnectionStatus,
    Person,
    Relationship,
    RelationshipSuggestion,
    RelationshipType,
    SuggestionStatus,
    User,
    pair_key,
)
from kinfer.settings.config import settings

logger = logging.getLogger(__name__)


class InvalidRelationship(ValueError):
    pass


class PersonNotOwned(LookupError):
    def __init__(self, person_id: int):
        super().__init__(f"person {person_id} not found")
        self.person_id = person_id


class RelationshipExists(ValueError):
    def __init__(self, person_a: int, person_b: int):
        super().__init__(f"an active relationship already links {person_a} and {person_b}")
        self.pair = pair_key(person_a, person_b)


class ConnectionRequestNotFound(LookupError):
    pass


class ConnectionRequestForbidden(PermissionError):
    pass


class ConnectionRequestClosed(ValueError):
    pass


class ConnectionRequestExists(ValueError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def relationship_type_value(value) -> str:
    raw = str(getattr(value, "value", value) or "").strip().lower()
    try:
        return RelationshipType(raw).value
    except ValueError:
        raise InvalidRelationship(f"unknown relationship type: {raw!r}") from None


async def _owned_person(db: AsyncSession, person_id: int, user_id: int) -> Person:
    p = await db.get(Person, person_id)
    if not p or p.owner_user_id != user_id:
        raise PersonNotOwned(person_id)
    return p


async def _close_pending_suggestions(db: AsyncSession, lo: int, hi: int) -> None:
    # the pair is related now, so a pending suggestion on it could never be accepted
    res = await db.execute(
        update(RelationshipSuggestion)
        .where(
            RelationshipSuggestion.pair_low == lo,
            RelationshipSuggestion.pair_high == hi,
            RelationshipSuggestion.status == SuggestionStatus.pending.value,
        )
        .values(status=SuggestionStatus.dismissed.value, responded_at=_now())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount:
        logger.info("Dismissed %s pending suggestion(s) on pair=%s: relationship created", res.rowcount, (lo, hi))


async def _insert_relationship(
    db: AsyncSession,
    *,
    person1_id: int,
    person2_id: int,
    relationship_type: str,
    added_by_user_id: int,
    notes: Optional[str] = None,
    confidence: str = "high",
) -> Relationship:
    if int(person1_id) == int(person2_id):
        raise InvalidRelationship("a person cannot be related to themselves")
    lo, hi = pair_key(person1_id, person2_id)
    existing = await db.scalar(
        select(Relationship.id).where(
            Relationship.pair_low == lo,
            Relationship.pair_high == hi,
            Relationship.is_active.is_(True),
        )
    )
    if existing is not None:
        raise RelationshipExists(person1_id, person2_id)
    rel = Relationship(
        person1_id=int(person1_id),
        person2_id=int(person2_id),
        pair_low=lo,
        pair_high=hi,
        relationship_type=relationship_type,
        added_by_user_id=added_by_user_id,
        notes=notes,
        confidence=confidence,
    )
    db.add(rel)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise RelationshipExists(person1_id, person2_id) from None
    await _close_pending_suggestions(db, lo, hi)
    return rel


async def create_relationship(
    db: AsyncSession,
    *,
    user_id: int,
    person1_id: int,
    person2_id: int,
    relationship_type,
    notes: Optional[str] = None,
    confidence: str = "high",
) -> Relationship:
    """person1 is <relationship_type> of person2; both must belong to ``user_id``."""
    rtype = relationship_type_value(relationship_type)
    await _owned_person(db, person1_id, user_id)
    await _owned_person(db, person2_id, user_id)
    rel = await _insert_relationship(
        db,
        person1_id=person1_id,
        person2_id=person2_id,
        relationship_type=rtype,
        added_by_user_id=user_id,
        notes=notes,
        confidence=confidence,
    )
    await db.commit()
    await db.refresh(rel)
    logger.info("Relationship %s created: %s is %s of %s", rel.id, person1_id, rtype, person2_id)
    return rel


async def send_connection_request(
    db: AsyncSession,
    *,
    requester_user_id: int,
    recipient_user_id: int,
    requester_person_id: int,
    relationship_type,
    message: Optional[str] = None,
) -> ConnectionRequest:
    if int(requester_user_id) == int(recipient_user_id):
        raise InvalidRelationship("cannot send a connection request to yourself")
    rtype = relationship_type_value(relationship_type)
    recipient = await db.get(User, recipient_user_id)
    if not recipient or not recipient.is_active:
        raise ConnectionRequestNotFound(f"user {recipient_user_id} not found")
    await _owned_person(db, requester_person_id, requester_user_id)

    existing = await db.scalar(
        select(ConnectionRequest.id).where(
            or_(
                (ConnectionRequest.requester_user_id == requester_user_id)
                & (ConnectionRequest.recipient_user_id == recipient_user_id),
                (ConnectionRequest.requester_user_id == recipient_user_id)
                & (ConnectionRequest.recipient_user_id == requester_user_id),
            ),
            ConnectionRequest.status.in_([ConnectionStatus.pending.value, ConnectionStatus.accepted.value]),
        )
    )
    if existing is not None:
        raise ConnectionRequestExists("a connection request already exists between these users")

    req = ConnectionRequest(
        requester_user_id=requester_user_id,
        recipient_user_id=recipient_user_id,
        requester_person_id=requester_person_id,
        relationship_type=rtype,
        message=message,
        status=ConnectionStatus.pending.value,
        expires_at=_now() + timedelta(days=settings.CONNECTION_REQUEST_TTL_DAYS),
    )
    db.add(req)
    await db.commit()
    await db.refresh(req)
    logger.info("Connection request %s sent from user %s to user %s", req.id, requester_user_id, recipient_user_id)
    return req


async def _open_request(db: AsyncSession, request_id: int, user_id: int, *, as_requester: bool = False) -> ConnectionRequest:
    req = await db.get(ConnectionRequest, request_id)
    if not req:
        raise ConnectionRequestNotFound(f"connection request {request_id} not found")
    owner = req.requester_user_id if as_requester else req.recipient_user_id
    if owner != user_id:
        raise ConnectionRequestForbidden("not allowed to act on this connection request")
    if req.status != ConnectionStatus.pending.value:
        raise ConnectionRequestClosed("request has already been processed")
    return req


async def accept_connection_request(
    db: AsyncSession,
    *,
    request_id: int,
    user_id: int,
    recipient_person_id: int,
    relationship_type=None,
) -> Relationship:
    """Link the requester's person to one of the recipient's people.

    ``relationship_type`` lets the recipient correct the proposed type.
    """
    req = await _open_request(db, request_id, user_id)
    expires = _aware(req.expires_at)
    if expires is not None and expires < _now():
        raise ConnectionRequestClosed("connection request has expired")
    await _owned_person(db, recipient_person_id, user_id)
    rtype = relationship_type_value(relationship_type or req.relationship_type)

    rel = await _insert_relationship(
        db,
        person1_id=req.requester_person_id,
        person2_id=recipient_person_id,
        relationship_type=rtype,
        added_by_user_id=user_id,
        notes=req.message,
    )
    req.recipient_person_id = recipient_person_id
    req.relationship_type = rtype
    req.status = ConnectionStatus.accepted.value
    req.created_relationship_id = rel.id
    req.processed_at = _now()
    await db.commit()
    await db.refresh(rel)
    logger.info("Connection request %s accepted -> relationship %s", request_id, rel.id)
    return rel


async def reject_connection_request(db: AsyncSession, *, request_id: int, user_id: int) -> ConnectionRequest:
    req = await _open_request(db, request_id, user_id)
    req.status = ConnectionStatus.rejected.value
    req.processed_at = _now()
    await db.commit()
    return req


async def withdraw_connection_request(db: AsyncSession, *, request_id: int, user_id: int) -> ConnectionRequest:
    req = await _open_request(db, request_id, user_id, as_requester=True)
    req.status = ConnectionStatus.withdrawn.value
    req.processed_at = _now()
    await db.commit()
    return req


async def list_connection_requests(db: AsyncSession, user_id: int, *, sent: bool = False) -> List[ConnectionRequest]:
    col = ConnectionRequest.requester_user_id if sent else ConnectionRequest.recipient_user_id
    rows = await db.execute(
        select(ConnectionRequest)
        .where(col == user_id, ConnectionRequest.status == ConnectionStatus.pending.value)
        .order_by(ConnectionRequest.created_at.desc(), ConnectionRequest.id.desc())
    )
    return list(rows.scalars().all())
