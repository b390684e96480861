from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas import ConnectionAccept, ConnectionRequestCreate, ConnectionRequestRead, RelationshipRead
from ..services.dispatch import InferenceQueue, get_inference_queue, notify_relationship_established
from ..services.relationships import (
    ConnectionRequestClosed,
    ConnectionRequestExists,
    ConnectionRequestForbidden,
    ConnectionRequestNotFound,
    InvalidRelationship,
    PersonNotOwned,
    RelationshipExists,
    accept_connection_request,
    list_connection_requests,
    reject_connection_request,
    send_connection_request,
    withdraw_connection_request,
)
from ..utils import require_authenticated_user

router = APIRouter()


def _raise_for(exc: Exception):
    if isinstance(exc, (ConnectionRequestNotFound, PersonNotOwned)):
        raise HTTPException(404, str(exc))
    if isinstance(exc, ConnectionRequestForbidden):
        raise HTTPException(403, str(exc))
    if isinstance(exc, (ConnectionRequestExists, RelationshipExists)):
        raise HTTPException(409, str(exc))
    raise HTTPException(400, str(exc))


_HANDLED = (
    ConnectionRequestNotFound,
    ConnectionRequestForbidden,
    ConnectionRequestClosed,
    ConnectionRequestExists,
    InvalidRelationship,
    PersonNotOwned,
    RelationshipExists,
)


@router.post('/api/connections', status_code=201)
async def api_connection_send(
    payload: ConnectionRequestCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        req = await send_connection_request(
            db,
            requester_user_id=user.id,
            recipient_user_id=payload.recipient_user_id,
            requester_person_id=payload.requester_person_id,
            relationship_type=payload.relationship_type,
            message=payload.message,
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return {'connection_request': ConnectionRequestRead.model_validate(req)}


@router.get('/api/connections/received')
async def api_connections_received(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    rows = await list_connection_requests(db, user.id)
    return {'requests': [ConnectionRequestRead.model_validate(r) for r in rows], 'count': len(rows)}


@router.get('/api/connections/sent')
async def api_connections_sent(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    rows = await list_connection_requests(db, user.id, sent=True)
    return {'requests': [ConnectionRequestRead.model_validate(r) for r in rows], 'count': len(rows)}


@router.post('/api/connections/{request_id}/accept')
async def api_connection_accept(
    request_id: int,
    payload: ConnectionAccept,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    queue: InferenceQueue = Depends(get_inference_queue),
):
    try:
        rel = await accept_connection_request(
            db,
            request_id=request_id,
            user_id=user.id,
            recipient_person_id=payload.recipient_person_id,
            relationship_type=payload.relationship_type,
        )
    except _HANDLED as exc:
        _raise_for(exc)
    notify_relationship_established(
        queue, rel.relationship_type, rel.person1_id, rel.person2_id, user.id, relationship_id=rel.id
    )
    return {'relationship': RelationshipRead.model_validate(rel)}


@router.post('/api/connections/{request_id}/reject')
async def api_connection_reject(request_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    try:
        await reject_connection_request(db, request_id=request_id, user_id=user.id)
    except _HANDLED as exc:
        _raise_for(exc)
    return {'ok': True}


@router.delete('/api/connections/{request_id}')
async def api_connection_withdraw(request_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    try:
        await withdraw_connection_request(db, request_id=request_id, user_id=user.id)
    except _HANDLED as exc:
        _raise_for(exc)
    return {'ok': True}
