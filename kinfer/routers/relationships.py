from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas import RelationshipCreate, RelationshipRead
from ..services.backfill import backfill_suggestions
from ..services.dispatch import InferenceQueue, get_inference_queue, notify_relationship_established
from ..services.relationships import (
    InvalidRelationship,
    PersonNotOwned,
    RelationshipExists,
    create_relationship,
)
from ..utils import require_authenticated_user

router = APIRouter()


@router.post('/api/relationships', status_code=201)
async def api_relationship_create(
    payload: RelationshipCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    queue: InferenceQueue = Depends(get_inference_queue),
):
    try:
        rel = await create_relationship(
            db,
            user_id=user.id,
            person1_id=payload.person1_id,
            person2_id=payload.person2_id,
            relationship_type=payload.relationship_type,
            notes=payload.notes,
        )
    except PersonNotOwned:
        raise HTTPException(404, 'Person not found')
    except RelationshipExists:
        raise HTTPException(409, 'Relationship already exists between these people')
    except InvalidRelationship as exc:
        raise HTTPException(400, str(exc))
    notify_relationship_established(
        queue, rel.relationship_type, rel.person1_id, rel.person2_id, user.id, relationship_id=rel.id
    )
    return {'relationship': RelationshipRead.model_validate(rel)}


@router.post('/api/relationships/backfill')
async def api_relationship_backfill(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    queue: InferenceQueue = Depends(get_inference_queue),
):
    res = await backfill_suggestions(queue.orchestrator, db, user.id)
    return {
        'relationships': res.relationships,
        'created': res.created,
        'skipped': res.skipped,
        'failed_rules': res.failed_rules,
    }
