from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas import BulkSuggestionIds, RelationshipRead, SuggestionRead
from ..services import review
from ..services.relationships import RelationshipExists
from ..utils import require_authenticated_user

router = APIRouter()


@router.get('/api/suggestions')
async def api_suggestions(
    tier: int | None = Query(default=None, ge=2, le=3),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await review.list_pending(db, user.id, tier=tier)
    return {'suggestions': [SuggestionRead.model_validate(s) for s in rows], 'count': len(rows)}


@router.get('/api/suggestions/by-tier')
async def api_suggestions_by_tier(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    grouped = await review.list_by_tier(db, user.id)
    for key in ('tier2', 'tier3'):
        grouped[key]['suggestions'] = [SuggestionRead.model_validate(s) for s in grouped[key]['suggestions']]
    return grouped


@router.get('/api/suggestions/stats/summary')
async def api_suggestions_stats(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    return await review.tier_stats(db, user.id)


@router.post('/api/suggestions/bulk/accept')
async def api_suggestions_bulk_accept(
    payload: BulkSuggestionIds,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await review.bulk_accept(db, payload.suggestion_ids, user.id)


@router.post('/api/suggestions/bulk/dismiss')
async def api_suggestions_bulk_dismiss(
    payload: BulkSuggestionIds,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await review.bulk_dismiss(db, payload.suggestion_ids, user.id)


@router.get('/api/suggestions/{suggestion_id}')
async def api_suggestion_get(suggestion_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    try:
        s = await review.get_suggestion(db, suggestion_id, user.id)
    except review.SuggestionNotFound:
        raise HTTPException(404, 'Suggestion not found')
    return {'suggestion': SuggestionRead.model_validate(s)}


@router.post('/api/suggestions/{suggestion_id}/accept')
async def api_suggestion_accept(suggestion_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    try:
        rel = await review.accept(db, suggestion_id, user.id)
    except review.SuggestionNotFound:
        raise HTTPException(404, 'Suggestion not found')
    except review.SuggestionNotPending:
        raise HTTPException(409, 'Suggestion already processed')
    except RelationshipExists:
        raise HTTPException(409, 'Relationship already exists between these people')
    s = await review.get_suggestion(db, suggestion_id, user.id)
    return {'relationship': RelationshipRead.model_validate(rel), 'suggestion': SuggestionRead.model_validate(s)}


@router.post('/api/suggestions/{suggestion_id}/dismiss')
async def api_suggestion_dismiss(suggestion_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    try:
        s = await review.dismiss(db, suggestion_id, user.id)
    except review.SuggestionNotFound:
        raise HTTPException(404, 'Suggestion not found')
    except review.SuggestionNotPending:
        raise HTTPException(409, 'Suggestion already processed')
    return {'suggestion': SuggestionRead.model_validate(s)}
