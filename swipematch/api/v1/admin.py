"""
Maintenance and reporting endpoints.
Operators only: every route requires the X-Admin-Key header.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from swipematch.core.dependencies import require_operator
from swipematch.db.session import get_db
from swipematch.schemas.match import (
    PurgeResponse,
    TopSender,
    ResponseLatency,
    FirstMessageDelay,
    MatchStatistics,
)
from swipematch.services import MatchLifecycle, ConversationTracker, ConversationAnalytics


router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_operator)],
)


@router.delete("/matches/{match_id}", response_model=PurgeResponse)
async def purge_match(
    match_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Hard-delete a match with all of its messages."""
    deleted = await MatchLifecycle(db).purge(match_id)
    return PurgeResponse(deleted=deleted)


@router.delete("/messages", response_model=PurgeResponse)
async def purge_old_messages(
    older_than_days: int = Query(..., ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Retention cleanup: delete messages older than the given number of days."""
    deleted = await ConversationTracker(db).purge_older_than(older_than_days)
    return PurgeResponse(deleted=deleted)


@router.get("/analytics/top-senders", response_model=list[TopSender])
async def get_top_senders(
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await ConversationAnalytics(db).top_senders(limit)


@router.get("/analytics/response-latency", response_model=ResponseLatency)
async def get_response_latency(
    db: AsyncSession = Depends(get_db),
):
    """Average reply time across all conversations."""
    return await ConversationAnalytics(db).response_latency()


@router.get("/analytics/first-message-delay", response_model=FirstMessageDelay)
async def get_first_message_delay(
    db: AsyncSession = Depends(get_db),
):
    return await ConversationAnalytics(db).average_time_to_first_message()


@router.get("/analytics/match-statistics", response_model=list[MatchStatistics])
async def get_match_statistics(
    db: AsyncSession = Depends(get_db),
):
    """Active and unmatched counts for every active user."""
    return await ConversationAnalytics(db).match_statistics()
