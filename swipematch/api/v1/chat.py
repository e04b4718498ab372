from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from swipematch.db.session import get_db
from swipematch.db.redis import RedisService
from swipematch.core.dependencies import get_current_user, get_redis_service
from swipematch.models.user import User
from swipematch.schemas.match import (
    MessageCreate,
    MessageResponse,
    ChatMetadataResponse,
    MarkReadResponse,
    UnreadCountResponse,
    MessagingStatistics,
    ResponseLatency,
    ActiveMatch,
    MatchResponse,
    PageResponse,
)
from swipematch.services import ConversationTracker, ConversationAnalytics
from swipematch.services.matches import get_participant_match


router = APIRouter(prefix="/chat", tags=["Chat"])


# ==================== User-wide Endpoints ====================

@router.get("/unread", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Unread messages across all active matches."""
    unread = await ConversationTracker(db).unread_count_for_user(current_user.id)
    return UnreadCountResponse(user_id=current_user.id, unread=unread)


@router.get("/stats", response_model=MessagingStatistics)
async def get_messaging_statistics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ConversationAnalytics(db).messaging_statistics(current_user.id)


@router.get("/active", response_model=list[ActiveMatch])
async def get_most_active_matches(
    limit: int = Query(5, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Matches with the most messages."""
    return await ConversationAnalytics(db).most_active_matches(current_user.id, limit)


@router.get("/silent", response_model=list[MatchResponse])
async def get_matches_without_messages(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active matches where nobody has written yet."""
    return await ConversationAnalytics(db).matches_without_messages(current_user.id)


@router.post("/messages/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single received message as read."""
    return await ConversationTracker(db).mark_message_read(message_id, current_user.id)


# ==================== Conversation Endpoints ====================

@router.post("/{match_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    match_id: uuid.UUID,
    message: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis: RedisService = Depends(get_redis_service),
):
    """Send a message in an active match."""
    allowed, _, reset_in = await redis.check_message_rate_limit(str(current_user.id))
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many messages. Try again in {reset_in} seconds.",
        )

    return await ConversationTracker(db).send(match_id, current_user.id, message.content)


@router.get("/{match_id}/messages", response_model=PageResponse[MessageResponse])
async def get_conversation(
    match_id: uuid.UUID,
    page: int = Query(0, ge=0),
    page_size: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Messages of a match, oldest first. History stays readable after unmatch."""
    return await ConversationTracker(db).conversation(match_id, current_user.id, page, page_size)


@router.get("/{match_id}/messages/last", response_model=Optional[MessageResponse])
async def get_last_message(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ConversationTracker(db).last_message(match_id, current_user.id)


@router.post("/{match_id}/read", response_model=MarkReadResponse)
async def mark_messages_read(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all messages from the partner as read."""
    updated = await ConversationTracker(db).mark_read(match_id, current_user.id)
    return MarkReadResponse(updated=updated)


@router.get("/{match_id}/unread", response_model=UnreadCountResponse)
async def get_match_unread_count(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    unread = await ConversationTracker(db).unread_count_for_match(current_user.id, match_id)
    return UnreadCountResponse(user_id=current_user.id, match_id=match_id, unread=unread)


@router.get("/{match_id}/metadata", response_model=ChatMetadataResponse)
async def get_chat_metadata(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Message counters of the current user in a match."""
    return await ConversationTracker(db).metadata(match_id, current_user.id)


@router.get("/{match_id}/search", response_model=list[MessageResponse])
async def search_messages(
    match_id: uuid.UUID,
    q: str = Query(..., min_length=1, max_length=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Case-insensitive search inside one conversation."""
    return await ConversationAnalytics(db).search(match_id, current_user.id, q)


@router.get("/{match_id}/latency", response_model=ResponseLatency)
async def get_response_latency(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Reply times between the two participants of a match."""
    await get_participant_match(db, match_id, current_user.id)
    return await ConversationAnalytics(db).response_latency(match_id)
