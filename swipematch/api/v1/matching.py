from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from swipematch.db.session import get_db
from swipematch.db.redis import RedisService
from swipematch.core.dependencies import get_current_user, get_redis_service
from swipematch.models.user import User
from swipematch.schemas.match import (
    SwipeCreate,
    SwipeResponse,
    SwipeResult,
    MatchResponse,
    MatchListResponse,
    CandidateView,
    ActivitySummary,
    PageResponse,
)
from swipematch.services import (
    CandidateRanker,
    SwipeProcessor,
    MatchLifecycle,
    ConversationTracker,
)


router = APIRouter(prefix="/matching", tags=["Matching"])


# ==================== Discovery ====================

@router.get("/feed", response_model=PageResponse[CandidateView])
async def get_feed(
    page: int = Query(0),
    page_size: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Ranked candidate feed (zero-based pages).
    Excludes self, already swiped users, active matches and inactive users.
    """
    return await CandidateRanker(db).ranked_feed(current_user.id, page=page, page_size=page_size)


@router.get("/next", response_model=Optional[CandidateView])
async def get_next_candidate(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Best-ranked candidate, or null when the feed is empty."""
    return await CandidateRanker(db).next_candidate(current_user.id)


# ==================== Swipes ====================

@router.post("/swipe", response_model=SwipeResult)
async def swipe(
    swipe_data: SwipeCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis: RedisService = Depends(get_redis_service),
):
    """
    Record a swipe (like, dislike, or super_like).
    If mutual like, creates a match.
    """
    # Check swipe limit
    can_swipe, remaining = await redis.check_swipe_limit(str(current_user.id))
    if not can_swipe:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Daily swipe limit reached.",
        )

    return await SwipeProcessor(db).record_swipe(
        current_user.id, swipe_data.swiped_id, swipe_data.swipe_type
    )


@router.get("/likes", response_model=PageResponse[SwipeResponse])
async def get_likes_received(
    page: int = Query(0, ge=0),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Users who liked or super liked the current user."""
    return await SwipeProcessor(db).likes_received(current_user.id, page, page_size)


@router.get("/history", response_model=PageResponse[SwipeResponse])
async def get_swipe_history(
    page: int = Query(0, ge=0),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Swipes made by the current user, newest first."""
    return await SwipeProcessor(db).swipe_history(current_user.id, page, page_size)


@router.get("/summary", response_model=ActivitySummary)
async def get_activity_summary(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Swipe, match and message counters for the current user."""
    swipes = SwipeProcessor(db)
    conversations = ConversationTracker(db)
    return ActivitySummary(
        user_id=current_user.id,
        swipes=await swipes.count_swipes(current_user.id),
        likes_made=await swipes.count_likes_made(current_user.id),
        likes_received=await swipes.count_likes_received(current_user.id),
        active_matches=await MatchLifecycle(db).count_active_matches(current_user.id),
        messages_sent=await conversations.count_sent_by(current_user.id),
        unread_messages=await conversations.unread_count_for_user(current_user.id),
    )


# ==================== Matches ====================

@router.get("/matches", response_model=MatchListResponse)
async def get_matches(
    active_only: bool = Query(True),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get matches of the current user, newest first."""
    return await MatchLifecycle(db).list_matches(current_user.id, active_only=active_only)


@router.get("/matches/recent", response_model=list[MatchResponse])
async def get_recent_matches(
    days: int = Query(7, ge=0, le=365),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active matches made within the last `days` days."""
    return await MatchLifecycle(db).recent_matches(current_user.id, days)


@router.get("/matches/with/{user_id}")
async def check_matched(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Whether the current user has an active match with another user."""
    matched = await MatchLifecycle(db).are_matched(current_user.id, user_id)
    return {"user_id": user_id, "matched": matched}


@router.get("/matches/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MatchLifecycle(db).get_match(match_id, current_user.id)


@router.delete("/matches/{match_id}", response_model=MatchResponse)
async def unmatch(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Unmatch with a user.
    Messages are kept, but no new messages can be sent.
    """
    return await MatchLifecycle(db).unmatch(match_id, current_user.id)
