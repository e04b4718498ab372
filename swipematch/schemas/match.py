from pydantic import BaseModel, Field
from typing import Generic, List, Optional, TypeVar
from datetime import datetime
from uuid import UUID

from swipematch.models.match import SwipeType


T = TypeVar("T")


# ==================== Paging ====================

class PageResponse(BaseModel, Generic[T]):
    """One zero-based page of an ordered result."""
    page: int
    size: int
    total: int
    has_next: bool
    has_prev: bool
    items: List[T]

    @classmethod
    def build(cls, items: List[T], page: int, size: int, total: int) -> "PageResponse[T]":
        return cls(
            page=page,
            size=size,
            total=total,
            has_next=(page + 1) * size < total,
            has_prev=page > 0,
            items=items,
        )


class ErrorResponse(BaseModel):
    """Body returned for domain errors."""
    error: str
    detail: str


# ==================== Swipe Schemas ====================

class SwipeCreate(BaseModel):
    """Schema for creating a swipe."""
    swiped_id: UUID
    swipe_type: SwipeType


class SwipeResponse(BaseModel):
    """Schema for a stored swipe."""
    id: UUID
    swiper_id: UUID
    swiped_id: UUID
    swipe_type: SwipeType
    swiped_at: datetime

    class Config:
        from_attributes = True


class SwipeResult(BaseModel):
    """Outcome of recording a swipe."""
    swipe: SwipeResponse
    is_match: bool = False  # True if this swipe completed a mutual like
    match_id: Optional[UUID] = None


# ==================== Match Schemas ====================

class MatchResponse(BaseModel):
    """Match seen from one participant."""
    match_id: UUID
    user_id: UUID
    partner_id: UUID
    is_active: bool
    matched_at: datetime
    unmatched_at: Optional[datetime] = None


class MatchListResponse(BaseModel):
    """List of matches."""
    matches: List[MatchResponse]
    total: int


# ==================== Candidate Schemas ====================

class CandidateView(BaseModel):
    """Ranked candidate shown in the discovery feed."""
    user_id: UUID
    username: str
    gender: str
    age: int
    city: Optional[str] = None
    bio: Optional[str] = None
    height_cm: Optional[int] = None
    occupation: Optional[str] = None
    education: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    common_interests_count: int
    distance_km: Optional[float] = None  # None when either side has no location
    compatibility_score: int = Field(..., ge=0, le=100)


# ==================== Message Schemas ====================

class MessageCreate(BaseModel):
    """Schema for sending a message. Length is enforced by the tracker."""
    content: str


class MessageResponse(BaseModel):
    """Schema for a stored message."""
    id: UUID
    match_id: UUID
    sender_id: UUID
    content: str
    is_read: bool
    sent_at: datetime
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChatMetadataResponse(BaseModel):
    """Per-participant conversation counters."""
    match_id: UUID
    user_id: UUID
    total_messages: int = 0
    total_words: int = 0
    last_message_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MarkReadResponse(BaseModel):
    updated: int


class UnreadCountResponse(BaseModel):
    user_id: UUID
    match_id: Optional[UUID] = None
    unread: int


# ==================== Analytics Schemas ====================

class ActivitySummary(BaseModel):
    """Swipe, match and message counters for one user."""
    user_id: UUID
    swipes: int
    likes_made: int
    likes_received: int
    active_matches: int
    messages_sent: int
    unread_messages: int


class MessagingStatistics(BaseModel):
    """Conversation volume for one user."""
    conversation_count: int = 0
    total_messages: int = 0
    avg_messages_per_conversation: float = 0.0
    max_messages_per_conversation: int = 0


class ResponseLatency(BaseModel):
    """Time between a message and the other participant's reply, in seconds."""
    samples: int = 0
    avg_seconds: Optional[float] = None
    min_seconds: Optional[float] = None
    max_seconds: Optional[float] = None


class TopSender(BaseModel):
    user_id: UUID
    username: str
    message_count: int


class ActiveMatch(BaseModel):
    match_id: UUID
    partner_id: UUID
    message_count: int
    matched_at: datetime


class MatchStatistics(BaseModel):
    """Match counts of one active user."""
    user_id: UUID
    username: str
    active_matches: int
    unmatched_matches: int


class FirstMessageDelay(BaseModel):
    """Average time from match creation to the first message."""
    matches: int = 0
    avg_seconds: Optional[float] = None


class PurgeResponse(BaseModel):
    deleted: int
