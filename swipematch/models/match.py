from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    Uuid,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import hashlib
import uuid
import enum

from swipematch.core.clock import utcnow
from swipematch.db.session import Base


class SwipeType(str, enum.Enum):
    LIKE = "like"
    DISLIKE = "dislike"
    SUPER_LIKE = "super_like"

    @property
    def is_positive(self) -> bool:
        """LIKE and SUPER_LIKE both count toward a mutual match."""
        return self in (SwipeType.LIKE, SwipeType.SUPER_LIKE)


POSITIVE_SWIPES = [SwipeType.LIKE.value, SwipeType.SUPER_LIKE.value]


@dataclass(frozen=True)
class UnorderedPair:
    """Two distinct user ids, stored low first so {a, b} == {b, a}."""

    low: uuid.UUID
    high: uuid.UUID

    @classmethod
    def of(cls, user_a: uuid.UUID, user_b: uuid.UUID) -> "UnorderedPair":
        if user_a == user_b:
            raise ValueError("A pair needs two distinct users")
        return cls(min(user_a, user_b), max(user_a, user_b))

    def __contains__(self, user_id: uuid.UUID) -> bool:
        return user_id == self.low or user_id == self.high

    def other(self, user_id: uuid.UUID) -> uuid.UUID:
        if user_id == self.low:
            return self.high
        if user_id == self.high:
            return self.low
        raise ValueError(f"User {user_id} is not part of this pair")

    def lock_key(self) -> int:
        """Signed 64-bit key for pg_advisory_xact_lock."""
        digest = hashlib.sha1(self.low.bytes + self.high.bytes).digest()
        return int.from_bytes(digest[:8], "big", signed=True)


class Swipe(Base):
    """Latest decision of one user about another (one row per directed pair)."""

    __tablename__ = "swipes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    swiped_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    swipe_type = Column(String(12), nullable=False)  # like, dislike, super_like
    swiped_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("swiper_id", "swiped_id", name="unique_swipe"),
        CheckConstraint("swiper_id <> swiped_id", name="chk_swipe_no_self"),
    )


class Match(Base):
    """Matched pair of users. user1_id is always the lower id."""

    __tablename__ = "matches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user1_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user2_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, index=True)
    matched_at = Column(DateTime, nullable=False)
    unmatched_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="unique_match_pair"),
        CheckConstraint("user1_id < user2_id", name="chk_match_canonical_pair"),
    )

    @classmethod
    def between(cls, user_a: uuid.UUID, user_b: uuid.UUID, matched_at: datetime) -> "Match":
        """Build an active match keyed by the canonical pair."""
        pair = UnorderedPair.of(user_a, user_b)
        return cls(
            id=uuid.uuid4(),
            user1_id=pair.low,
            user2_id=pair.high,
            is_active=True,
            matched_at=matched_at,
            unmatched_at=None,
        )

    @property
    def pair(self) -> UnorderedPair:
        return UnorderedPair(self.user1_id, self.user2_id)

    def involves(self, user_id: uuid.UUID) -> bool:
        return user_id in self.pair

    def deactivate(self, at: datetime) -> bool:
        """Soft unmatch. Returns False when already inactive."""
        if not self.is_active:
            return False
        self.is_active = False
        self.unmatched_at = at
        return True

    def __eq__(self, other):
        if not isinstance(other, Match):
            return NotImplemented
        return self.pair == other.pair

    def __hash__(self):
        return hash(self.pair)

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, pair=({self.user1_id}, {self.user2_id}), active={self.is_active})>"


class Message(Base):
    """Chat message inside a match."""

    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id = Column(Uuid, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime, nullable=False)
    read_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_messages_match_id", "match_id"),
        Index("ix_messages_sender_id", "sender_id"),
        Index("ix_messages_sent_at", "sent_at"),
    )


class ChatMetadata(Base):
    """Per-participant conversation counters, created when the match is made."""

    __tablename__ = "chat_metadata"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id = Column(Uuid, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    total_messages = Column(Integer, nullable=False, default=0)
    total_words = Column(Integer, nullable=False, default=0)
    last_message_at = Column(DateTime, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (UniqueConstraint("match_id", "user_id", name="unique_chat_participant"),)


def partner_of(match: Match, user_id: uuid.UUID) -> uuid.UUID:
    """The other user of a match, from user_id's point of view."""
    return match.pair.other(user_id)


def recipient_of(message: Message, match: Match) -> Optional[uuid.UUID]:
    if message.match_id != match.id:
        return None
    return partner_of(match, message.sender_id)
