"""
Conversation Analytics
Read-only reporting over message history. Nothing here writes or locks.
"""

from typing import Optional
import logging
import uuid

from sqlalchemy import select, func, and_, or_, case
from sqlalchemy.ext.asyncio import AsyncSession

from swipematch.config import settings
from swipematch.core.exceptions import InvalidOperationError
from swipematch.models.user import User
from swipematch.models.match import Match, Message, UnorderedPair
from swipematch.schemas.match import (
    MessagingStatistics,
    ResponseLatency,
    TopSender,
    ActiveMatch,
    FirstMessageDelay,
    MatchResponse,
    MessageResponse,
    MatchStatistics,
)
from swipematch.services.matches import get_participant_match, involves_user, to_match_response


logger = logging.getLogger(__name__)


class ConversationAnalytics:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def messaging_statistics(self, user_id: uuid.UUID) -> MessagingStatistics:
        """Volume across every conversation of the user that has at least one message."""
        result = await self.db.execute(
            select(Message.match_id, func.count(Message.id))
            .join(Match, Match.id == Message.match_id)
            .where(involves_user(user_id))
            .group_by(Message.match_id)
        )
        counts = [count for _, count in result.all()]
        if not counts:
            return MessagingStatistics()

        total = sum(counts)
        return MessagingStatistics(
            conversation_count=len(counts),
            total_messages=total,
            avg_messages_per_conversation=round(total / len(counts), 2),
            max_messages_per_conversation=max(counts),
        )

    async def response_latency(self, match_id: Optional[uuid.UUID] = None) -> ResponseLatency:
        """
        Seconds between a message and the next message from the other
        participant. Only sender switches count as replies.
        """
        query = select(Message.match_id, Message.sender_id, Message.sent_at).order_by(
            Message.match_id, Message.sent_at, Message.id
        )
        if match_id is not None:
            query = query.where(Message.match_id == match_id)
        result = await self.db.execute(query)

        gaps = []
        previous = None
        for row in result.all():
            if previous is not None and previous.match_id == row.match_id and previous.sender_id != row.sender_id:
                gaps.append((row.sent_at - previous.sent_at).total_seconds())
            previous = row

        if not gaps:
            return ResponseLatency()
        return ResponseLatency(
            samples=len(gaps),
            avg_seconds=round(sum(gaps) / len(gaps), 2),
            min_seconds=min(gaps),
            max_seconds=max(gaps),
        )

    async def top_senders(self, limit: int = None) -> list[TopSender]:
        if limit is None:
            limit = settings.TOP_SENDERS_DEFAULT_LIMIT
        if limit < 1:
            raise InvalidOperationError("limit must be >= 1")

        message_count = func.count(Message.id).label("message_count")
        result = await self.db.execute(
            select(User.id, User.username, message_count)
            .join(Message, Message.sender_id == User.id)
            .group_by(User.id, User.username)
            .order_by(message_count.desc(), User.id)
            .limit(limit)
        )
        return [
            TopSender(user_id=sender_id, username=username, message_count=count)
            for sender_id, username, count in result.all()
        ]

    async def search(self, match_id: uuid.UUID, user_id: uuid.UUID, text: str) -> list[MessageResponse]:
        """Case-insensitive substring search inside one conversation, newest first."""
        if text is None or not text.strip():
            raise InvalidOperationError("Search text cannot be empty.")
        await get_participant_match(self.db, match_id, user_id)

        result = await self.db.execute(
            select(Message)
            .where(
                and_(
                    Message.match_id == match_id,
                    func.lower(Message.content).contains(text.lower(), autoescape=True),
                )
            )
            .order_by(Message.sent_at.desc(), Message.id)
            .execution_options(populate_existing=True)
        )
        return [MessageResponse.model_validate(message) for message in result.scalars()]

    async def most_active_matches(self, user_id: uuid.UUID, limit: int = 5) -> list[ActiveMatch]:
        """Matches of the user with the most messages."""
        if limit < 1:
            raise InvalidOperationError("limit must be >= 1")

        message_count = func.count(Message.id).label("message_count")
        result = await self.db.execute(
            select(Match.id, Match.user1_id, Match.user2_id, Match.matched_at, message_count)
            .join(Message, Message.match_id == Match.id)
            .where(involves_user(user_id))
            .group_by(Match.id, Match.user1_id, Match.user2_id, Match.matched_at)
            .order_by(message_count.desc(), Match.matched_at.desc(), Match.id)
            .limit(limit)
        )
        return [
            ActiveMatch(
                match_id=row.id,
                partner_id=UnorderedPair(row.user1_id, row.user2_id).other(user_id),
                message_count=row.message_count,
                matched_at=row.matched_at,
            )
            for row in result.all()
        ]

    async def matches_without_messages(self, user_id: uuid.UUID) -> list[MatchResponse]:
        """Active matches where nobody has written yet, oldest first."""
        has_messages = select(Message.id).where(Message.match_id == Match.id).exists()
        result = await self.db.execute(
            select(Match)
            .where(and_(involves_user(user_id), Match.is_active == True, ~has_messages))
            .order_by(Match.matched_at, Match.id)
        )
        return [to_match_response(match, user_id) for match in result.scalars()]

    async def average_time_to_first_message(self) -> FirstMessageDelay:
        """Mean delay between matching and the first message, over matches with messages."""
        first_sent = (
            select(Message.match_id, func.min(Message.sent_at).label("first_at"))
            .group_by(Message.match_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Match.matched_at, first_sent.c.first_at).join(
                first_sent, first_sent.c.match_id == Match.id
            )
        )
        delays = [(first_at - matched_at).total_seconds() for matched_at, first_at in result.all()]
        if not delays:
            return FirstMessageDelay()

        logger.debug("First message delay computed over %d matches", len(delays))
        return FirstMessageDelay(matches=len(delays), avg_seconds=round(sum(delays) / len(delays), 2))

    async def match_statistics(self) -> list[MatchStatistics]:
        """
        Active and unmatched counts per active user, most active matches first.
        Users without any match are listed with zeros.
        """
        active = func.count(case((Match.is_active == True, Match.id)).distinct()).label("active_matches")
        unmatched = func.count(case((Match.is_active == False, Match.id)).distinct()).label("unmatched_matches")
        result = await self.db.execute(
            select(User.id, User.username, active, unmatched)
            .outerjoin(Match, or_(Match.user1_id == User.id, Match.user2_id == User.id))
            .where(User.is_active == True)
            .group_by(User.id, User.username)
            .order_by(active.desc(), User.id)
        )
        return [
            MatchStatistics(
                user_id=row.id,
                username=row.username,
                active_matches=row.active_matches,
                unmatched_matches=row.unmatched_matches,
            )
            for row in result.all()
        ]
