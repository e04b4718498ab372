"""
Conversation Tracker
Message sending, read state and unread counters for matched users.
"""

from datetime import timedelta
from typing import Optional
import logging
import uuid

from sqlalchemy import select, func, and_, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from swipematch.config import settings
from swipematch.core.clock import Clock, utcnow
from swipematch.core.exceptions import NotFoundError, InvalidOperationError
from swipematch.models.match import Match, Message, ChatMetadata, recipient_of
from swipematch.schemas.match import MessageResponse, ChatMetadataResponse, PageResponse
from swipematch.services.matches import get_participant_match, involves_user


logger = logging.getLogger(__name__)


class ConversationTracker:
    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def _load_match(self, match_id: uuid.UUID) -> Optional[Match]:
        result = await self.db.execute(
            select(Match).where(Match.id == match_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def open_conversation(self, match: Match) -> list[ChatMetadata]:
        """Create zeroed counters for both participants. Runs in the caller's transaction."""
        now = self.clock()
        rows = [
            ChatMetadata(
                id=uuid.uuid4(),
                match_id=match.id,
                user_id=user_id,
                total_messages=0,
                total_words=0,
                updated_at=now,
            )
            for user_id in (match.user1_id, match.user2_id)
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    # ==================== Write Path ====================

    async def send(self, match_id: uuid.UUID, sender_id: uuid.UUID, content: str) -> MessageResponse:
        """Store a message in an active match and bump the sender's counters."""
        if content is None or not content.strip():
            raise InvalidOperationError("Message content cannot be empty.")
        if len(content) > settings.MESSAGE_MAX_LENGTH:
            raise InvalidOperationError(
                f"Message content cannot exceed {settings.MESSAGE_MAX_LENGTH} characters."
            )

        match = await self._load_match(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        if not match.involves(sender_id):
            raise InvalidOperationError("Sender is not part of this match.")
        if not match.is_active:
            raise InvalidOperationError("Match is not active.")

        now = self.clock()
        message = Message(
            id=uuid.uuid4(),
            match_id=match_id,
            sender_id=sender_id,
            content=content,
            is_read=False,
            sent_at=now,
        )
        self.db.add(message)
        await self.db.flush()

        # Counter update is a single statement so concurrent sends never lose increments
        result = await self.db.execute(
            update(ChatMetadata)
            .where(and_(ChatMetadata.match_id == match_id, ChatMetadata.user_id == sender_id))
            .values(
                total_messages=ChatMetadata.total_messages + 1,
                total_words=ChatMetadata.total_words + len(content.split()),
                last_message_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.add(
                ChatMetadata(
                    id=uuid.uuid4(),
                    match_id=match_id,
                    user_id=sender_id,
                    total_messages=1,
                    total_words=len(content.split()),
                    last_message_at=now,
                    updated_at=now,
                )
            )

        await self.db.commit()
        logger.info("User %s sent message %s in match %s", sender_id, message.id, match_id)
        return MessageResponse.model_validate(message)

    async def mark_read(self, match_id: uuid.UUID, reader_id: uuid.UUID) -> int:
        """
        Mark every unread message from the partner as read.
        Conditional bulk update, so repeated calls return 0.
        """
        await get_participant_match(self.db, match_id, reader_id)

        result = await self.db.execute(
            update(Message)
            .where(
                and_(
                    Message.match_id == match_id,
                    Message.sender_id != reader_id,
                    Message.is_read == False,
                )
            )
            .values(is_read=True, read_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        updated = result.rowcount
        logger.debug("Marked %d messages read in match %s for user %s", updated, match_id, reader_id)
        return updated

    async def mark_message_read(self, message_id: uuid.UUID, reader_id: uuid.UUID) -> MessageResponse:
        """
        Mark one message as read. Only its recipient may do this; anyone else
        gets NotFound. read_at is set once, on the unread to read transition.
        """
        result = await self.db.execute(
            select(Message).where(Message.id == message_id).execution_options(populate_existing=True)
        )
        message = result.scalar_one_or_none()
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")

        match = await self._load_match(message.match_id)
        if match is None or recipient_of(message, match) != reader_id:
            raise NotFoundError(f"Message {message_id} not found")

        if not message.is_read:
            result = await self.db.execute(
                update(Message)
                .where(and_(Message.id == message_id, Message.is_read == False))
                .values(is_read=True, read_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            if result.rowcount:
                logger.info("Message %s marked as read by user %s", message_id, reader_id)
            await self.db.refresh(message)

        return MessageResponse.model_validate(message)

    async def purge_older_than(self, days: int) -> int:
        """
        Delete messages sent before now - days. Returns rows deleted.
        chat_metadata counters are lifetime totals and are left as they are.
        """
        if days < 0:
            raise InvalidOperationError("days must be >= 0")
        cutoff = self.clock() - timedelta(days=days)

        result = await self.db.execute(
            delete(Message).where(Message.sent_at < cutoff).execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info("Purged %d messages older than %s", result.rowcount, cutoff)
        return result.rowcount

    # ==================== Read Operations ====================

    def _unread_query(self, user_id: uuid.UUID):
        return (
            select(func.count(Message.id))
            .join(Match, Match.id == Message.match_id)
            .where(
                and_(
                    involves_user(user_id),
                    Match.is_active == True,
                    Message.sender_id != user_id,
                    Message.is_read == False,
                )
            )
        )

    async def unread_count_for_user(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(self._unread_query(user_id))
        return result.scalar_one()

    async def unread_count_for_match(self, user_id: uuid.UUID, match_id: uuid.UUID) -> int:
        result = await self.db.execute(self._unread_query(user_id).where(Message.match_id == match_id))
        return result.scalar_one()

    async def conversation(
        self, match_id: uuid.UUID, user_id: uuid.UUID, page: int = 0, page_size: int = 50
    ) -> PageResponse[MessageResponse]:
        """Messages of a match, oldest first. Still readable after unmatch."""
        if page < 0 or page_size < 1:
            raise InvalidOperationError("page must be >= 0 and page_size >= 1")
        await get_participant_match(self.db, match_id, user_id)

        total = (
            await self.db.execute(
                select(func.count()).select_from(Message).where(Message.match_id == match_id)
            )
        ).scalar_one()
        result = await self.db.execute(
            select(Message)
            .where(Message.match_id == match_id)
            .order_by(Message.sent_at, Message.id)
            .offset(page * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        items = [MessageResponse.model_validate(message) for message in result.scalars()]
        return PageResponse[MessageResponse].build(items, page, page_size, total)

    async def last_message(self, match_id: uuid.UUID, user_id: uuid.UUID) -> Optional[MessageResponse]:
        await get_participant_match(self.db, match_id, user_id)
        result = await self.db.execute(
            select(Message)
            .where(Message.match_id == match_id)
            .order_by(Message.sent_at.desc(), Message.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        message = result.scalar_one_or_none()
        return MessageResponse.model_validate(message) if message else None

    async def count_sent_by(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Message).where(Message.sender_id == user_id)
        )
        return result.scalar_one()

    async def metadata(self, match_id: uuid.UUID, user_id: uuid.UUID) -> ChatMetadataResponse:
        """Counters of one participant in a match."""
        await get_participant_match(self.db, match_id, user_id)
        result = await self.db.execute(
            select(ChatMetadata)
            .where(and_(ChatMetadata.match_id == match_id, ChatMetadata.user_id == user_id))
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return ChatMetadataResponse(match_id=match_id, user_id=user_id)
        return ChatMetadataResponse.model_validate(row)
