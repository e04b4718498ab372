"""
Swipe Processor
Records directional swipes and turns mutual likes into exactly one match per pair.

Duplicate policy: one row per (swiper, swiped). Re-swiping replaces the
previous decision in place.

Concurrency: the check-then-create for a pair runs under a transaction-scoped
advisory lock on PostgreSQL. On every backend the unique constraint on the
canonical pair is the backstop: a losing insert is rolled back to a savepoint
and the existing row is returned as the result.
"""

from typing import Optional
import logging
import uuid

from sqlalchemy import select, func, and_, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swipematch.core.clock import Clock, utcnow
from swipematch.core.exceptions import NotFoundError, InvalidOperationError, ConflictError
from swipematch.models.user import User
from swipematch.models.match import Swipe, Match, SwipeType, UnorderedPair, POSITIVE_SWIPES
from swipematch.schemas.match import SwipeResponse, SwipeResult, PageResponse
from swipematch.services.conversations import ConversationTracker


logger = logging.getLogger(__name__)


class SwipeProcessor:
    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.conversations = ConversationTracker(db, clock=clock)

    # ==================== Write Path ====================

    async def record_swipe(self, swiper_id: uuid.UUID, target_id: uuid.UUID, swipe_type: SwipeType) -> SwipeResult:
        """
        Persist a swipe and detect a mutual match.
        If mutual like, creates (or finds) the single match for the pair.
        """
        swipe_type = SwipeType(swipe_type)
        logger.info("Recording swipe from user %s to user %s (type: %s)", swiper_id, target_id, swipe_type.value)

        # Prevent swiping on self
        if swiper_id == target_id:
            raise InvalidOperationError("Cannot swipe on yourself.")

        swiper = await self.db.get(User, swiper_id)
        if swiper is None:
            raise NotFoundError(f"User {swiper_id} not found")
        target = await self.db.get(User, target_id)
        if target is None:
            raise NotFoundError(f"User {target_id} not found")
        if not target.is_active:
            raise InvalidOperationError("This user is no longer active.")

        pair = UnorderedPair.of(swiper_id, target_id)
        await self._lock_pair(pair)

        existing_match = await self._find_match(pair)
        if existing_match is not None and existing_match.is_active:
            raise ConflictError("Already matched with this user.")

        swipe = await self._upsert_swipe(swiper_id, target_id, swipe_type)

        is_match = False
        match_id = None

        # Check for mutual like (match)
        if swipe_type.is_positive and await self._has_positive_swipe(target_id, swiper_id):
            match, created = await self._ensure_match(pair, existing_match)
            if created:
                await self.conversations.open_conversation(match)
                logger.info("Match created between users %s and %s (id: %s)", pair.low, pair.high, match.id)
            if match.is_active:
                is_match = True
                match_id = match.id
            else:
                logger.info("Mutual like on previously unmatched pair %s/%s, not reactivated", pair.low, pair.high)

        await self.db.commit()

        return SwipeResult(
            swipe=SwipeResponse.model_validate(swipe),
            is_match=is_match,
            match_id=match_id,
        )

    async def _lock_pair(self, pair: UnorderedPair) -> None:
        """Serialize check-then-create per pair for the rest of the transaction."""
        if self.db.get_bind().dialect.name == "postgresql":
            await self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": pair.lock_key()})

    async def _upsert_swipe(self, swiper_id: uuid.UUID, target_id: uuid.UUID, swipe_type: SwipeType) -> Swipe:
        now = self.clock()
        swipe = await self._find_swipe(swiper_id, target_id)
        if swipe is None:
            swipe = Swipe(
                id=uuid.uuid4(),
                swiper_id=swiper_id,
                swiped_id=target_id,
                swipe_type=swipe_type.value,
                swiped_at=now,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(swipe)
                return swipe
            except IntegrityError:
                # Same user swiped the same target from another request
                logger.warning("Concurrent swipe from %s to %s, replacing", swiper_id, target_id)
                swipe = await self._find_swipe(swiper_id, target_id)

        swipe.swipe_type = swipe_type.value
        swipe.swiped_at = now
        await self.db.flush()
        return swipe

    async def _ensure_match(self, pair: UnorderedPair, existing: Optional[Match]) -> tuple[Match, bool]:
        """Return (match, created). Conflict on the pair counts as already created."""
        if existing is not None:
            return existing, False

        match = Match.between(pair.low, pair.high, matched_at=self.clock())
        try:
            async with self.db.begin_nested():
                self.db.add(match)
        except IntegrityError:
            logger.warning("Match already exists between users %s and %s", pair.low, pair.high)
            existing = await self._find_match(pair)
            if existing is None:
                raise
            return existing, False
        return match, True

    # ==================== Lookups ====================

    async def _find_swipe(self, swiper_id: uuid.UUID, target_id: uuid.UUID) -> Optional[Swipe]:
        result = await self.db.execute(
            select(Swipe).where(and_(Swipe.swiper_id == swiper_id, Swipe.swiped_id == target_id))
        )
        return result.scalar_one_or_none()

    async def _has_positive_swipe(self, swiper_id: uuid.UUID, target_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(Swipe.id).where(
                and_(
                    Swipe.swiper_id == swiper_id,
                    Swipe.swiped_id == target_id,
                    Swipe.swipe_type.in_(POSITIVE_SWIPES),
                )
            )
        )
        return result.first() is not None

    async def _find_match(self, pair: UnorderedPair) -> Optional[Match]:
        result = await self.db.execute(
            select(Match)
            .where(and_(Match.user1_id == pair.low, Match.user2_id == pair.high))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # ==================== Read Operations ====================

    async def _page(self, query, count_query, page: int, page_size: int) -> PageResponse[SwipeResponse]:
        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(query.offset(page * page_size).limit(page_size))
        items = [SwipeResponse.model_validate(swipe) for swipe in result.scalars()]
        return PageResponse[SwipeResponse].build(items, page, page_size, total)

    async def swipe_history(self, user_id: uuid.UUID, page: int = 0, page_size: int = 20) -> PageResponse[SwipeResponse]:
        """Swipes made by the user, newest first."""
        condition = Swipe.swiper_id == user_id
        return await self._page(
            select(Swipe).where(condition).order_by(Swipe.swiped_at.desc(), Swipe.id),
            select(func.count()).select_from(Swipe).where(condition),
            page,
            page_size,
        )

    async def likes_received(self, user_id: uuid.UUID, page: int = 0, page_size: int = 20) -> PageResponse[SwipeResponse]:
        """LIKE and SUPER_LIKE swipes toward the user, newest first."""
        condition = and_(Swipe.swiped_id == user_id, Swipe.swipe_type.in_(POSITIVE_SWIPES))
        return await self._page(
            select(Swipe).where(condition).order_by(Swipe.swiped_at.desc(), Swipe.id),
            select(func.count()).select_from(Swipe).where(condition),
            page,
            page_size,
        )

    async def count_swipes(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Swipe).where(Swipe.swiper_id == user_id)
        )
        return result.scalar_one()

    async def count_likes_made(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Swipe).where(
                and_(Swipe.swiper_id == user_id, Swipe.swipe_type.in_(POSITIVE_SWIPES))
            )
        )
        return result.scalar_one()

    async def count_likes_received(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Swipe).where(
                and_(Swipe.swiped_id == user_id, Swipe.swipe_type.in_(POSITIVE_SWIPES))
            )
        )
        return result.scalar_one()
