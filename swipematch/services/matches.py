"""
Match Lifecycle
Soft unmatch, administrative purge, and match lookups from one participant's side.
"""

from datetime import timedelta
from typing import Optional
import logging
import uuid

from sqlalchemy import select, func, and_, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from swipematch.core.clock import Clock, utcnow
from swipematch.core.exceptions import NotFoundError, InvalidOperationError
from swipematch.models.match import Match, Message, ChatMetadata, UnorderedPair, partner_of
from swipematch.schemas.match import MatchResponse, MatchListResponse


logger = logging.getLogger(__name__)


def involves_user(user_id: uuid.UUID):
    """SQL condition: the match has user_id on either side."""
    return or_(Match.user1_id == user_id, Match.user2_id == user_id)


async def get_participant_match(db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID) -> Match:
    """Load a match the user takes part in. Anyone else gets NotFound."""
    match = await db.get(Match, match_id)
    if match is None or not match.involves(user_id):
        raise NotFoundError(f"Match {match_id} not found")
    return match


def to_match_response(match: Match, user_id: uuid.UUID) -> MatchResponse:
    return MatchResponse(
        match_id=match.id,
        user_id=user_id,
        partner_id=partner_of(match, user_id),
        is_active=match.is_active,
        matched_at=match.matched_at,
        unmatched_at=match.unmatched_at,
    )


class MatchLifecycle:
    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def unmatch(self, match_id: uuid.UUID, acting_user_id: uuid.UUID) -> MatchResponse:
        """
        Deactivate a match. Messages are kept.
        Calling it again on an inactive match is a no-op.
        """
        match = await get_participant_match(self.db, match_id, acting_user_id)

        if match.deactivate(self.clock()):
            await self.db.commit()
            logger.info("User %s unmatched match %s", acting_user_id, match_id)
        else:
            logger.debug("Match %s already inactive, unmatch ignored", match_id)

        return to_match_response(match, acting_user_id)

    async def purge(self, match_id: uuid.UUID) -> int:
        """Hard-delete a match with its messages and counters. Returns messages deleted."""
        match = await self.db.get(Match, match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")

        result = await self.db.execute(
            delete(Message).where(Message.match_id == match_id).execution_options(synchronize_session=False)
        )
        deleted = result.rowcount
        await self.db.execute(
            delete(ChatMetadata).where(ChatMetadata.match_id == match_id).execution_options(synchronize_session=False)
        )
        await self.db.delete(match)
        await self.db.commit()

        logger.info("Purged match %s (%d messages)", match_id, deleted)
        return deleted

    async def get_match(self, match_id: uuid.UUID, user_id: uuid.UUID) -> MatchResponse:
        match = await get_participant_match(self.db, match_id, user_id)
        return to_match_response(match, user_id)

    async def list_matches(self, user_id: uuid.UUID, active_only: bool = True) -> MatchListResponse:
        """Matches of a user, newest first."""
        conditions = [involves_user(user_id)]
        if active_only:
            conditions.append(Match.is_active == True)

        result = await self.db.execute(
            select(Match).where(and_(*conditions)).order_by(Match.matched_at.desc(), Match.id)
        )
        matches = [to_match_response(match, user_id) for match in result.scalars()]
        return MatchListResponse(matches=matches, total=len(matches))

    async def find_pair(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Optional[Match]:
        if user_a == user_b:
            return None
        pair = UnorderedPair.of(user_a, user_b)
        result = await self.db.execute(
            select(Match).where(and_(Match.user1_id == pair.low, Match.user2_id == pair.high))
        )
        return result.scalar_one_or_none()

    async def are_matched(self, user_a: uuid.UUID, user_b: uuid.UUID) -> bool:
        """True when an active match exists for the pair, in either order."""
        match = await self.find_pair(user_a, user_b)
        return match is not None and match.is_active

    async def count_active_matches(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Match).where(
                and_(involves_user(user_id), Match.is_active == True)
            )
        )
        return result.scalar_one()

    async def recent_matches(self, user_id: uuid.UUID, days: int = 7) -> list[MatchResponse]:
        """Active matches made within the last `days` days, newest first."""
        if days < 0:
            raise InvalidOperationError("days must be >= 0")
        since = self.clock() - timedelta(days=days)
        result = await self.db.execute(
            select(Match)
            .where(and_(involves_user(user_id), Match.is_active == True, Match.matched_at >= since))
            .order_by(Match.matched_at.desc(), Match.id)
        )
        return [to_match_response(match, user_id) for match in result.scalars()]
