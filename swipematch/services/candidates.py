"""
Candidate Filter
Produces the eligible candidate universe for a user from hard constraints.
"""

from datetime import date
from typing import AsyncIterator, Optional
import logging
import uuid

from sqlalchemy import select, and_, not_
from sqlalchemy.ext.asyncio import AsyncSession

from swipematch.core.exceptions import NotConfiguredError
from swipematch.models.user import User, Preference, PreferredGender
from swipematch.models.match import Swipe, Match


logger = logging.getLogger(__name__)


async def get_preference(db: AsyncSession, user_id: uuid.UUID) -> Preference:
    """Load a user's preference. Missing preferences fail closed."""
    result = await db.execute(select(Preference).where(Preference.user_id == user_id))
    preference = result.scalar_one_or_none()
    if preference is None:
        raise NotConfiguredError(f"User {user_id} has no discovery preferences")
    return preference


def calculate_age(birth_date: date, today: Optional[date] = None) -> int:
    """Calculate age from date of birth."""
    today = today or date.today()
    return today.year - birth_date.year - (
        (today.month, today.day) < (birth_date.month, birth_date.day)
    )


def years_before(day: date, years: int) -> date:
    """Same calendar day `years` earlier; Feb 29 falls back to Feb 28."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


def birth_date_bounds(min_age: int, max_age: int, today: Optional[date] = None) -> tuple[date, date]:
    """
    Inclusive birth date window for ages in [min_age, max_age].
    Returns (earliest, latest).
    """
    today = today or date.today()
    latest = years_before(today, min_age)
    earliest = date.fromordinal(years_before(today, max_age + 1).toordinal() + 1)
    return earliest, latest


class CandidateFilter:
    """
    Excludes the requester, anyone the requester already swiped, anyone
    actively matched with the requester, inactive users, and users outside
    the preferred gender and age window.
    """

    def __init__(self, db: AsyncSession, today: Optional[date] = None):
        self.db = db
        self.today = today

    def _query(self, user_id: uuid.UUID, preference: Preference):
        today = self.today or date.today()
        earliest, latest = birth_date_bounds(preference.min_age, preference.max_age, today)

        swiped = select(Swipe.swiped_id).where(Swipe.swiper_id == user_id)
        matched_low = select(Match.user1_id).where(
            and_(Match.user2_id == user_id, Match.is_active == True)
        )
        matched_high = select(Match.user2_id).where(
            and_(Match.user1_id == user_id, Match.is_active == True)
        )

        conditions = [
            User.id != user_id,
            User.is_active == True,
            User.birth_date >= earliest,
            User.birth_date <= latest,
            not_(User.id.in_(swiped)),
            not_(User.id.in_(matched_low)),
            not_(User.id.in_(matched_high)),
        ]

        gender = preference.gender_filter
        if gender is not PreferredGender.ANY:
            conditions.append(User.gender == gender.value)

        return select(User).where(and_(*conditions)).order_by(User.id)

    async def eligible_candidates(
        self, user_id: uuid.UUID, preference: Optional[Preference] = None
    ) -> AsyncIterator[User]:
        """
        Yield eligible candidates. Finite and restartable: each call issues
        a fresh query against current state.
        """
        if preference is None:
            preference = await get_preference(self.db, user_id)
        today = self.today or date.today()
        result = await self.db.execute(self._query(user_id, preference))

        count = 0
        for candidate in result.scalars():
            # Re-check age in Python, the SQL window is computed from the same date
            if not preference.accepts_age(calculate_age(candidate.birth_date, today)):
                continue
            count += 1
            yield candidate

        logger.debug("Candidate filter for user %s produced %d users", user_id, count)

    async def eligible_candidate_ids(
        self, user_id: uuid.UUID, preference: Optional[Preference] = None
    ) -> list[uuid.UUID]:
        return [candidate.id async for candidate in self.eligible_candidates(user_id, preference)]
