"""
Candidate Ranking
Turns the filtered candidate universe into an ordered, paginated feed.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Optional
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from swipematch.config import settings
from swipematch.core.exceptions import NotFoundError, InvalidOperationError
from swipematch.models.user import User, Profile, Interest, user_interests
from swipematch.schemas.match import CandidateView, PageResponse
from swipematch.services.candidates import CandidateFilter, calculate_age, get_preference
from swipematch.services.geo import profile_distance_km
from swipematch.services.scoring import CompatibilityScorer


logger = logging.getLogger(__name__)


@dataclass
class ScoredCandidate:
    user: User
    profile: Optional[Profile]
    age: int
    interests: list[str]
    common_interests: int
    distance_km: Optional[float]
    score: int

    def sort_key(self):
        # Score desc, known distance asc (unknown last), then id asc
        if self.distance_km is None:
            distance_key = (1, 0.0)
        else:
            distance_key = (0, self.distance_km)
        return (-self.score, distance_key, self.user.id)

    def to_view(self) -> CandidateView:
        profile = self.profile
        return CandidateView(
            user_id=self.user.id,
            username=self.user.username,
            gender=self.user.gender,
            age=self.age,
            city=self.user.city,
            bio=profile.bio if profile else None,
            height_cm=profile.height_cm if profile else None,
            occupation=profile.occupation if profile else None,
            education=profile.education if profile else None,
            interests=self.interests,
            common_interests_count=self.common_interests,
            distance_km=round(self.distance_km, 2) if self.distance_km is not None else None,
            compatibility_score=self.score,
        )


class CandidateRanker:
    """Composes the candidate filter with distance and compatibility scoring."""

    def __init__(
        self,
        db: AsyncSession,
        scorer: Optional[CompatibilityScorer] = None,
        today: Optional[date] = None,
    ):
        self.db = db
        self.scorer = scorer or CompatibilityScorer()
        self.today = today
        self.candidate_filter = CandidateFilter(db, today=today)

    async def _load_profiles(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, Profile]:
        if not user_ids:
            return {}
        result = await self.db.execute(select(Profile).where(Profile.user_id.in_(user_ids)))
        return {profile.user_id: profile for profile in result.scalars()}

    async def _load_interests(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, dict[int, str]]:
        """Interest id -> name per user."""
        interests: dict[uuid.UUID, dict[int, str]] = defaultdict(dict)
        if not user_ids:
            return interests
        result = await self.db.execute(
            select(user_interests.c.user_id, Interest.id, Interest.name)
            .join(Interest, Interest.id == user_interests.c.interest_id)
            .where(user_interests.c.user_id.in_(user_ids))
        )
        for user_id, interest_id, name in result.all():
            interests[user_id][interest_id] = name
        return interests

    async def score_candidates(self, user_id: uuid.UUID) -> list[ScoredCandidate]:
        """Every eligible candidate within range, in feed order."""
        requester = await self.db.get(User, user_id)
        if requester is None:
            raise NotFoundError(f"User {user_id} not found")
        preference = await get_preference(self.db, user_id)

        candidates = [
            candidate
            async for candidate in self.candidate_filter.eligible_candidates(user_id, preference)
        ]
        if not candidates:
            logger.info("No candidates found for user %s", user_id)
            return []

        candidate_ids = [candidate.id for candidate in candidates]
        profiles = await self._load_profiles(candidate_ids + [user_id])
        interests = await self._load_interests(candidate_ids + [user_id])

        my_profile = profiles.get(user_id)
        my_interests = set(interests.get(user_id, {}))
        today = self.today or date.today()

        scored = []
        for candidate in candidates:
            profile = profiles.get(candidate.id)
            distance = profile_distance_km(my_profile, profile)
            # Hard distance cut applies only when distance is known
            if distance is not None and distance > preference.max_distance_km:
                continue

            their_interests = interests.get(candidate.id, {})
            common = len(my_interests & set(their_interests))
            age = calculate_age(candidate.birth_date, today)
            score = self.scorer.score(preference, age, common, distance)

            scored.append(
                ScoredCandidate(
                    user=candidate,
                    profile=profile,
                    age=age,
                    interests=sorted(their_interests.values()),
                    common_interests=common,
                    distance_km=distance,
                    score=score,
                )
            )

        scored.sort(key=ScoredCandidate.sort_key)
        logger.info("Ranked %d candidates for user %s", len(scored), user_id)
        return scored

    async def ranked_feed(
        self, user_id: uuid.UUID, page: int = 0, page_size: int = None
    ) -> PageResponse[CandidateView]:
        """
        One page of the feed, ordered by score desc, distance asc, id asc.
        Pages are zero-based and stable while inputs are unchanged.
        """
        if page_size is None:
            page_size = settings.FEED_DEFAULT_PAGE_SIZE
        if page < 0:
            raise InvalidOperationError("page must be >= 0")
        if page_size < 1 or page_size > settings.FEED_MAX_PAGE_SIZE:
            raise InvalidOperationError(
                f"page_size must be between 1 and {settings.FEED_MAX_PAGE_SIZE}"
            )

        logger.info("Finding candidates for user %s (page: %d, size: %d)", user_id, page, page_size)
        scored = await self.score_candidates(user_id)

        start = page * page_size
        items = [candidate.to_view() for candidate in scored[start:start + page_size]]
        return PageResponse[CandidateView].build(items, page, page_size, len(scored))

    async def next_candidate(self, user_id: uuid.UUID) -> Optional[CandidateView]:
        """Best-ranked candidate, or None if the feed is empty."""
        feed = await self.ranked_feed(user_id, page=0, page_size=1)
        return feed.items[0] if feed.items else None
