"""
Compatibility Scoring
Combines interest overlap, proximity and age fit into a 0-100 score.
"""

from dataclasses import dataclass
from typing import Optional
import math

from swipematch.config import Settings, settings as default_settings


@dataclass(frozen=True)
class ScoringWeights:
    """Tunable weights for the three sub-scores."""

    interest: float = 0.4
    proximity: float = 0.4
    age: float = 0.2
    interest_saturation: int = 5

    def __post_init__(self):
        if min(self.interest, self.proximity, self.age) < 0:
            raise ValueError("Scoring weights must be non-negative")
        if self.interest + self.proximity + self.age <= 0:
            raise ValueError("At least one scoring weight must be positive")
        if self.interest_saturation < 1:
            raise ValueError("interest_saturation must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings = None) -> "ScoringWeights":
        settings = settings or default_settings
        return cls(
            interest=settings.SCORE_WEIGHT_INTEREST,
            proximity=settings.SCORE_WEIGHT_PROXIMITY,
            age=settings.SCORE_WEIGHT_AGE,
            interest_saturation=settings.INTEREST_SATURATION,
        )


class CompatibilityScorer:
    """
    Scores a candidate against the requester's preference.

    Each sub-score is normalized to [0, 1]:
    - interest overlap: min(common / saturation, 1)
    - proximity: 1 when distance is unknown or 0, else max(0, 1 - d / max_distance)
    - age closeness: max(0, 1 - |age - midpoint| / (max_age - min_age + 1))

    The final score is round(100 * weighted average), half rounded up.
    """

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights.from_settings()

    def interest_score(self, common_interests: int) -> float:
        if common_interests <= 0:
            return 0.0
        return min(common_interests / self.weights.interest_saturation, 1.0)

    @staticmethod
    def proximity_score(distance_km: Optional[float], max_distance_km: float) -> float:
        if distance_km is None or distance_km <= 0:
            return 1.0
        if max_distance_km <= 0:
            return 0.0
        return max(0.0, 1.0 - distance_km / max_distance_km)

    @staticmethod
    def age_score(candidate_age: int, min_age: int, max_age: int) -> float:
        midpoint = (min_age + max_age) / 2
        span = max_age - min_age + 1
        return max(0.0, 1.0 - abs(candidate_age - midpoint) / span)

    def score(self, preference, candidate_age: int, common_interests: int, distance_km: Optional[float]) -> int:
        w = self.weights
        weighted = (
            w.interest * self.interest_score(common_interests)
            + w.proximity * self.proximity_score(distance_km, preference.max_distance_km)
            + w.age * self.age_score(candidate_age, preference.min_age, preference.max_age)
        )
        average = weighted / (w.interest + w.proximity + w.age)
        return min(100, max(0, math.floor(average * 100 + 0.5)))
