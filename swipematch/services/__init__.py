# Swipematch core services

from .geo import distance_km, profile_distance_km
from .scoring import CompatibilityScorer, ScoringWeights
from .candidates import CandidateFilter, calculate_age, get_preference
from .ranking import CandidateRanker
from .matches import MatchLifecycle
from .conversations import ConversationTracker
from .swipes import SwipeProcessor
from .analytics import ConversationAnalytics

__all__ = [
    "distance_km",
    "profile_distance_km",
    "CompatibilityScorer",
    "ScoringWeights",
    "CandidateFilter",
    "calculate_age",
    "get_preference",
    "CandidateRanker",
    "MatchLifecycle",
    "ConversationTracker",
    "SwipeProcessor",
    "ConversationAnalytics",
]
