"""
Tests for great-circle distance and compatibility scoring.
Pure functions, no database.
"""

import pytest

from swipematch.models import Preference, Profile
from swipematch.services.geo import distance_km, profile_distance_km
from swipematch.services.scoring import CompatibilityScorer, ScoringWeights

from conftest import km_north


def make_preference(min_age=25, max_age=35, max_distance_km=50):
    return Preference(
        preferred_gender="female",
        min_age=min_age,
        max_age=max_age,
        max_distance_km=max_distance_km,
    )


@pytest.fixture
def scorer():
    return CompatibilityScorer(ScoringWeights())


# ==================== Distance ====================

def test_distance_is_symmetric():
    london = (51.5074, -0.1278)
    paris = (48.8566, 2.3522)
    assert distance_km(*london, *paris) == pytest.approx(distance_km(*paris, *london))


def test_distance_to_self_is_zero():
    assert distance_km(40.7128, -74.0060, 40.7128, -74.0060) == 0.0


def test_distance_london_paris():
    assert distance_km(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343.5, abs=1.0)


def test_distance_along_meridian():
    assert distance_km(0.0, 0.0, km_north(10), 0.0) == pytest.approx(10.0, abs=1e-6)


def test_distance_antipodal_points():
    half_circumference = 6371.0 * 3.141592653589793
    assert distance_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(half_circumference, rel=1e-9)


def test_distance_unknown_when_coordinate_missing():
    assert distance_km(None, 0.0, 1.0, 1.0) is None
    assert distance_km(1.0, 1.0, 1.0, None) is None


def test_profile_distance_unknown_without_profile_or_location():
    located = Profile(latitude=10.0, longitude=10.0)
    unlocated = Profile(latitude=None, longitude=None)
    assert profile_distance_km(located, None) is None
    assert profile_distance_km(located, unlocated) is None
    assert profile_distance_km(located, located) == 0.0


# ==================== Scoring ====================

def test_example_candidate_scores_76(scorer):
    # 3 shared interests, 10 km away, age at the midpoint of 25-35
    score = scorer.score(make_preference(), candidate_age=30, common_interests=3, distance_km=10.0)
    assert score == 76


def test_interest_overlap_saturates(scorer):
    preference = make_preference()
    five = scorer.score(preference, 30, 5, 10.0)
    ten = scorer.score(preference, 30, 10, 10.0)
    assert five == ten


def test_unknown_distance_counts_as_full_proximity(scorer):
    preference = make_preference()
    assert scorer.score(preference, 30, 0, None) == scorer.score(preference, 30, 0, 0.0)
    assert scorer.proximity_score(None, 50) == 1.0


def test_proximity_floors_at_zero(scorer):
    assert scorer.proximity_score(80.0, 50) == 0.0


def test_age_closeness_floors_at_zero(scorer):
    assert scorer.age_score(90, 25, 35) == 0.0
    assert scorer.age_score(30, 25, 35) == 1.0


def test_score_bounds(scorer):
    preference = make_preference(min_age=18, max_age=99, max_distance_km=500)
    for age in (18, 40, 99, 120):
        for common in (0, 1, 5, 50):
            for distance in (None, 0.0, 250.0, 10000.0):
                score = scorer.score(preference, age, common, distance)
                assert 0 <= score <= 100


def test_perfect_candidate_scores_100(scorer):
    assert scorer.score(make_preference(), 30, 5, 0.0) == 100


def test_half_rounds_up():
    scorer = CompatibilityScorer(ScoringWeights(interest=1.0, proximity=0.0, age=0.0, interest_saturation=8))
    # 1/8 of the interest sub-score is exactly 12.5
    assert scorer.score(make_preference(), 30, 1, None) == 13


def test_weights_are_normalized():
    doubled = CompatibilityScorer(ScoringWeights(interest=0.8, proximity=0.8, age=0.4))
    assert doubled.score(make_preference(), 30, 3, 10.0) == 76


def test_invalid_weights_rejected():
    with pytest.raises(ValueError):
        ScoringWeights(interest=-0.1)
    with pytest.raises(ValueError):
        ScoringWeights(interest=0.0, proximity=0.0, age=0.0)
    with pytest.raises(ValueError):
        ScoringWeights(interest_saturation=0)
