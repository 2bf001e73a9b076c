"""Unit tests for the compatibility scoring engine."""
import pytest

from app.schemas.profile import Preferences
from app.services.scoring_service import (
    CompatibilityScorer,
    common_interests,
    distance_km,
)
from tests.conftest import build_profile


@pytest.fixture
def scorer(settings):
    return CompatibilityScorer(settings)


class TestCommonInterests:

    def test_sorted_intersection(self):
        a = build_profile(interests=["travel", "coffee", "music"])
        b = build_profile(interests=["music", "food", "coffee"])
        assert common_interests(a, b) == ["coffee", "music"]

    def test_no_overlap(self):
        a = build_profile(interests=["gaming"])
        b = build_profile(interests=["fitness"])
        assert common_interests(a, b) == []


class TestScore:

    def test_worked_example(self, scorer):
        """Two shared interests of three, same age, idle, empty profile."""
        a = build_profile(age=30, interests=["coffee", "travel", "music"])
        b = build_profile(age=30, interests=["coffee", "travel"])
        common = common_interests(a, b)
        # interest 2/3*40 + age 15 + activity 0 + distance 15 + completeness 0
        expected = (2 / 3) * 40 + 15 + 0 + 15 + 0
        assert scorer.score(a, b, common) == pytest.approx(expected)

    def test_maximum_is_100(self, scorer):
        a = build_profile(age=28, interests=["coffee"], relationship_type="serious")
        b = build_profile(
            age=28,
            interests=["coffee"],
            relationship_type="serious",
            activity_score=1000,
            profile_completeness=100,
        )
        assert scorer.score(a, b, ["coffee"]) == pytest.approx(100.0)

    def test_age_gap_floors_at_zero(self, scorer):
        a = build_profile(age=20)
        b = build_profile(age=60)
        # 40 years × 0.5 = 20 > 15, so the age component is 0
        assert scorer.score(a, b, []) == pytest.approx(15.0)

    def test_activity_and_completeness_are_clamped(self, scorer):
        a = build_profile(age=30)
        b = build_profile(age=30, activity_score=5000, profile_completeness=250)
        assert scorer.score(a, b, []) == pytest.approx(15 + 15 + 15 + 10)

    def test_distance_penalty_uses_requester_radius(self, scorer):
        a = build_profile(age=30, preferences=Preferences(distance=10))
        b = build_profile(age=30)
        # 5 km of a 10 km radius costs 2.5 points
        assert scorer.score(a, b, [], distance=5.0) == pytest.approx(15 + 12.5)

    def test_non_positive_radius_treated_as_one(self, scorer):
        a = build_profile(age=30, preferences=Preferences(distance=0))
        b = build_profile(age=30)
        assert scorer.score(a, b, [], distance=1.0) == pytest.approx(15 + 10)

    def test_relationship_bonus_needs_both_set(self, scorer):
        a = build_profile(age=30, relationship_type="")
        b = build_profile(age=30, relationship_type="")
        assert scorer.score(a, b, []) == pytest.approx(30.0)

    def test_deterministic_and_in_range(self, scorer):
        a = build_profile(age=22, interests=["gaming", "movies"], activity_score=300)
        b = build_profile(age=41, interests=["movies"], activity_score=900, profile_completeness=70)
        common = common_interests(a, b)
        first = scorer.score(a, b, common, distance=12.0)
        assert first == scorer.score(a, b, common, distance=12.0)
        assert 0 <= first <= 100


class TestQuickScore:

    def test_close_age_and_shared_interests(self):
        a = build_profile(age=25, interests=["coffee", "music"], relationship_type="casual")
        b = build_profile(age=27, interests=["coffee", "music"], relationship_type="casual")
        # 50 + 20 + 30 + 10 = 110, capped
        assert CompatibilityScorer.quick_score(a, b, ["coffee", "music"]) == 100

    def test_medium_age_gap(self):
        a = build_profile(age=25, interests=["coffee", "music"])
        b = build_profile(age=33, interests=["coffee"])
        # 50 + 10 + (1/2 × 30)
        assert CompatibilityScorer.quick_score(a, b, ["coffee"]) == 75

    def test_baseline(self):
        a = build_profile(age=20)
        b = build_profile(age=45)
        assert CompatibilityScorer.quick_score(a, b, []) == 50


class TestDistance:

    def test_none_without_coordinates(self):
        a = build_profile(latitude=52.52, longitude=13.40)
        b = build_profile()
        assert distance_km(a, b) is None

    def test_berlin_to_hamburg(self):
        berlin = build_profile(latitude=52.5200, longitude=13.4050)
        hamburg = build_profile(latitude=53.5511, longitude=9.9937)
        assert distance_km(berlin, hamburg) == pytest.approx(255, abs=5)

    def test_same_point_is_zero(self):
        a = build_profile(latitude=10.0, longitude=10.0)
        assert distance_km(a, a) == pytest.approx(0.0)
