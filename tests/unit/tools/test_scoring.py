"""
Unit tests for deterministic scoring utilities.

Covers the distance score, the asymmetric overlap score, the binary
preference checks and the weighted composite score, including:
  - Missing locations (pair not scoreable)
  - Non-positive max distance
  - Empty preference lists
"""

import math

import pytest

from disco.models import MatchPreferences
from disco.tools.preference_tools import normalize_preferences
from disco.tools.scoring_tools import (
    MATCH_WEIGHTS,
    calculate_distance_score,
    calculate_match_score,
    calculate_overlap_score,
    calculate_preference_score,
    has_any_overlap,
    is_within_age_range,
)


def _lat_for_km(km: float) -> float:
    """Latitude offset from the equator that is exactly `km` away along a meridian."""
    return math.degrees(km / 6371.0)


class TestDistanceScore:
    """Test proximity scoring."""

    def test_same_location_perfect_score(self):
        assert calculate_distance_score(0, 10) == 1.0

    def test_half_way_is_half(self):
        assert calculate_distance_score(5, 10) == pytest.approx(0.5)

    def test_at_or_beyond_max_is_zero(self):
        assert calculate_distance_score(10, 10) == 0.0
        assert calculate_distance_score(250, 10) == 0.0

    def test_monotonically_non_increasing(self):
        scores = [calculate_distance_score(d, 20) for d in range(0, 30)]
        assert all(a >= b for a, b in zip(scores, scores[1:]))
        assert all(0.0 <= s <= 1.0 for s in scores)

    @pytest.mark.parametrize("max_distance", [0, -5])
    def test_non_positive_max_distance_gives_no_credit(self, max_distance):
        assert calculate_distance_score(0, max_distance) == 0.0
        assert calculate_distance_score(3, max_distance) == 0.0


class TestOverlapScore:
    """Test the asymmetric overlap score."""

    def test_empty_mine_is_zero(self):
        assert calculate_overlap_score(set(), {"hiking"}) == 0.0

    def test_identical_sets_are_one(self):
        tags = {"hiking", "coffee"}
        assert calculate_overlap_score(tags, tags) == 1.0

    def test_relative_to_requester_list(self):
        mine = {"hiking", "coffee"}
        theirs = {"hiking", "coffee", "chess", "climbing", "jazz"}
        assert calculate_overlap_score(mine, theirs) == 1.0
        # Reversed, the candidate only covers 2 of 5.
        assert calculate_overlap_score(theirs, mine) == pytest.approx(0.4)

    def test_no_shared_tags(self):
        assert calculate_overlap_score({"a"}, {"b"}) == 0.0

    def test_any_overlap(self):
        assert has_any_overlap({"a", "b"}, {"b"}) is True
        assert has_any_overlap({"a"}, set()) is False


class TestPreferenceScore:
    """Test gender / looking-for / relationship-type checks."""

    def test_no_applicable_checks_is_zero(self):
        prefs = MatchPreferences()
        assert calculate_preference_score(prefs, prefs, {}) == 0.0

    def test_only_counts_checks_where_both_sides_declared(self):
        user = normalize_preferences({"gender": ["female"], "lookingFor": ["friends"]})
        candidate_prefs = normalize_preferences({"lookingFor": ["dates"]})
        # gender passes, looking-for fails, relationship type not counted.
        score = calculate_preference_score(user, candidate_prefs, {"gender": "female"})
        assert score == pytest.approx(0.5)

    def test_all_three_pass(self):
        user = normalize_preferences({
            "gender": ["male", "female"],
            "lookingFor": ["friends"],
            "relationshipType": ["casual"],
        })
        candidate_prefs = normalize_preferences({
            "lookingFor": ["friends", "dates"],
            "relationshipType": ["casual"],
        })
        assert calculate_preference_score(user, candidate_prefs, {"gender": ["male"]}) == 1.0

    def test_one_of_three(self):
        user = normalize_preferences({
            "gender": ["female"],
            "lookingFor": ["friends"],
            "relationshipType": ["serious"],
        })
        candidate_prefs = normalize_preferences({
            "lookingFor": ["friends"],
            "relationshipType": ["casual"],
        })
        score = calculate_preference_score(user, candidate_prefs, {"gender": "male"})
        assert score == pytest.approx(1 / 3)


class TestCompositeScore:
    """Test the weighted composite score."""

    def test_weights_sum_to_one(self):
        assert sum(MATCH_WEIGHTS.values()) == pytest.approx(1.0)
        assert set(MATCH_WEIGHTS) == {
            "distance", "interests", "verification", "availability",
            "preferences", "age", "photo",
        }

    def test_missing_user_location_not_scoreable(self):
        prefs = MatchPreferences()
        user = {"uid": "a"}
        candidate = {"uid": "b", "locationLat": 1.0, "locationLng": 1.0}
        assert calculate_match_score(user, candidate, prefs, prefs) is None

    def test_missing_candidate_location_not_scoreable(self):
        prefs = MatchPreferences()
        user = {"uid": "a", "locationLat": 1.0, "locationLng": 1.0}
        candidate = {"uid": "b", "locationLat": 1.0}
        assert calculate_match_score(user, candidate, prefs, prefs) is None

    def test_reference_scenario(self):
        """A at (0,0) with maxDistance 10, B 5km away, half the activities."""
        user = {"uid": "a", "locationLat": 0.0, "locationLng": 0.0}
        candidate = {
            "uid": "b",
            "locationLat": _lat_for_km(5),
            "locationLng": 0.0,
            "emailVerified": True,
            "profileImage": "b.jpg",
            "gender": "female",
        }
        user_prefs = normalize_preferences({
            "maxDistance": 10,
            "activityTypes": ["hiking", "coffee", "chess", "jazz"],
            "availability": ["weekday-evening"],
            "gender": ["female"],
        })
        candidate_prefs = normalize_preferences({
            "activityTypes": ["hiking", "coffee", "climbing"],
            "availability": ["weekend-morning"],
        })

        score = calculate_match_score(user, candidate, user_prefs, candidate_prefs)

        assert score is not None
        assert score.distance == pytest.approx(0.5)
        assert score.interests == pytest.approx(0.5)
        assert score.verification == 1.0
        assert score.photo == 1.0
        assert score.availability == 0.0
        assert score.age == 0.0
        # Only the gender check applies and it passes.
        assert score.preferences == 1.0
        expected = (
            0.30 * 0.5 + 0.20 * 0.5 + 0.10 * 1 + 0.15 * 0
            + 0.15 * score.preferences + 0.05 * 0 + 0.05 * 1
        )
        assert score.total == pytest.approx(expected)
        assert score.common_interests == ("coffee", "hiking")
        assert score.distance_km == pytest.approx(5.0)

    def test_unverified_candidate_without_photo(self):
        user = {"uid": "a", "locationLat": 10.0, "locationLng": 10.0}
        candidate = {"uid": "b", "locationLat": 10.0, "locationLng": 10.0}
        prefs = MatchPreferences()
        score = calculate_match_score(user, candidate, prefs, prefs)
        assert score.verification == 0.0
        assert score.photo == 0.0
        assert score.distance == 1.0
        assert score.total == pytest.approx(0.30)

    def test_total_stays_in_unit_interval(self):
        user = {"uid": "a", "locationLat": 0.0, "locationLng": 0.0}
        candidate = {
            "uid": "b", "locationLat": 0.0, "locationLng": 0.0,
            "emailVerified": True, "profileImage": "x", "gender": "f",
        }
        prefs = normalize_preferences({
            "activityTypes": ["a"], "availability": ["b"], "gender": ["f"],
            "lookingFor": ["x"], "relationshipType": ["y"],
        })
        score = calculate_match_score(user, candidate, prefs, prefs)
        # Everything maxed except the reserved age weight.
        assert score.total == pytest.approx(0.95)
        assert 0.0 <= score.total <= 1.0

    def test_zero_max_distance_scores_distance_zero(self):
        user = {"uid": "a", "locationLat": 0.0, "locationLng": 0.0}
        candidate = {"uid": "b", "locationLat": 0.0, "locationLng": 0.0}
        prefs = normalize_preferences({"maxDistance": 0})
        score = calculate_match_score(user, candidate, prefs, MatchPreferences())
        assert score.distance == 0.0


class TestAgeRange:
    def test_candidate_without_age_is_kept(self):
        assert is_within_age_range({}, MatchPreferences()) is True

    def test_outside_range_is_dropped(self):
        prefs = normalize_preferences({"ageRange": {"min": 25, "max": 30}})
        assert is_within_age_range({"age": 24}, prefs) is False
        assert is_within_age_range({"age": 25}, prefs) is True
        assert is_within_age_range({"age": 31}, prefs) is False

    def test_float_age_is_compared(self):
        prefs = normalize_preferences({"ageRange": {"min": 25, "max": 30}})
        assert is_within_age_range({"age": 24.0}, prefs) is False
        assert is_within_age_range({"age": 25.0}, prefs) is True

    def test_boolean_and_nan_ages_are_unknown(self):
        prefs = normalize_preferences({"ageRange": {"min": 25, "max": 30}})
        assert is_within_age_range({"age": True}, prefs) is True
        assert is_within_age_range({"age": float("nan")}, prefs) is True
