"""Deterministic scoring utilities for matching."""

from __future__ import annotations

import math
from typing import Iterable

from disco.models import MatchPreferences, MatchScore
from disco.utils.geo import distance_between_km
from disco.utils.logging_config import logger

MATCH_WEIGHTS: dict[str, float] = {
    "distance": 0.30,
    "interests": 0.20,
    "verification": 0.10,
    "availability": 0.15,
    "preferences": 0.15,
    # Reserved: age does not contribute yet, see calculate_match_score.
    "age": 0.05,
    "photo": 0.05,
}


def calculate_distance_score(distance_km: float, max_distance_km: float) -> float:
    """Proximity score in [0, 1]: 1 at the same spot, 0 at or beyond max.

    A non-positive max distance gives no proximity credit at all.
    """

    if max_distance_km <= 0:
        return 0.0
    return max(0.0, 1.0 - distance_km / max_distance_km)


def calculate_overlap_score(mine: Iterable[str], theirs: Iterable[str]) -> float:
    """Share of *my* tags the other side also has.

    Relative to the requester's own list, so a candidate covering all of them
    scores 1.0 no matter how many extra tags they have.
    """

    mine_set = set(mine)
    if not mine_set:
        return 0.0
    return len(mine_set & set(theirs)) / len(mine_set)


def has_any_overlap(mine: Iterable[str], theirs: Iterable[str]) -> bool:
    return bool(set(mine) & set(theirs))


def _candidate_genders(candidate: dict) -> frozenset[str]:
    gender = candidate.get("gender")
    if not gender:
        return frozenset()
    if isinstance(gender, str):
        return frozenset([gender])
    return frozenset(str(g) for g in gender if g)


def calculate_preference_score(
    user_prefs: MatchPreferences,
    candidate_prefs: MatchPreferences,
    candidate: dict,
) -> float:
    """Fraction of gender / looking-for / relationship-type checks that pass.

    A check only counts when both sides declared something. Returns 0.0 when
    no check applies.
    """

    checks = [
        (user_prefs.gender, _candidate_genders(candidate)),
        (user_prefs.looking_for, candidate_prefs.looking_for),
        (user_prefs.relationship_type, candidate_prefs.relationship_type),
    ]
    applicable = [(mine, theirs) for mine, theirs in checks if mine and theirs]
    if not applicable:
        return 0.0

    passed = sum(1 for mine, theirs in applicable if has_any_overlap(mine, theirs))
    return passed / len(applicable)


def calculate_match_score(
    user: dict,
    candidate: dict,
    user_prefs: MatchPreferences,
    candidate_prefs: MatchPreferences,
) -> MatchScore | None:
    """Weighted match score of ``candidate`` from ``user``'s point of view.

    Returns None when either side has no resolvable location: such a pair is
    not scoreable, which is different from scoring 0.
    """

    distance_km = distance_between_km(user, candidate)
    if distance_km is None:
        logger.debug(
            "Pair not scoreable (missing location): candidate=%s",
            candidate.get("uid"),
        )
        return None

    components = {
        "distance": calculate_distance_score(distance_km, user_prefs.max_distance),
        "interests": calculate_overlap_score(
            user_prefs.activity_types, candidate_prefs.activity_types
        ),
        "verification": 1.0 if candidate.get("emailVerified") else 0.0,
        "availability": calculate_overlap_score(
            user_prefs.availability, candidate_prefs.availability
        ),
        "preferences": calculate_preference_score(
            user_prefs, candidate_prefs, candidate
        ),
        # Age-based scoring is not defined yet; the weight stays reserved.
        "age": 0.0,
        "photo": 1.0 if candidate.get("profileImage") else 0.0,
    }

    total = sum(MATCH_WEIGHTS[name] * value for name, value in components.items())

    return MatchScore(
        total=min(max(total, 0.0), 1.0),
        distance_km=distance_km,
        common_interests=tuple(
            sorted(user_prefs.activity_types & candidate_prefs.activity_types)
        ),
        **components,
    )


def is_within_age_range(candidate: dict, prefs: MatchPreferences) -> bool:
    """Candidates without a usable age are kept."""

    age = candidate.get("age")
    if isinstance(age, bool) or not isinstance(age, (int, float)):
        return True
    if not math.isfinite(age):
        return True
    return prefs.age_range.min <= age <= prefs.age_range.max
