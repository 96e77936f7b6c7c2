"""Preference normalization.

Stored preference records are loosely shaped: fields may be missing, None,
camelCase (Firestore/web app) or snake_case (Python callers). Everything is
turned into one canonical ``MatchPreferences`` here.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Iterable, Mapping, TypeVar

from disco.models import (
    MAX_AGE,
    MIN_AGE,
    AgeRange,
    MatchPreferences,
    PrivacyMode,
    TimeWindow,
)
from disco.utils.logging_config import logger

E = TypeVar("E", bound=Enum)

DEFAULT_MATCH_PREFERENCES: dict[str, Any] = {
    "maxDistance": 50,
    "ageRange": {"min": 18, "max": 99},
    "activityTypes": [],
    "availability": [],
    "gender": [],
    "lookingFor": [],
    "relationshipType": [],
    "verifiedOnly": False,
    "withPhoto": True,
    "privacyMode": "standard",
    "timeWindow": "anytime",
    "useBluetoothProximity": False,
}

_SNAKE_TO_CAMEL = {
    "max_distance": "maxDistance",
    "age_range": "ageRange",
    "activity_types": "activityTypes",
    "looking_for": "lookingFor",
    "relationship_type": "relationshipType",
    "verified_only": "verifiedOnly",
    "with_photo": "withPhoto",
    "privacy_mode": "privacyMode",
    "time_window": "timeWindow",
    "use_bluetooth_proximity": "useBluetoothProximity",
}
_CAMEL_TO_SNAKE = {camel: snake for snake, camel in _SNAKE_TO_CAMEL.items()}


def _lookup(raw: Mapping[str, Any], key: str) -> Any:
    """Read a camelCase key, falling back to its snake_case spelling."""

    value = raw.get(key)
    if value is None and key in _CAMEL_TO_SNAKE:
        value = raw.get(_CAMEL_TO_SNAKE[key])
    if value is None:
        return DEFAULT_MATCH_PREFERENCES[key]
    return value


def _as_tag_set(value: Any) -> frozenset[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        return frozenset()
    return frozenset(str(tag) for tag in value if tag is not None and tag != "")


def _as_enum(value: Any, enum_cls: type[E], default: E) -> E:
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        logger.debug("Unknown %s value %r; using default", enum_cls.__name__, value)
        return default


def _as_float(value: Any, default: float) -> float:
    number = None
    if not isinstance(value, bool):
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = None
    if number is None or not math.isfinite(number):
        logger.debug("Unusable number %r; using default", value)
        return default
    return number


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    logger.debug("Unusable flag %r; using default", value)
    return default


def _as_age_bound(value: Any, default: int) -> int:
    if value is None:
        return default
    age = int(_as_float(value, default))
    return min(max(age, MIN_AGE), MAX_AGE)


def _as_age_range(value: Any) -> AgeRange:
    """Bounds are clamped to [MIN_AGE, MAX_AGE]; an inverted range is swapped."""

    defaults = DEFAULT_MATCH_PREFERENCES["ageRange"]
    low, high = None, None
    if isinstance(value, Mapping):
        low, high = value.get("min"), value.get("max")
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        # The web app historically stored [min, max].
        low, high = value
    else:
        logger.debug("Unusable age range %r; using default", value)

    low = _as_age_bound(low, defaults["min"])
    high = _as_age_bound(high, defaults["max"])
    if low > high:
        low, high = high, low
    return AgeRange(min=low, max=high)


def normalize_preferences(raw: Mapping[str, Any] | None) -> MatchPreferences:
    """Fill every absent field with its default and return canonical preferences.

    Never raises: missing, None or unusable values take their defaults, so
    ``normalize_preferences({})`` equals the default preference object.
    """

    raw = raw or {}
    return MatchPreferences(
        max_distance=_as_float(
            _lookup(raw, "maxDistance"), DEFAULT_MATCH_PREFERENCES["maxDistance"]
        ),
        age_range=_as_age_range(_lookup(raw, "ageRange")),
        activity_types=_as_tag_set(_lookup(raw, "activityTypes")),
        availability=_as_tag_set(_lookup(raw, "availability")),
        gender=_as_tag_set(_lookup(raw, "gender")),
        looking_for=_as_tag_set(_lookup(raw, "lookingFor")),
        relationship_type=_as_tag_set(_lookup(raw, "relationshipType")),
        verified_only=_as_bool(_lookup(raw, "verifiedOnly"), False),
        with_photo=_as_bool(_lookup(raw, "withPhoto"), True),
        privacy_mode=_as_enum(
            _lookup(raw, "privacyMode"), PrivacyMode, PrivacyMode.STANDARD
        ),
        time_window=_as_enum(
            _lookup(raw, "timeWindow"), TimeWindow, TimeWindow.ANYTIME
        ),
        use_bluetooth_proximity=_as_bool(_lookup(raw, "useBluetoothProximity"), False),
    )
