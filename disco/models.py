"""Domain models for matching.

Value objects (preferences, scores) are frozen pydantic models. Persisted
records (matches, reports) serialize to camelCase documents for Firestore.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

MIN_AGE = 18
MAX_AGE = 120


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class PrivacyMode(str, Enum):
    STANDARD = "standard"
    STRICT = "strict"


class TimeWindow(str, Enum):
    ANYTIME = "anytime"
    TODAY = "today"
    THIS_WEEK = "thisWeek"
    THIS_MONTH = "thisMonth"


class AgeRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int = Field(18, ge=MIN_AGE, le=MAX_AGE)
    max: int = Field(99, ge=MIN_AGE, le=MAX_AGE)

    @model_validator(mode="after")
    def _ordered(self) -> "AgeRange":
        if self.min > self.max:
            raise ValueError("ageRange.min must not exceed ageRange.max")
        return self


class MatchPreferences(BaseModel):
    """Canonical, fully-populated match preferences for one user.

    Only ever built through ``normalize_preferences``; nothing downstream of
    normalization sees a partial preference record.
    """

    model_config = ConfigDict(frozen=True)

    max_distance: float = 50
    age_range: AgeRange = AgeRange()
    activity_types: frozenset[str] = frozenset()
    availability: frozenset[str] = frozenset()
    gender: frozenset[str] = frozenset()
    looking_for: frozenset[str] = frozenset()
    relationship_type: frozenset[str] = frozenset()
    verified_only: bool = False
    with_photo: bool = True
    privacy_mode: PrivacyMode = PrivacyMode.STANDARD
    time_window: TimeWindow = TimeWindow.ANYTIME
    use_bluetooth_proximity: bool = False

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored camelCase shape (sets as sorted lists)."""

        return {
            "maxDistance": self.max_distance,
            "ageRange": {"min": self.age_range.min, "max": self.age_range.max},
            "activityTypes": sorted(self.activity_types),
            "availability": sorted(self.availability),
            "gender": sorted(self.gender),
            "lookingFor": sorted(self.looking_for),
            "relationshipType": sorted(self.relationship_type),
            "verifiedOnly": self.verified_only,
            "withPhoto": self.with_photo,
            "privacyMode": self.privacy_mode.value,
            "timeWindow": self.time_window.value,
            "useBluetoothProximity": self.use_bluetooth_proximity,
        }


class MatchScore(BaseModel):
    """Total score plus per-criterion breakdown, every value in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    total: float = 0.0
    distance: float = 0.0
    interests: float = 0.0
    verification: float = 0.0
    availability: float = 0.0
    preferences: float = 0.0
    age: float = 0.0
    photo: float = 0.0
    # Informational only, not part of the weighted total.
    distance_km: Optional[float] = None
    common_interests: tuple[str, ...] = ()

    def breakdown(self) -> dict[str, float]:
        return {
            "distance": self.distance,
            "interests": self.interests,
            "verification": self.verification,
            "availability": self.availability,
            "preferences": self.preferences,
            "age": self.age,
            "photo": self.photo,
        }

    def to_document(self) -> dict[str, Any]:
        return {
            "total": self.total,
            **self.breakdown(),
            "distanceKm": self.distance_km,
            "commonInterests": list(self.common_interests),
        }

    @classmethod
    def from_document(cls, data: Any) -> "MatchScore":
        # Older records stored only the numeric total.
        if isinstance(data, (int, float)):
            return cls(total=float(data))
        if not isinstance(data, dict):
            return cls()
        return cls(
            total=float(data.get("total", 0.0)),
            distance=float(data.get("distance", 0.0)),
            interests=float(data.get("interests", 0.0)),
            verification=float(data.get("verification", 0.0)),
            availability=float(data.get("availability", 0.0)),
            preferences=float(data.get("preferences", 0.0)),
            age=float(data.get("age", 0.0)),
            photo=float(data.get("photo", 0.0)),
            distance_km=data.get("distanceKm"),
            common_interests=tuple(data.get("commonInterests") or ()),
        )


def make_pair_key(user_a: str, user_b: str) -> str:
    """Canonical unordered key for a pair of users."""

    first, second = sorted((user_a, user_b))
    return f"{first}:{second}"


def match_document_id(user_id: str, matched_user_id: str) -> str:
    """Deterministic id for one direction of a pair."""

    return f"{user_id}_{matched_user_id}"


class Match(BaseModel):
    """One user's match record about another user.

    Each direction of a pair is its own record with a deterministic id, so a
    direction is never duplicated. ``pair_key`` groups both directions.
    """

    id: str
    user_id: str
    matched_user_id: str
    pair_key: str
    status: MatchStatus = MatchStatus.PENDING
    score: MatchScore = MatchScore()
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        user_id: str,
        matched_user_id: str,
        status: MatchStatus = MatchStatus.PENDING,
        score: MatchScore | None = None,
    ) -> "Match":
        now = utcnow()
        return cls(
            id=match_document_id(user_id, matched_user_id),
            user_id=user_id,
            matched_user_id=matched_user_id,
            pair_key=make_pair_key(user_id, matched_user_id),
            status=status,
            score=score or MatchScore(),
            created_at=now,
            updated_at=now,
        )

    def with_status(self, status: MatchStatus) -> "Match":
        return self.model_copy(update={"status": status, "updated_at": utcnow()})

    def with_score(self, score: MatchScore) -> "Match":
        return self.model_copy(update={"score": score, "updated_at": utcnow()})

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "matchedUserId": self.matched_user_id,
            "pairKey": self.pair_key,
            "status": self.status.value,
            "score": self.score.to_document(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any], doc_id: str | None = None) -> "Match":
        user_id = data["userId"]
        matched_user_id = data["matchedUserId"]
        return cls(
            id=data.get("id") or doc_id or match_document_id(user_id, matched_user_id),
            user_id=user_id,
            matched_user_id=matched_user_id,
            pair_key=data.get("pairKey") or make_pair_key(user_id, matched_user_id),
            status=MatchStatus(str(data.get("status", "pending")).lower()),
            score=MatchScore.from_document(data.get("score")),
            created_at=data.get("createdAt") or utcnow(),
            updated_at=data.get("updatedAt") or utcnow(),
        )


class MatchReport(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    reporter_id: str
    reported_user_id: str
    reason: str
    created_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "reporterId": self.reporter_id,
            "reportedUserId": self.reported_user_id,
            "reason": self.reason,
            "createdAt": self.created_at,
        }


class CandidateQuery(BaseModel):
    """Filters the store applies before any scoring happens."""

    model_config = ConfigDict(frozen=True)

    exclude_user_id: str
    verified_only: bool = False
    with_photo: bool = True
    limit: int = 100


class RankedMatch(BaseModel):
    """A scored candidate as returned by find_matches."""

    user_id: str
    score: MatchScore
    profile: dict[str, Any] = {}


class StatusUpdateResult(BaseModel):
    match: Match
    previous_status: Optional[MatchStatus] = None
    chat_room_created: bool = False
    chat_room_id: Optional[str] = None
    chat_room_error: Optional[str] = None
