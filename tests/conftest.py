"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before any disco module is imported)
  - An in-memory store and a recording chat client
  - Mock Firebase wiring for the Firestore store tests
"""

import os
import pytest
from unittest.mock import MagicMock

# The config singleton is built at import time, so these must be in place
# before test modules import anything from disco.
TEST_ENV = {
    "FIREBASE_PROJECT_ID": "test-project",
    "GOOGLE_APPLICATION_CREDENTIALS": "/config/test-serviceAccountKey.json",
    "CHAT_SERVICE_URL": "http://chat.test",
    "SERVICE_TOKEN": "",
    "DEBUG": "True",
}
for _key, _value in TEST_ENV.items():
    os.environ[_key] = _value

from disco.models import (  # noqa: E402
    CandidateQuery,
    Match,
    MatchReport,
    make_pair_key,
    match_document_id,
)
from disco.services.match_orchestrator import MatchOrchestrator  # noqa: E402
from disco.utils.errors import StoreUnavailableError  # noqa: E402


class InMemoryMatchStore:
    """Dict-backed store with simple failure injection.

    ``fail_methods`` makes the named methods raise StoreUnavailableError;
    ``broken_preferences`` makes preference loads fail for specific users.
    """

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.preferences: dict[str, dict] = {}
        self.matches: dict[str, Match] = {}
        self.reports: list[MatchReport] = []
        self.fail_methods: set[str] = set()
        self.broken_preferences: set[str] = set()
        self.candidate_queries: list[CandidateQuery] = []

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_methods:
            raise StoreUnavailableError(f"{name} unavailable")

    def add_user(self, uid: str, preferences: dict | None = None, **fields) -> dict:
        user = {"uid": uid, "emailVerified": True, "profileImage": f"{uid}.jpg", **fields}
        self.users[uid] = user
        if preferences is not None:
            self.preferences[uid] = preferences
        return user

    def get_user(self, user_id):
        self._maybe_fail("get_user")
        return self.users.get(user_id)

    def get_user_preferences(self, user_id):
        self._maybe_fail("get_user_preferences")
        if user_id in self.broken_preferences:
            raise StoreUnavailableError(f"preferences for {user_id} unavailable")
        return self.preferences.get(user_id)

    def save_user_preferences(self, user_id, preferences):
        self._maybe_fail("save_user_preferences")
        self.preferences[user_id] = dict(preferences)

    def find_candidates(self, criteria):
        self._maybe_fail("find_candidates")
        self.candidate_queries.append(criteria)
        candidates = [
            u for uid, u in self.users.items() if uid != criteria.exclude_user_id
        ]
        if criteria.verified_only:
            candidates = [c for c in candidates if c.get("emailVerified")]
        if criteria.with_photo:
            candidates = [c for c in candidates if c.get("profileImage")]
        return candidates[: criteria.limit]

    def find_match(self, user_id, matched_user_id):
        self._maybe_fail("find_match")
        return self.matches.get(match_document_id(user_id, matched_user_id))

    def find_pair(self, user_a, user_b):
        self._maybe_fail("find_pair")
        key = make_pair_key(user_a, user_b)
        return [m for m in self.matches.values() if m.pair_key == key]

    def list_matches(self, user_id):
        self._maybe_fail("list_matches")
        return [
            m for m in self.matches.values()
            if user_id in (m.user_id, m.matched_user_id)
        ]

    def upsert_match(self, match):
        self._maybe_fail("upsert_match")
        self.matches[match.id] = match
        return match

    def record_match_score(self, user_id, matched_user_id, score):
        self._maybe_fail("record_match_score")
        key = match_document_id(user_id, matched_user_id)
        existing = self.matches.get(key)
        if existing is None:
            self.matches[key] = Match.create(user_id, matched_user_id, score=score)
        else:
            self.matches[key] = existing.with_score(score)

    def save_report(self, report):
        self._maybe_fail("save_report")
        self.reports.append(report)
        return report


class RecordingMessaging:
    """Chat client fake that records every call."""

    def __init__(self, response: dict | None = None, raises: Exception | None = None):
        self.response = response if response is not None else {"success": True, "roomId": "room-1"}
        self.raises = raises
        self.created: list[tuple[str, str]] = []
        self.archived: list[tuple[str, str]] = []

    def create_chat_room(self, user_a, user_b):
        self.created.append((user_a, user_b))
        if self.raises:
            raise self.raises
        return self.response

    def archive_chat_room(self, user_a, user_b):
        self.archived.append((user_a, user_b))
        return {"success": True}


@pytest.fixture
def store():
    return InMemoryMatchStore()


@pytest.fixture
def messaging():
    return RecordingMessaging()


@pytest.fixture
def make_messaging():
    """Build a RecordingMessaging with a custom response or error."""
    return RecordingMessaging


@pytest.fixture
def orchestrator(store, messaging):
    return MatchOrchestrator(store, messaging, scoring_workers=4)


@pytest.fixture
def mock_firebase_app(monkeypatch):
    """
    Provide a mock Firebase app for testing.

    Firestore calls made through get_db() will hit the returned mock db.
    """
    from disco.tools import firestore_tools

    mock_app = MagicMock()
    mock_db = MagicMock()

    monkeypatch.setattr(firestore_tools, "_db", None)
    monkeypatch.setattr("firebase_admin._apps", {"[DEFAULT]": mock_app})
    monkeypatch.setattr("firebase_admin.initialize_app", MagicMock(return_value=mock_app))
    monkeypatch.setattr("firebase_admin.firestore.client", MagicMock(return_value=mock_db))

    return {"app": mock_app, "db": mock_db}
