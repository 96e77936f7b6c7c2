"""Interfaces the matching service depends on.

``FirestoreMatchStore`` and ``ChatServiceClient`` are the production
implementations; tests pass in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from disco.models import CandidateQuery, Match, MatchReport, MatchScore


class MatchStore(Protocol):
    def get_user(self, user_id: str) -> dict | None: ...

    def get_user_preferences(self, user_id: str) -> dict | None: ...

    def save_user_preferences(self, user_id: str, preferences: dict) -> None: ...

    def find_candidates(self, criteria: CandidateQuery) -> list[dict]: ...

    def find_match(self, user_id: str, matched_user_id: str) -> Match | None: ...

    def find_pair(self, user_a: str, user_b: str) -> list[Match]: ...

    def list_matches(self, user_id: str) -> list[Match]: ...

    def upsert_match(self, match: Match) -> Match: ...

    def record_match_score(
        self, user_id: str, matched_user_id: str, score: MatchScore
    ) -> None: ...

    def save_report(self, report: MatchReport) -> MatchReport: ...


class MessagingClient(Protocol):
    def create_chat_room(self, user_a: str, user_b: str) -> dict: ...

    def archive_chat_room(self, user_a: str, user_b: str) -> dict: ...
