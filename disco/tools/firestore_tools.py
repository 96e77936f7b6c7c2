"""Firestore-backed store for users, preferences and matches.

Centralizes query shapes, error handling and logging so the matching graph
and orchestrator stay focused on orchestration logic. Every backend failure
surfaces as ``StoreUnavailableError``.
"""

from __future__ import annotations

import os

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import AlreadyExists

from disco.models import (
    CandidateQuery,
    Match,
    MatchReport,
    MatchScore,
    make_pair_key,
    match_document_id,
)
from disco.utils.errors import StoreUnavailableError
from disco.utils.logging_config import logger

USERS = "users"
PREFERENCES = "match_preferences"
MATCHES = "matches"
REPORTS = "match_reports"

_db: firestore.Client | None = None


def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        if not firebase_admin._apps:
            cred_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
            if not cred_path:
                raise RuntimeError(
                    "GOOGLE_APPLICATION_CREDENTIALS is not set"
                )

            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)

        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise StoreUnavailableError(str(exc)) from exc


def _with_uid(doc) -> dict:
    data = doc.to_dict() or {}
    data.setdefault("uid", doc.id)
    return data


class FirestoreMatchStore:
    """Store collaborator used by the match orchestrator.

    The client is resolved lazily so constructing the store never touches
    the network; pass ``db`` explicitly to use a specific client.
    """

    def __init__(self, db: firestore.Client | None = None):
        self._client = db

    @property
    def db(self) -> firestore.Client:
        if self._client is None:
            self._client = get_db()
        return self._client

    # ------------------------------------------------------------------
    # Users & preferences
    # ------------------------------------------------------------------
    def get_user(self, user_id: str) -> dict | None:
        """Fetch users/{user_id}; None when absent."""

        try:
            doc = self.db.collection(USERS).document(user_id).get()
            if not doc.exists:
                return None
            return _with_uid(doc)
        except Exception as exc:
            logger.error("Failed to fetch user: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def get_user_preferences(self, user_id: str) -> dict | None:
        """Raw stored preference record; normalization happens upstream."""

        try:
            doc = self.db.collection(PREFERENCES).document(user_id).get()
            if not doc.exists:
                return None
            return doc.to_dict() or {}
        except Exception as exc:
            logger.error("Failed to fetch preferences: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def save_user_preferences(self, user_id: str, preferences: dict) -> None:
        try:
            self.db.collection(PREFERENCES).document(user_id).set(
                {**preferences, "userId": user_id,
                 "updatedAt": firestore.SERVER_TIMESTAMP}
            )
        except Exception as exc:
            logger.error("Failed to save preferences: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def find_candidates(self, criteria: CandidateQuery) -> list[dict]:
        """Query candidate users before scoring.

        The verified flag is filtered server-side. The photo check is done in
        memory since Firestore cannot query for non-empty strings without a
        range index.
        """

        try:
            query = self.db.collection(USERS)
            if criteria.verified_only:
                query = query.where("emailVerified", "==", True)
            # One extra so dropping the requester still leaves `limit` rows.
            query = query.limit(criteria.limit + 1)

            candidates = [
                user for user in (_with_uid(doc) for doc in query.stream())
                if user["uid"] != criteria.exclude_user_id
            ]
            if criteria.with_photo:
                candidates = [c for c in candidates if c.get("profileImage")]
            return candidates[: criteria.limit]
        except Exception as exc:
            logger.error("Failed to query candidates: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------
    def find_match(self, user_id: str, matched_user_id: str) -> Match | None:
        """Fetch the record for one direction of a pair."""

        try:
            doc = (
                self.db.collection(MATCHES)
                .document(match_document_id(user_id, matched_user_id))
                .get()
            )
            if not doc.exists:
                return None
            return Match.from_document(doc.to_dict() or {}, doc_id=doc.id)
        except Exception as exc:
            logger.error("Failed to fetch match: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def find_pair(self, user_a: str, user_b: str) -> list[Match]:
        """Both directions of a pair (zero, one or two records)."""

        try:
            query = self.db.collection(MATCHES).where(
                "pairKey", "==", make_pair_key(user_a, user_b)
            )
            return [
                Match.from_document(doc.to_dict() or {}, doc_id=doc.id)
                for doc in query.stream()
            ]
        except Exception as exc:
            logger.error("Failed to fetch match pair: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def list_matches(self, user_id: str) -> list[Match]:
        """All records where the user is on either side.

        Two single-field queries instead of an OR to avoid composite indexes.
        """

        try:
            collection = self.db.collection(MATCHES)
            docs = list(collection.where("userId", "==", user_id).stream())
            docs += list(collection.where("matchedUserId", "==", user_id).stream())
            return [
                Match.from_document(doc.to_dict() or {}, doc_id=doc.id)
                for doc in docs
            ]
        except Exception as exc:
            logger.error("Failed to list matches: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def upsert_match(self, match: Match) -> Match:
        try:
            self.db.collection(MATCHES).document(match.id).set(match.to_document())
            return match
        except Exception as exc:
            logger.error("Failed to save match: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def record_match_score(
        self, user_id: str, matched_user_id: str, score: MatchScore
    ) -> None:
        """Create a pending record with ``score``, or update only the score.

        ``create`` fails if the document exists, and the fallback ``update``
        writes just the score fields, so a status set concurrently by the
        user is never overwritten.
        """

        try:
            ref = self.db.collection(MATCHES).document(
                match_document_id(user_id, matched_user_id)
            )
            try:
                ref.create(
                    Match.create(user_id, matched_user_id, score=score).to_document()
                )
            except AlreadyExists:
                ref.update(
                    {
                        "score": score.to_document(),
                        "updatedAt": firestore.SERVER_TIMESTAMP,
                    }
                )
        except Exception as exc:
            logger.error("Failed to record match score: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc

    def save_report(self, report: MatchReport) -> MatchReport:
        try:
            self.db.collection(REPORTS).document(report.id).set(report.to_document())
            return report
        except Exception as exc:
            logger.error("Failed to save report: %s", str(exc))
            raise StoreUnavailableError(str(exc)) from exc
