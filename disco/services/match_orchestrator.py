"""Match orchestration: ranking candidates and recording match decisions.

All collaborators are injected; nothing here reaches for module-level
clients. Use ``create_match_orchestrator`` to wire the production ones.
"""

from __future__ import annotations

from typing import Any, Mapping

from disco.config import Config, config
from disco.graphs.matching import create_matching_graph
from disco.models import (
    Match,
    MatchPreferences,
    MatchReport,
    MatchStatus,
    RankedMatch,
    StatusUpdateResult,
)
from disco.services.collaborators import MatchStore, MessagingClient
from disco.tools.chat_tools import ChatServiceClient
from disco.tools.firestore_tools import FirestoreMatchStore
from disco.tools.preference_tools import normalize_preferences
from disco.utils.errors import (
    GraphExecutionError,
    InvalidInputError,
    MatchBlockedError,
    StoreUnavailableError,
    UserNotFoundError,
)
from disco.utils.logging_config import logger


class MatchOrchestrator:
    """Entry point for every matching operation the API exposes."""

    def __init__(
        self,
        store: MatchStore,
        messaging: MessagingClient,
        *,
        max_candidates: int = 100,
        scoring_workers: int = 8,
        persist_matches: bool = True,
    ):
        self.store = store
        self.messaging = messaging
        self._graph = create_matching_graph(
            store,
            max_candidates=max_candidates,
            scoring_workers=scoring_workers,
            persist_matches=persist_matches,
        )

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------
    def find_matches(self, user_id: str) -> list[RankedMatch]:
        """Ranked candidates for ``user_id``, best first.

        Candidates that cannot be scored are left out. Raises
        ``UserNotFoundError`` for an unknown user and
        ``StoreUnavailableError`` when the user or the candidate pool
        cannot be loaded.
        """

        try:
            result = self._graph.invoke({"user_id": user_id})
        except Exception as exc:
            logger.exception("Matching graph failed for user=%s", user_id)
            raise GraphExecutionError(str(exc)) from exc

        error_code = result.get("error_code")
        if error_code == "user_not_found":
            raise UserNotFoundError(user_id)
        if error_code:
            raise StoreUnavailableError(result.get("error", "Store unavailable"))

        metadata = result.get("response_metadata", {})
        logger.info(
            "find_matches user=%s candidates=%s scored=%s skipped=%s",
            user_id,
            metadata.get("total_candidates"),
            metadata.get("scored_count"),
            metadata.get("skipped_count"),
        )
        return list(result.get("ranked_matches", []))

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def _load_pair(
        self, user_id: str, matched_user_id: str
    ) -> tuple[Match | None, Match | None]:
        """Return (own record, reverse record) for a pair."""

        own = reverse = None
        for record in self.store.find_pair(user_id, matched_user_id):
            if record.user_id == user_id and record.matched_user_id == matched_user_id:
                own = record
            elif record.user_id == matched_user_id and record.matched_user_id == user_id:
                reverse = record
        return own, reverse

    @staticmethod
    def _check_pair(user_id: str, matched_user_id: str) -> None:
        if not user_id or not matched_user_id:
            raise InvalidInputError("Both user ids are required")
        if user_id == matched_user_id:
            raise InvalidInputError("A user cannot match with themselves")

    def update_match_status(
        self, user_id: str, matched_user_id: str, status: MatchStatus | str
    ) -> StatusUpdateResult:
        """Record ``user_id``'s decision about ``matched_user_id``.

        When this call turns the requester's record into ``accepted`` and the
        other side already accepted, a chat room is requested. The status
        change is committed first; a chat failure is reported on the result
        and never reverts it.
        """

        self._check_pair(user_id, matched_user_id)
        try:
            status = MatchStatus(status)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown match status: {status}") from exc

        own, reverse = self._load_pair(user_id, matched_user_id)
        previous = own.status if own else None

        if own is None:
            record = Match.create(user_id, matched_user_id, status=status)
        else:
            record = own.with_status(status)
        record = self.store.upsert_match(record)
        logger.info(
            "Match status user=%s other=%s %s -> %s",
            user_id,
            matched_user_id,
            previous.value if previous else "none",
            status.value,
        )

        result = StatusUpdateResult(match=record, previous_status=previous)

        mutual = (
            status is MatchStatus.ACCEPTED
            and previous is not MatchStatus.ACCEPTED
            and reverse is not None
            and reverse.status is MatchStatus.ACCEPTED
        )
        if mutual:
            result = self._open_chat_room(result, user_id, matched_user_id)
        elif status is MatchStatus.BLOCKED and previous is not MatchStatus.BLOCKED:
            self._archive_chat_room(user_id, matched_user_id)

        return result

    def _open_chat_room(
        self, result: StatusUpdateResult, user_id: str, matched_user_id: str
    ) -> StatusUpdateResult:
        try:
            response = self.messaging.create_chat_room(matched_user_id, user_id)
        except Exception as exc:
            response = {"success": False, "error": str(exc)}

        if response.get("success"):
            logger.info("Chat room opened for mutual match %s/%s", user_id, matched_user_id)
            room_id = response.get("roomId") or response.get("id")
            return result.model_copy(
                update={
                    "chat_room_created": True,
                    "chat_room_id": str(room_id) if room_id else None,
                }
            )

        error = response.get("error", "Chat room creation failed")
        logger.warning(
            "Chat room creation failed for %s/%s: %s", user_id, matched_user_id, error
        )
        return result.model_copy(update={"chat_room_error": error})

    def _archive_chat_room(self, user_id: str, matched_user_id: str) -> None:
        try:
            response = self.messaging.archive_chat_room(user_id, matched_user_id)
        except Exception as exc:
            response = {"success": False, "error": str(exc)}
        if not response.get("success"):
            logger.warning(
                "Chat archive after block failed for %s/%s: %s",
                user_id,
                matched_user_id,
                response.get("error"),
            )

    def get_match_status(self, user_id: str, matched_user_id: str) -> MatchStatus:
        """Requester's own status, else the other side's, else pending."""

        own, reverse = self._load_pair(user_id, matched_user_id)
        if own is not None:
            return own.status
        if reverse is not None:
            return reverse.status
        return MatchStatus.PENDING

    def send_match_request(self, user_id: str, matched_user_id: str) -> Match:
        """Open (or re-open) a pending match from ``user_id``.

        Rejected records re-enter pending; pending and accepted records are
        returned unchanged. Blocked pairs cannot be re-opened this way.
        """

        self._check_pair(user_id, matched_user_id)
        own, reverse = self._load_pair(user_id, matched_user_id)

        if any(r is not None and r.status is MatchStatus.BLOCKED for r in (own, reverse)):
            raise MatchBlockedError(
                f"Match between {user_id} and {matched_user_id} is blocked"
            )

        if own is None:
            return self.store.upsert_match(Match.create(user_id, matched_user_id))
        if own.status is MatchStatus.REJECTED:
            return self.store.upsert_match(own.with_status(MatchStatus.PENDING))
        return own

    # ------------------------------------------------------------------
    # Preferences & reports
    # ------------------------------------------------------------------
    def get_preferences(self, user_id: str) -> MatchPreferences:
        return normalize_preferences(self.store.get_user_preferences(user_id))

    def set_preferences(
        self, user_id: str, raw: Mapping[str, Any]
    ) -> MatchPreferences:
        """Normalize and store preferences; absent fields take defaults."""

        preferences = normalize_preferences(raw)
        self.store.save_user_preferences(user_id, preferences.to_document())
        logger.info("Preferences updated user=%s", user_id)
        return preferences

    def report_match(
        self, user_id: str, matched_user_id: str, reason: str
    ) -> MatchReport:
        """File a report; the match status itself is left unchanged."""

        self._check_pair(user_id, matched_user_id)
        if not reason or not reason.strip():
            raise InvalidInputError("A report reason is required")

        report = MatchReport(
            reporter_id=user_id,
            reported_user_id=matched_user_id,
            reason=reason.strip(),
        )
        saved = self.store.save_report(report)
        logger.info("Match report filed id=%s", saved.id)
        return saved


def create_match_orchestrator(settings: Config | None = None) -> MatchOrchestrator:
    """Wire the orchestrator with Firestore and the chat backend."""

    settings = settings or config
    return MatchOrchestrator(
        FirestoreMatchStore(),
        ChatServiceClient(
            settings.CHAT_SERVICE_URL,
            auth_token=settings.CHAT_SERVICE_TOKEN,
            timeout=settings.CHAT_SERVICE_TIMEOUT,
        ),
        max_candidates=settings.MAX_CANDIDATES,
        scoring_workers=settings.SCORING_WORKERS,
        persist_matches=settings.PERSIST_SCORED_MATCHES,
    )
