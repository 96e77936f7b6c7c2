"""Matching graph: load user, query candidates, score and rank them."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from langgraph.graph import StateGraph

from disco.graphs.base_graph import BaseGraph
from disco.models import CandidateQuery, MatchStatus, RankedMatch
from disco.services.collaborators import MatchStore
from disco.state import MatchingState
from disco.tools.preference_tools import normalize_preferences
from disco.tools.scoring_tools import calculate_match_score, is_within_age_range
from disco.utils.errors import StoreUnavailableError
from disco.utils.logging_config import logger

# Statuses (in either direction) that keep a candidate out of results.
EXCLUDED_STATUSES = {MatchStatus.BLOCKED, MatchStatus.REJECTED}

PUBLIC_PROFILE_FIELDS = ("name", "bio", "age", "gender", "profileImage", "emailVerified")


def _with_state(state: MatchingState, **updates) -> MatchingState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


def _public_profile(candidate: dict) -> dict:
    return {k: candidate[k] for k in PUBLIC_PROFILE_FIELDS if k in candidate}


class MatchingGraph(BaseGraph):
    """Deterministic multi-step matching pipeline."""

    def __init__(
        self,
        store: MatchStore,
        *,
        max_candidates: int = 100,
        scoring_workers: int = 8,
        persist_matches: bool = True,
        timeout: int = 30,
    ):
        super().__init__(timeout=timeout)
        self.store = store
        self.max_candidates = max_candidates
        self.scoring_workers = max(1, scoring_workers)
        self.persist_matches = persist_matches

    def build_graph(self) -> StateGraph:
        graph = StateGraph(MatchingState)

        graph.add_node("fetch_user_profile", self.node_fetch_user_profile)
        graph.add_node("load_preferences", self.node_load_preferences)
        graph.add_node("query_candidates", self.node_query_candidates)
        graph.add_node("filter_candidates", self.node_filter_candidates)
        graph.add_node("score_matches", self.node_score_matches)
        graph.add_node("rank_matches", self.node_rank_matches)
        graph.add_node("persist_matches", self.node_persist_matches)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("fetch_user_profile")
        graph.add_edge("fetch_user_profile", "load_preferences")
        graph.add_edge("load_preferences", "query_candidates")
        graph.add_edge("query_candidates", "filter_candidates")
        graph.add_edge("filter_candidates", "score_matches")
        graph.add_edge("score_matches", "rank_matches")
        graph.add_edge("rank_matches", "persist_matches")
        graph.add_edge("persist_matches", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_fetch_user_profile(self, state: MatchingState) -> MatchingState:
        """Load the requesting user's document."""

        try:
            self._log_node_execution("fetch_user_profile", state)
            profile = self.store.get_user(state["user_id"])
            if not profile:
                return _with_state(
                    state,
                    error=f"User not found: {state['user_id']}",
                    error_code="user_not_found",
                )
            return _with_state(state, user_profile=profile)
        except StoreUnavailableError as exc:
            self._log_node_error("fetch_user_profile", exc)
            return _with_state(
                state,
                error="Store unavailable while loading user.",
                error_code="store_unavailable",
            )

    def node_load_preferences(self, state: MatchingState) -> MatchingState:
        """Load and normalize the requester's stored preferences."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("load_preferences", state)
            raw = self.store.get_user_preferences(state["user_id"])
            return _with_state(state, preferences=normalize_preferences(raw))
        except StoreUnavailableError as exc:
            self._log_node_error("load_preferences", exc)
            return _with_state(
                state,
                error="Store unavailable while loading preferences.",
                error_code="store_unavailable",
            )

    def node_query_candidates(self, state: MatchingState) -> MatchingState:
        """Fetch the candidate pool with verified/photo filters applied."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("query_candidates", state)
            prefs = state["preferences"]
            candidates = self.store.find_candidates(
                CandidateQuery(
                    exclude_user_id=state["user_id"],
                    verified_only=prefs.verified_only,
                    with_photo=prefs.with_photo,
                    limit=self.max_candidates,
                )
            )
            return _with_state(state, candidates=candidates)
        except StoreUnavailableError as exc:
            self._log_node_error("query_candidates", exc)
            return _with_state(
                state,
                error="Failed to query candidates.",
                error_code="store_unavailable",
                candidates=[],
            )

    def node_filter_candidates(self, state: MatchingState) -> MatchingState:
        """Drop blocked/rejected pairs and candidates outside the age range."""

        if state.get("error"):
            return state

        self._log_node_execution("filter_candidates", state)
        user_id = state["user_id"]

        try:
            records = self.store.list_matches(user_id)
        except Exception as exc:
            logger.warning(
                "Failed to fetch match history; proceeding without exclusions: %s",
                str(exc),
            )
            records = []

        excluded_uids: set[str] = set()
        for record in records:
            if record.status in EXCLUDED_STATUSES:
                other = (
                    record.matched_user_id
                    if record.user_id == user_id
                    else record.user_id
                )
                excluded_uids.add(other)

        prefs = state["preferences"]
        filtered = [
            c
            for c in state.get("candidates", [])
            if c.get("uid") != user_id
            and c.get("uid") not in excluded_uids
            and is_within_age_range(c, prefs)
        ]

        logger.debug("filter_candidates result=%s", len(filtered))
        return _with_state(state, filtered_candidates=filtered)

    def _score_candidate(
        self, user: dict, user_prefs, candidate: dict
    ) -> RankedMatch | None:
        """Score one candidate; None means skip it."""

        candidate_id = candidate.get("uid", "")
        try:
            candidate_prefs = normalize_preferences(
                self.store.get_user_preferences(candidate_id)
            )
            score = calculate_match_score(user, candidate, user_prefs, candidate_prefs)
        except Exception as exc:
            logger.warning("Skipping candidate %s: %s", candidate_id, str(exc))
            return None

        if score is None:
            return None
        return RankedMatch(
            user_id=candidate_id, score=score, profile=_public_profile(candidate)
        )

    def node_score_matches(self, state: MatchingState) -> MatchingState:
        """Score every filtered candidate; candidates are independent."""

        if state.get("error"):
            return state

        self._log_node_execution("score_matches", state)
        user = state["user_profile"]
        prefs = state["preferences"]
        candidates = state.get("filtered_candidates", [])

        with ThreadPoolExecutor(max_workers=self.scoring_workers) as pool:
            # map keeps retrieval order for the stable sort below.
            results = list(
                pool.map(lambda c: self._score_candidate(user, prefs, c), candidates)
            )

        scored = [r for r in results if r is not None]
        return _with_state(
            state,
            scored_matches=scored,
            skipped_count=len(candidates) - len(scored),
        )

    def node_rank_matches(self, state: MatchingState) -> MatchingState:
        """Sort scored matches by total, best first (stable on ties)."""

        if state.get("error"):
            return state

        self._log_node_execution("rank_matches", state)
        ranked = sorted(
            state.get("scored_matches", []),
            key=lambda m: m.score.total,
            reverse=True,
        )
        return _with_state(state, ranked_matches=ranked)

    def node_persist_matches(self, state: MatchingState) -> MatchingState:
        """Record scored pairs as pending without touching existing statuses."""

        if state.get("error") or not self.persist_matches:
            return state

        self._log_node_execution("persist_matches", state)
        user_id = state["user_id"]
        for ranked in state.get("ranked_matches", []):
            try:
                self.store.record_match_score(user_id, ranked.user_id, ranked.score)
            except Exception as exc:
                logger.warning("Failed to save match: %s", str(exc))

        return state

    def node_finalize_response(self, state: MatchingState) -> MatchingState:
        """Attach response metadata."""

        if state.get("error"):
            return _with_state(
                state,
                ranked_matches=[],
                response_metadata={
                    "success": False,
                    "error": state.get("error"),
                    "total_candidates": len(state.get("candidates", [])),
                    "filtered_count": 0,
                    "scored_count": 0,
                },
            )

        metadata = {
            "success": True,
            "error": None,
            "total_candidates": len(state.get("candidates", [])),
            "filtered_count": len(state.get("filtered_candidates", [])),
            "scored_count": len(state.get("ranked_matches", [])),
            "skipped_count": state.get("skipped_count", 0),
        }
        return _with_state(state, response_metadata=metadata)


def create_matching_graph(store: MatchStore, **options):
    """Build and compile the matching graph around a store."""

    graph_builder = MatchingGraph(store, **options)
    return graph_builder.compile()
