"""Shared LangGraph state definitions.

Graph states are TypedDicts so state is explicit and consistent across
graph nodes.
"""

from __future__ import annotations

from typing import TypedDict

from disco.models import MatchPreferences, RankedMatch

JsonDict = dict[str, object]
JsonList = list[JsonDict]


class MatchingState(TypedDict, total=False):
    """State for the matching graph.

    Fields are optional at runtime because nodes populate them progressively.
    """

    # Identifies the requesting user.
    user_id: str
    # User document loaded from users/{user_id}.
    user_profile: JsonDict
    # Normalized preferences of the requesting user.
    preferences: MatchPreferences
    # Candidates returned by the store (verified/photo filters applied).
    candidates: JsonList
    # Candidates left after block/reject and age exclusions.
    filtered_candidates: JsonList
    # Scored candidates, retrieval order.
    scored_matches: list[RankedMatch]
    # Scored candidates sorted by total, best first.
    ranked_matches: list[RankedMatch]
    # Number of candidates dropped while scoring (no location or data error).
    skipped_count: int
    # Error string if any node fails.
    error: str
    # Machine-readable error kind: "user_not_found" | "store_unavailable".
    error_code: str
    # Response metadata for observability.
    response_metadata: JsonDict
