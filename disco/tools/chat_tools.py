"""
Chat API tools – call the DISCO! chat backend REST endpoints.

The matching service never writes chat data itself. It asks the chat backend
to open a room when two users accept each other, and to archive it when one
blocks the other.
"""

from __future__ import annotations

import httpx
from typing import Optional

from disco.utils.logging_config import logger


def _headers(auth_token: Optional[str] = None) -> dict:
    h = {"Content-Type": "application/json"}
    if auth_token:
        h["Authorization"] = f"Bearer {auth_token}"
    return h


def _error_from_response(r: httpx.Response, data: dict) -> str:
    """Surface clear auth errors for 401/403."""
    if r.status_code == 401:
        return "Unauthorized: invalid or expired service token"
    if r.status_code == 403:
        return "Forbidden: access denied"
    return data.get("error", f"HTTP {r.status_code}")


class ChatServiceClient:
    """Messaging collaborator backed by the chat backend's HTTP API.

    Methods never raise; they return ``{"success": False, "error": ...}`` so
    callers can treat chat side effects as best effort.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            r = client.post(url, json=payload, headers=_headers(self.auth_token))
            data = r.json() if r.content else {}
            if not r.is_success:
                return {
                    "success": False,
                    "error": _error_from_response(r, data),
                }
            return {"success": True, **data}

    def create_chat_room(self, user_a: str, user_b: str) -> dict:
        """
        Open a private chat room between two users.

        Args:
            user_a: First participant
            user_b: Second participant

        Returns:
            dict: { success, roomId, ... } or { success: False, error }
        """
        try:
            return self._post(
                "/api/chats/rooms",
                {"participantIds": [user_a, user_b], "source": "match"},
            )
        except Exception as e:
            logger.error("create_chat_room failed: %s", e)
            return {"success": False, "error": str(e)}

    def archive_chat_room(self, user_a: str, user_b: str) -> dict:
        """Archive any room between two users (used after a block)."""
        try:
            return self._post(
                "/api/chats/rooms/archive",
                {"participantIds": [user_a, user_b]},
            )
        except Exception as e:
            logger.error("archive_chat_room failed: %s", e)
            return {"success": False, "error": str(e)}
