"""Unit tests for the chat backend client (httpx.MockTransport, no network)."""

import json

import httpx

from disco.tools.chat_tools import ChatServiceClient


def _client(handler, token="svc-token"):
    return ChatServiceClient(
        "http://chat.test/",
        auth_token=token,
        transport=httpx.MockTransport(handler),
    )


class TestCreateChatRoom:
    def test_success_returns_backend_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"roomId": "r-42"})

        result = _client(handler).create_chat_room("alice", "bob")

        assert result == {"success": True, "roomId": "r-42"}
        assert seen["url"] == "http://chat.test/api/chats/rooms"
        assert seen["auth"] == "Bearer svc-token"
        assert seen["body"] == {"participantIds": ["alice", "bob"], "source": "match"}

    def test_no_token_sends_no_auth_header(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return httpx.Response(200, json={"id": "r-1"})

        assert _client(handler, token=None).create_chat_room("a", "b")["success"] is True

    def test_unauthorized_is_explained(self):
        result = _client(lambda r: httpx.Response(401, json={})).create_chat_room("a", "b")
        assert result == {
            "success": False,
            "error": "Unauthorized: invalid or expired service token",
        }

    def test_backend_error_message_is_passed_through(self):
        def handler(request):
            return httpx.Response(500, json={"error": "room limit reached"})

        result = _client(handler).create_chat_room("a", "b")
        assert result == {"success": False, "error": "room limit reached"}

    def test_transport_failure_never_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        result = _client(handler).create_chat_room("a", "b")
        assert result["success"] is False
        assert "connection refused" in result["error"]


class TestArchiveChatRoom:
    def test_posts_to_archive_endpoint(self):
        def handler(request):
            assert request.url.path == "/api/chats/rooms/archive"
            return httpx.Response(204)

        assert _client(handler).archive_chat_room("a", "b") == {"success": True}
