"""Tests for the JSON API routes."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from google.api_core import exceptions as gcp_exceptions

from pairchat import create_app
from pairchat.core import outcomes
from pairchat.core.outcomes import ProcedureOutcome


class ApiRoutesTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.mock_firestore = MagicMock()
        self.mock_service = MagicMock()
        patchers = [
            patch("pairchat.user.routes.firestore", new=self.mock_firestore),
            patch("pairchat.user.routes.UserService", new=self.mock_service),
            patch("pairchat.chat.routes.firestore", new=self.mock_firestore),
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)
        self.db = self.mock_firestore.client.return_value

        self.app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})
        self.client = self.app.test_client()

    def login(self, uid: str = "alice") -> None:
        with self.client.session_transaction() as sess:
            sess["user_id"] = uid

    def test_requires_login(self) -> None:
        response = self.client.post("/user/api/username", json={"newUsername": "ace"})
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.get_json()["success"])
        self.mock_service.rename_username.assert_not_called()

    def test_rename_username(self) -> None:
        self.login()
        self.mock_service.rename_username.return_value = ProcedureOutcome.ok(
            "Username updated successfully.", username="ace"
        )

        response = self.client.post("/user/api/username", json={"newUsername": "Ace"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.get_json(),
            {
                "success": True,
                "message": "Username updated successfully.",
                "data": {"username": "ace"},
            },
        )
        self.mock_service.rename_username.assert_called_once_with(self.db, "alice", "Ace")

    def test_rename_taken_maps_to_conflict(self) -> None:
        self.login()
        self.mock_service.rename_username.return_value = ProcedureOutcome.failure(
            outcomes.ALREADY_EXISTS, "This username is already taken."
        )
        response = self.client.post("/user/api/username", json={"newUsername": "bob"})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["code"], "already-exists")

    def test_rename_validation(self) -> None:
        self.login()
        response = self.client.post("/user/api/username", json={"newUsername": "  "})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["message"], "New username is required.")
        self.mock_service.rename_username.assert_not_called()

    def test_status_codes_for_accept(self) -> None:
        self.login()
        cases = {
            outcomes.NOT_FOUND: 404,
            outcomes.PERMISSION_DENIED: 403,
            outcomes.FAILED_PRECONDITION: 412,
            outcomes.DEADLINE_EXCEEDED: 504,
            outcomes.INTERNAL: 500,
        }
        for code, status in cases.items():
            with self.subTest(code=code):
                self.mock_service.accept_friend_request.return_value = (
                    ProcedureOutcome.failure(code, "nope")
                )
                response = self.client.post("/user/api/friend_requests/r1/accept")
                self.assertEqual(response.status_code, status)
                self.assertEqual(response.get_json()["message"], "nope")

    def test_accept_passes_request_id(self) -> None:
        self.login("bob")
        self.mock_service.accept_friend_request.return_value = ProcedureOutcome.ok(
            "Friend request accepted successfully."
        )
        response = self.client.post("/user/api/friend_requests/r9/accept")
        self.assertEqual(response.status_code, 200)
        self.mock_service.accept_friend_request.assert_called_once_with(self.db, "bob", "r9")

    def test_reject_and_delete(self) -> None:
        self.login()
        self.mock_service.reject_friend_request.return_value = ProcedureOutcome.ok("ok")
        self.mock_service.delete_friend_request.return_value = ProcedureOutcome.ok("ok")

        self.assertEqual(
            self.client.post("/user/api/friend_requests/r1/reject").status_code, 200
        )
        self.assertEqual(
            self.client.post("/user/api/friend_requests/r1/delete").status_code, 200
        )
        self.mock_service.reject_friend_request.assert_called_once_with(self.db, "alice", "r1")
        self.mock_service.delete_friend_request.assert_called_once_with(self.db, "alice", "r1")

    def test_send_friend_request(self) -> None:
        self.login()
        self.mock_service.send_friend_request.return_value = ProcedureOutcome.ok(
            "Friend request sent.", requestId="r1"
        )
        response = self.client.post(
            "/user/api/friend_requests", json={"targetUserId": "bob"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"], {"requestId": "r1"})

    def test_send_friend_request_requires_target(self) -> None:
        self.login()
        response = self.client.post("/user/api/friend_requests", json={})
        self.assertEqual(response.status_code, 400)

    def test_incoming_requests(self) -> None:
        self.login()
        self.mock_service.get_incoming_requests.return_value = [{"id": "r1"}]
        response = self.client.get("/user/api/friend_requests")
        self.assertEqual(response.get_json(), {"success": True, "requests": [{"id": "r1"}]})

    def test_unfriend(self) -> None:
        self.login()
        self.mock_service.unfriend.return_value = ProcedureOutcome.ok("Unfriended successfully.")
        response = self.client.post("/user/api/unfriend", json={"otherUserId": "carol"})
        self.assertEqual(response.status_code, 200)
        self.mock_service.unfriend.assert_called_once_with(self.db, "alice", "carol")

    def test_friendship_status(self) -> None:
        self.login()
        self.mock_service.get_friendship_status.return_value = "pending_sent"
        response = self.client.get("/user/api/friendship/bob")
        self.assertEqual(response.get_json()["status"], "pending_sent")

    def test_move_and_dump_chat(self) -> None:
        self.login()
        self.mock_service.move_chat_to_tab.return_value = ProcedureOutcome.ok("moved")
        self.mock_service.dump_chat.return_value = ProcedureOutcome.ok("removed")

        move = self.client.post("/user/api/chats/bob/move", json={"tab": "friends"})
        dump = self.client.post("/user/api/chats/bob/dump", json={"tab": "active"})

        self.assertEqual(move.status_code, 200)
        self.assertEqual(dump.status_code, 200)
        self.mock_service.move_chat_to_tab.assert_called_once_with(
            self.db, "alice", "bob", "friends"
        )
        self.mock_service.dump_chat.assert_called_once_with(self.db, "alice", "bob", "active")

    def test_unknown_tab_rejected(self) -> None:
        self.login()
        response = self.client.post("/user/api/chats/bob/move", json={"tab": "archive"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["message"], "Unknown tab.")

    @patch("pairchat.chat.routes.delete_chat")
    def test_delete_chat(self, mock_delete_chat) -> None:
        self.login()
        mock_delete_chat.return_value = ProcedureOutcome.ok(
            "Chat deleted successfully.", deletedMessages=4
        )
        response = self.client.post("/chat/api/bob/delete")
        self.assertEqual(response.status_code, 200)
        mock_delete_chat.assert_called_once_with(self.db, "alice", "bob")

    def test_channel_settings(self) -> None:
        self.login()
        response = self.client.get("/chat/api/settings")
        self.assertEqual(
            response.get_json(),
            {
                "success": True,
                "pageSize": 20,
                "cacheTtlSeconds": 1200,
                "dailyMessageLimit": 100,
            },
        )

    @patch("pairchat.chat.routes.reset_daily_counts")
    def test_reset_daily_counts_as_admin(self, mock_reset) -> None:
        with self.client.session_transaction() as sess:
            sess["user_id"] = "admin"
            sess["is_admin"] = True
        mock_reset.return_value = 7

        response = self.client.post("/chat/api/admin/reset_daily_counts")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["reset"], 7)
        mock_reset.assert_called_once_with(self.db)

    @patch("pairchat.chat.routes.reset_daily_counts")
    def test_reset_daily_counts_requires_admin(self, mock_reset) -> None:
        self.login()
        response = self.client.post("/chat/api/admin/reset_daily_counts")
        self.assertEqual(response.status_code, 403)
        mock_reset.assert_not_called()

    @patch("pairchat.chat.routes.reset_daily_counts")
    def test_reset_daily_counts_store_failure(self, mock_reset) -> None:
        with self.client.session_transaction() as sess:
            sess["user_id"] = "admin"
            sess["is_admin"] = True
        mock_reset.side_effect = gcp_exceptions.ServiceUnavailable("down")

        response = self.client.post("/chat/api/admin/reset_daily_counts")

        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.get_json()["success"])

    def test_unknown_route_is_json(self) -> None:
        response = self.client.get("/user/api/nothing/here")
        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.get_json()["success"])


class CsrfProtectionTestCase(unittest.TestCase):
    def test_post_without_token_is_rejected(self) -> None:
        app = create_app({"TESTING": True})
        client = app.test_client()
        with client.session_transaction() as sess:
            sess["user_id"] = "alice"

        response = client.post("/user/api/unfriend", json={"otherUserId": "bob"})

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()["success"])


if __name__ == "__main__":
    unittest.main()
