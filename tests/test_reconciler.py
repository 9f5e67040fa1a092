"""Tests for optimistic sends and edits."""

from __future__ import annotations

import datetime
import re
import unittest
from unittest.mock import MagicMock

from pairchat.chat.models import is_provisional
from pairchat.chat.reconciler import (
    OptimisticWriteReconciler,
    match_pending,
    new_client_message_id,
)
from pairchat.chat.sync import ChannelSession
from pairchat.chat.transport import ADDED, MessageChange
from pairchat.core.constants import (
    MSG_DAILY_LIMIT,
    MSG_DELETE_FAILED,
    MSG_EDIT_FAILED,
    MSG_SEND_FAILED,
)
from pairchat.errors import TransportError, WriteRejectedError
from tests.mock_utils import BASE_TIME, FakeTransport, make_message

SEND_TIME = BASE_TIME + datetime.timedelta(minutes=5)


def echo(message_id: str, text: str, seconds: float = 0.5, **extra) -> dict:
    message = {
        "id": message_id,
        "text": text,
        "senderId": "alice",
        "receiverId": "bob",
        "createdAt": SEND_TIME + datetime.timedelta(seconds=seconds),
        "seen": False,
        "edited": False,
    }
    message.update(extra)
    return message


class ClientMessageIdTestCase(unittest.TestCase):
    def test_format(self) -> None:
        self.assertRegex(new_client_message_id(), re.compile(r"^\d{13}-[0-9a-z]{9}$"))

    def test_unique(self) -> None:
        self.assertEqual(len({new_client_message_id() for _ in range(50)}), 50)


class MatchPendingTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.pending = {
            "id": "temp-c1",
            "text": "hi",
            "senderId": "alice",
            "createdAt": SEND_TIME,
            "clientMessageId": "c1",
            "pending": True,
        }

    def test_matches_by_client_id(self) -> None:
        incoming = echo("srv1", "changed", seconds=30, clientMessageId="c1")
        self.assertEqual(match_pending([make_message(1), self.pending], incoming), 1)

    def test_fallback_within_tolerance(self) -> None:
        self.assertEqual(match_pending([self.pending], echo("srv1", "hi", 1.5)), 0)

    def test_fallback_outside_tolerance(self) -> None:
        self.assertIsNone(match_pending([self.pending], echo("srv1", "hi", 3)))

    def test_confirmed_messages_never_match(self) -> None:
        confirmed = dict(self.pending, pending=False)
        self.assertIsNone(match_pending([confirmed], echo("srv1", "hi", clientMessageId="c1")))


class OptimisticWriteReconcilerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.transport = FakeTransport([make_message(i) for i in range(3)])
        self.session = ChannelSession(self.transport, "alice", "bob")
        self.session.open()
        self.transport.push_window()
        self.on_sent = MagicMock()
        self.writer = OptimisticWriteReconciler(
            self.session,
            on_sent=self.on_sent,
            id_factory=lambda: "c1",
            clock=lambda: SEND_TIME,
        )

    def test_send_shows_provisional_message_at_tail(self) -> None:
        result = self.writer.send("hi")

        self.assertTrue(result.ok)
        self.assertEqual(result.message_id, "srv1")
        tail = self.session.messages[-1]
        self.assertEqual(tail["id"], "temp-c1")
        self.assertTrue(tail["pending"])
        self.assertEqual(tail["text"], "hi")
        _, written = self.transport.added[0]
        self.assertEqual(written["clientMessageId"], "c1")
        self.assertNotIn("pending", written)
        self.on_sent.assert_called_once_with("alice", "bob")

    def test_echo_replaces_provisional(self) -> None:
        self.writer.send("hi")

        self.transport.push([MessageChange(ADDED, echo("srv1", "hi", clientMessageId="c1"))])

        his = [m for m in self.session.messages if m["text"] == "hi"]
        self.assertEqual(len(his), 1)
        self.assertEqual(his[0]["id"], "srv1")
        self.assertFalse(is_provisional(his[0]))

    def test_redelivered_echo_is_idempotent(self) -> None:
        self.writer.send("hi")
        change = MessageChange(ADDED, echo("srv1", "hi", clientMessageId="c1"))
        self.transport.push([change])
        self.transport.push([change])
        self.assertEqual(len(self.session), 4)

    def test_echo_without_client_id_matches_by_content(self) -> None:
        self.writer.send("hi")
        self.transport.push([MessageChange(ADDED, echo("srv1", "hi", seconds=1))])
        self.assertEqual([m["id"] for m in self.session.messages][-1], "srv1")
        self.assertEqual(len(self.session), 4)

    def test_late_echo_without_client_id_is_appended(self) -> None:
        self.writer.send("hi")
        self.transport.push([MessageChange(ADDED, echo("srv1", "hi", seconds=10))])
        self.assertEqual(len(self.session), 5)
        self.assertTrue(self.session.has_message("temp-c1"))

    def test_echo_before_write_returns(self) -> None:
        def add_and_echo(channel, data):
            self.transport.push(
                [MessageChange(ADDED, echo("srv9", data["text"], clientMessageId="c1"))]
            )
            return "srv9"

        self.transport.add_message = add_and_echo
        self.writer.send("hi")

        self.assertEqual(len(self.session), 4)
        self.assertEqual(self.session.messages[-1]["id"], "srv9")

    def test_rapid_sends_reconcile_independently(self) -> None:
        ids = iter(["c1", "c2"])
        times = iter([SEND_TIME, SEND_TIME + datetime.timedelta(seconds=1)])
        writer = OptimisticWriteReconciler(
            self.session, id_factory=lambda: next(ids), clock=lambda: next(times)
        )

        first = writer.send("hi")
        second = writer.send("hi")
        self.assertEqual((first.client_message_id, second.client_message_id), ("c1", "c2"))
        self.assertEqual(
            [m["id"] for m in self.session.messages][-2:], ["temp-c1", "temp-c2"]
        )

        # The second echo arrives first.
        self.transport.push(
            [MessageChange(ADDED, echo("srv2", "hi", seconds=1.5, clientMessageId="c2"))]
        )
        self.assertEqual(
            [m["id"] for m in self.session.messages][-2:], ["temp-c1", "srv2"]
        )
        self.transport.push(
            [MessageChange(ADDED, echo("srv1", "hi", seconds=0.5, clientMessageId="c1"))]
        )

        messages = self.session.messages
        self.assertEqual(len(messages), 5)
        self.assertEqual([m["id"] for m in messages][-2:], ["srv1", "srv2"])
        self.assertEqual([m["clientMessageId"] for m in messages[-2:]], ["c1", "c2"])
        self.assertFalse(any(is_provisional(m) for m in messages))

    def test_quota_rejection_rolls_back_without_writing(self) -> None:
        check_quota = MagicMock(
            side_effect=WriteRejectedError(MSG_DAILY_LIMIT, reason="permission-denied")
        )
        writer = OptimisticWriteReconciler(
            self.session, on_sent=self.on_sent, check_quota=check_quota
        )

        result = writer.send("hi")

        check_quota.assert_called_once_with("alice")
        self.assertFalse(result.ok)
        self.assertEqual(result.error, MSG_DAILY_LIMIT)
        self.assertEqual(result.restored_text, "hi")
        self.assertEqual(self.transport.added, [])
        self.assertEqual(len(self.session), 3)
        self.on_sent.assert_not_called()

    def test_rejected_write_rolls_back_and_restores_text(self) -> None:
        self.transport.add_error = WriteRejectedError("denied", reason="permission-denied")

        result = self.writer.send("hi")

        self.assertFalse(result.ok)
        self.assertEqual(result.restored_text, "hi")
        self.assertEqual(result.error, MSG_DAILY_LIMIT)
        self.assertEqual(self.session.error, MSG_DAILY_LIMIT)
        self.assertFalse(self.session.has_message("temp-c1"))
        self.on_sent.assert_not_called()

    def test_transport_failure_uses_generic_error(self) -> None:
        self.transport.add_error = TransportError("offline")
        result = self.writer.send("hi")
        self.assertEqual(result.error, MSG_SEND_FAILED)
        self.assertEqual(len(self.session), 3)

    def test_bookkeeping_failure_does_not_fail_send(self) -> None:
        self.on_sent.side_effect = RuntimeError("counter unavailable")
        result = self.writer.send("hi")
        self.assertTrue(result.ok)
        self.assertTrue(self.session.has_message("temp-c1"))

    def test_blank_text_is_not_sent(self) -> None:
        result = self.writer.send("   ")
        self.assertFalse(result.ok)
        self.assertEqual(self.transport.added, [])

    def test_edit_updates_locally_and_remotely(self) -> None:
        result = self.writer.edit("m002", "fixed")

        self.assertTrue(result.ok)
        message = self.session.get_message("m002")
        self.assertEqual(message["text"], "fixed")
        self.assertTrue(message["edited"])
        self.assertEqual(self.transport.updated, [("m002", {"text": "fixed", "edited": True})])

    def test_failed_edit_rolls_back(self) -> None:
        self.transport.update_error = WriteRejectedError("denied", reason="permission-denied")

        result = self.writer.edit("m002", "fixed")

        self.assertFalse(result.ok)
        message = self.session.get_message("m002")
        self.assertEqual(message["text"], "message 2")
        self.assertFalse(message["edited"])
        self.assertEqual(self.session.error, MSG_EDIT_FAILED)

    def test_delete(self) -> None:
        self.assertTrue(self.writer.delete("m001"))
        self.assertEqual(self.transport.deleted, ["m001"])

    def test_failed_delete_sets_error(self) -> None:
        self.transport.delete_error = WriteRejectedError("denied")
        self.assertFalse(self.writer.delete("m001"))
        self.assertEqual(self.session.error, MSG_DELETE_FAILED)
        self.assertTrue(self.session.has_message("m001"))


if __name__ == "__main__":
    unittest.main()
