"""Optimistic sends and edits for a channel session.

A send shows a provisional message immediately and later swaps it for the
server-confirmed document when the live feed echoes it back. The echo is
matched by the ``clientMessageId`` embedded in the write, falling back to
sender, text and a small clock-skew window for echoes that carry no id.
"""

from __future__ import annotations

import datetime
import logging
import secrets
import string
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pairchat.core.constants import (
    CLOCK_SKEW_TOLERANCE_SECONDS,
    MSG_DAILY_LIMIT,
    MSG_DELETE_FAILED,
    MSG_EDIT_FAILED,
    MSG_SEND_FAILED,
    PROVISIONAL_ID_PREFIX,
)
from pairchat.errors import WriteRejectedError

from .models import Message, to_datetime

if TYPE_CHECKING:
    from .sync import ChannelSession

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def new_client_message_id() -> str:
    """Return a correlation id like ``1718000000000-k3j9x0a2b``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


def match_pending(
    messages: Sequence[Message],
    incoming: Message,
    tolerance: float = CLOCK_SKEW_TOLERANCE_SECONDS,
) -> int | None:
    """Return the index of the provisional message ``incoming`` confirms, if any."""
    client_id = incoming.get("clientMessageId")
    if client_id:
        for i, m in enumerate(messages):
            if m.get("pending") and m.get("clientMessageId") == client_id:
                return i

    incoming_at = to_datetime(incoming.get("createdAt"))
    if incoming_at is None:
        return None
    for i, m in enumerate(messages):
        if not m.get("pending"):
            continue
        if m.get("senderId") != incoming.get("senderId"):
            continue
        if m.get("text") != incoming.get("text"):
            continue
        local_at = to_datetime(m.get("createdAt"))
        if local_at and abs((incoming_at - local_at).total_seconds()) <= tolerance:
            return i
    return None


@dataclass
class SendResult:
    """What the input box needs to know after a send or edit."""

    ok: bool
    client_message_id: str | None = None
    message_id: str | None = None
    error: str | None = None
    restored_text: str | None = None


def _send_error_message(error: Exception) -> str:
    if isinstance(error, WriteRejectedError) and error.reason == "permission-denied":
        return MSG_DAILY_LIMIT
    return MSG_SEND_FAILED


class OptimisticWriteReconciler:
    """Optimistic send/edit/delete for one channel session."""

    def __init__(
        self,
        session: ChannelSession,
        on_sent: Callable[[str, str], None] | None = None,
        check_quota: Callable[[str], None] | None = None,
        id_factory: Callable[[], str] = new_client_message_id,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.session = session
        self.on_sent = on_sent
        self.check_quota = check_quota
        self._id_factory = id_factory
        self._clock = clock or (lambda: datetime.datetime.now(datetime.timezone.utc))

    def send(self, text: str) -> SendResult:
        """Show ``text`` at once and write it to the channel."""
        session = self.session
        if not text or not text.strip():
            return SendResult(ok=False, error="Message is empty.", restored_text=text)
        if not session.is_open:
            return SendResult(ok=False, error=MSG_SEND_FAILED, restored_text=text)

        client_id = self._id_factory()
        record = {
            "text": text,
            "senderId": session.current_user_id,
            "receiverId": session.other_user_id,
            "seen": False,
            "edited": False,
            "clientMessageId": client_id,
        }
        provisional = Message(
            id=f"{PROVISIONAL_ID_PREFIX}{client_id}",
            createdAt=self._clock(),
            pending=True,
            **record,  # type: ignore[typeddict-item]
        )
        session.insert_provisional(provisional)

        try:
            if self.check_quota:
                self.check_quota(session.current_user_id)
            message_id = session.transport.add_message(session.channel, record)
        except Exception as e:
            logger.error(f"Error sending message to {session.channel}: {e}")
            session.remove_where(
                lambda m: bool(m.get("pending"))
                and m.get("clientMessageId") == client_id
            )
            error = _send_error_message(e)
            session.set_error(error)
            return SendResult(
                ok=False, client_message_id=client_id, error=error, restored_text=text
            )

        if self.on_sent:
            try:
                self.on_sent(session.current_user_id, session.other_user_id)
            except Exception as e:
                logger.error(f"Error recording sent message: {e}")
        return SendResult(ok=True, client_message_id=client_id, message_id=message_id)

    def edit(self, message_id: str, text: str) -> SendResult:
        """Change a confirmed message's text optimistically."""
        session = self.session
        if not text or not text.strip():
            return SendResult(ok=False, error="Message is empty.", restored_text=text)

        previous = session.update_local(message_id, {"text": text, "edited": True})
        if previous is None:
            return SendResult(ok=False, error=MSG_EDIT_FAILED, restored_text=text)

        try:
            session.transport.update_message(
                session.channel, message_id, {"text": text, "edited": True}
            )
        except Exception as e:
            logger.error(f"Error editing message {message_id}: {e}")
            session.update_local(message_id, previous)
            session.set_error(MSG_EDIT_FAILED)
            return SendResult(
                ok=False,
                message_id=message_id,
                error=MSG_EDIT_FAILED,
                restored_text=text,
            )
        return SendResult(ok=True, message_id=message_id)

    def delete(self, message_id: str) -> bool:
        """Delete a message; the live feed delivers the removal."""
        session = self.session
        try:
            session.transport.delete_message(session.channel, message_id)
        except Exception as e:
            logger.error(f"Error deleting message {message_id}: {e}")
            session.set_error(MSG_DELETE_FAILED)
            return False
        return True
