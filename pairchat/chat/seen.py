"""Marks inbound messages as seen once they are displayed."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sync import ChannelSession

logger = logging.getLogger(__name__)


class SeenTracker:
    """Flags the other party's unseen messages as seen after every list change."""

    def __init__(self, session: ChannelSession, auto: bool = True) -> None:
        self.session = session
        self._in_flight: set[str] = set()
        self._marked: set[str] = set()
        self._lock = threading.Lock()
        self._detach = session.on_change(lambda _session: self.sync()) if auto else None

    def unseen_ids(self) -> list[str]:
        session = self.session
        return [
            m["id"]
            for m in session.messages
            if m.get("senderId") == session.other_user_id
            and m.get("receiverId") == session.current_user_id
            and m.get("seen") is False
            and not m.get("pending")
            and m.get("id")
        ]

    def sync(self) -> list[str]:
        """Issue one batched update for every unseen inbound message.

        Returns the ids marked. Failures are logged and the ids are retried
        on the next change.
        """
        session = self.session
        if not session.is_open or session.loading_initial:
            return []
        # Read the session before taking our lock; the session lock is never
        # acquired while this one is held.
        unseen = self.unseen_ids()
        with self._lock:
            # Ids whose echo arrived with seen=True (or that left the list)
            # no longer need to be remembered.
            self._marked.intersection_update(unseen)
            skip = self._in_flight | self._marked
            pending = [i for i in unseen if i not in skip]
            if not pending:
                return []
            self._in_flight.update(pending)

        try:
            session.transport.mark_seen(session.channel, pending)
        except Exception as e:
            logger.error(f"markSeen error for {session.channel}: {e}")
            with self._lock:
                self._in_flight.difference_update(pending)
            return []
        with self._lock:
            self._in_flight.difference_update(pending)
            self._marked.update(pending)
        return pending

    def detach(self) -> None:
        if self._detach:
            self._detach()
            self._detach = None
