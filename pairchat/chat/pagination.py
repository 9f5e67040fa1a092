"""Backward pagination for a channel session."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol

from pairchat.core.constants import MSG_LOAD_OLDER_FAILED

if TYPE_CHECKING:
    from .sync import ChannelSession

logger = logging.getLogger(__name__)


class ScrollAnchor(Protocol):
    """The scrollable message container, as seen by the pagination controller."""

    def content_height(self) -> float: ...

    def scroll_offset(self) -> float: ...

    def scroll_to(self, offset: float) -> None: ...


class PaginationController:
    """Loads older pages into a session, one fetch at a time."""

    def __init__(self, session: ChannelSession) -> None:
        self.session = session
        self._in_flight = False
        self._guard = threading.Lock()

    @property
    def loading_more(self) -> bool:
        return self._in_flight

    def can_load_older(self) -> bool:
        session = self.session
        return (
            session.is_open
            and session.has_more
            and session.cursor is not None
            and not self._in_flight
        )

    def load_older(self, anchor: ScrollAnchor | None = None) -> bool:
        """Fetch the next older page and prepend it.

        Returns True when messages were prepended. A call made while another
        fetch is running, or when there is nothing more to load, does nothing.
        """
        session = self.session
        with self._guard:
            if not self.can_load_older():
                return False
            self._in_flight = True

        with session.lock:
            generation = session.generation
            cursor = session.cursor
            session.loading_more = True

        try:
            page = session.transport.fetch_older(session.channel, cursor, session.page_size)
        except Exception as e:
            logger.error(f"Error loading older messages for {session.channel}: {e}")
            self._finish(generation)
            if session.generation == generation:
                session.set_error(MSG_LOAD_OLDER_FAILED)
            return False

        with session.lock:
            if not session.is_open or session.generation != generation:
                logger.info(f"Discarding older page for closed channel {session.channel}")
                self._finish(generation)
                return False

            if not page.messages:
                session.advance_cursor(None, has_more=False)
                self._finish(generation)
                return False

            previous_height = anchor.content_height() if anchor else 0.0
            added = session.prepend_older(list(reversed(page.messages)), notify=False)
            session.advance_cursor(
                page.cursor, has_more=len(page.messages) == session.page_size
            )

        # Listeners take their own locks; run them only after ours is released.
        if added:
            session.notify()
        if anchor and added:
            delta = anchor.content_height() - previous_height
            anchor.scroll_to(anchor.scroll_offset() + delta)
        self._finish(generation)
        return added > 0

    def load_older_async(self, anchor: ScrollAnchor | None = None) -> threading.Thread:
        """Run ``load_older`` on a background thread."""
        thread = threading.Thread(target=self.load_older, args=(anchor,), daemon=True)
        thread.start()
        return thread

    def _finish(self, generation: int) -> None:
        with self.session.lock:
            if self.session.generation == generation:
                self.session.loading_more = False
        with self._guard:
            self._in_flight = False
