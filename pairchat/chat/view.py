"""Wires a channel session together with its optimistic writer, pager and seen tracker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pairchat.core.constants import FREE_PLAN_DAILY_MESSAGE_LIMIT, MESSAGES_PAGE_SIZE

from .pagination import PaginationController
from .reconciler import OptimisticWriteReconciler
from .seen import SeenTracker
from .services import check_daily_limit, record_message_sent
from .sync import ChannelSession
from .transport import FirestoreTransport

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from .cache import MessageCache


@dataclass
class ChannelView:
    """Everything a client screen needs for one open conversation."""

    session: ChannelSession
    writer: OptimisticWriteReconciler
    pager: PaginationController
    seen: SeenTracker

    def close(self) -> None:
        self.seen.detach()
        self.session.close()


def open_channel(
    db: Client,
    current_user_id: str,
    other_user_id: str,
    cache: MessageCache | None = None,
    page_size: int = MESSAGES_PAGE_SIZE,
    daily_limit: int = FREE_PLAN_DAILY_MESSAGE_LIMIT,
) -> ChannelView:
    """Open the conversation between two users against a Firestore client."""
    session = ChannelSession(
        FirestoreTransport(db),
        current_user_id,
        other_user_id,
        cache=cache,
        page_size=page_size,
    )
    view = ChannelView(
        session=session,
        writer=OptimisticWriteReconciler(
            session,
            on_sent=lambda sender, receiver: record_message_sent(db, sender, receiver),
            check_quota=lambda sender: check_daily_limit(db, sender, daily_limit),
        ),
        pager=PaginationController(session),
        seen=SeenTracker(session),
    )
    session.open()
    return view
