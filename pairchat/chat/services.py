"""Server-side channel operations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from pairchat.core import outcomes
from pairchat.core.constants import (
    CHATS_COLLECTION,
    DEFAULT_PLAN,
    FIRESTORE_BATCH_LIMIT,
    FREE_PLAN_DAILY_MESSAGE_LIMIT,
    MESSAGES_COLLECTION,
    MSG_DAILY_LIMIT,
    TAB_FIELDS,
    USERS_COLLECTION,
)
from pairchat.core.outcomes import ProcedureOutcome
from pairchat.errors import WriteRejectedError

from .identity import channel_key

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)


def record_message_sent(db: Client, sender_id: str, receiver_id: str) -> None:
    """Keep the chat in the sender's saved list and count the message."""
    sender_ref = db.collection(USERS_COLLECTION).document(sender_id)
    update_data: dict[str, Any] = {
        "savedChats": firestore.ArrayUnion([receiver_id]),
        "dailyMessageCount": firestore.Increment(1),
    }
    try:
        sender_ref.update(update_data)
    except gcp_exceptions.NotFound:
        sender_ref.set(update_data, merge=True)


def check_daily_limit(
    db: Client, sender_id: str, limit: int = FREE_PLAN_DAILY_MESSAGE_LIMIT
) -> None:
    """Raise ``WriteRejectedError`` if a free-plan sender has used up today's messages."""
    snapshot = db.collection(USERS_COLLECTION).document(sender_id).get()
    data = (snapshot.to_dict() or {}) if snapshot.exists else {}
    if data.get("plan", DEFAULT_PLAN) != DEFAULT_PLAN:
        return
    if (data.get("dailyMessageCount") or 0) >= limit:
        logger.info(f"User {sender_id} reached the daily limit of {limit} messages")
        raise WriteRejectedError(MSG_DAILY_LIMIT, reason="permission-denied")


def reset_daily_counts(db: Client) -> int:
    """Zero every user's daily message counter; returns how many were reset."""
    query = db.collection(USERS_COLLECTION).where(
        filter=firestore.FieldFilter("dailyMessageCount", ">", 0)
    )
    reset = 0
    batch = db.batch()
    pending = 0
    for doc in query.stream():
        batch.update(doc.reference, {"dailyMessageCount": 0})
        pending += 1
        reset += 1
        if pending == FIRESTORE_BATCH_LIMIT:
            batch.commit()
            batch = db.batch()
            pending = 0
    if pending:
        batch.commit()
    logger.info(f"Reset daily message counts for {reset} users")
    return reset


def delete_chat(db: Client, user_id: str, other_user_id: str) -> ProcedureOutcome:
    """Delete a channel, all of its messages, and both users' references to it."""
    key = channel_key(user_id, other_user_id)
    if key is None:
        return ProcedureOutcome.failure(
            outcomes.INVALID_ARGUMENT, "Both participants are required."
        )

    chat_ref = db.collection(CHATS_COLLECTION).document(key)
    try:
        deleted = _delete_messages(db, chat_ref)
        chat_ref.delete()

        batch = db.batch()
        for owner, other in ((user_id, other_user_id), (other_user_id, user_id)):
            owner_ref = db.collection(USERS_COLLECTION).document(owner)
            if not owner_ref.get().exists:
                continue
            batch.update(
                owner_ref,
                {field: firestore.ArrayRemove([other]) for field in TAB_FIELDS.values()},
            )
        batch.commit()
    except gcp_exceptions.GoogleAPICallError as e:
        logger.error(f"Error deleting chat {key}: {e}")
        return ProcedureOutcome.failure(outcomes.INTERNAL, "Failed to delete chat.")

    logger.info(f"Deleted chat {key} ({deleted} messages)")
    return ProcedureOutcome.ok("Chat deleted successfully.", deletedMessages=deleted)


def _delete_messages(db: Client, chat_ref: Any) -> int:
    messages_ref = chat_ref.collection(MESSAGES_COLLECTION)
    deleted = 0
    while True:
        docs = list(messages_ref.limit(FIRESTORE_BATCH_LIMIT).stream())
        if not docs:
            return deleted
        batch = db.batch()
        for doc in docs:
            batch.delete(doc.reference)
        batch.commit()
        deleted += len(docs)
