from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app
from google.api_core import exceptions as gcp_exceptions

from pairchat.core import outcomes
from pairchat.core.constants import (
    DEFAULT_PLAN,
    TAB_ACTIVE,
    TAB_FIELDS,
    TAB_FRIENDS,
    USERS_COLLECTION,
)
from pairchat.core.outcomes import ProcedureOutcome

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client


def get_user_by_id(db: Client, user_id: str) -> dict[str, Any] | None:
    """Fetch a user by their ID."""
    user_ref = db.collection(USERS_COLLECTION).document(user_id)
    user_doc = cast("DocumentSnapshot", user_ref.get())
    if not user_doc.exists:
        return None
    data = user_doc.to_dict()
    if data is None:
        return None
    data["id"] = user_id
    return data


def initialize_user(db: Client, user_id: str, email: str | None = None) -> None:
    """Write the secure defaults onto a newly created user document.

    Merged, so a profile the client already created keeps its username while
    the privileged fields are forced back to their defaults.
    """
    db.collection(USERS_COLLECTION).document(user_id).set(
        {
            "uid": user_id,
            "email": email,
            "plan": DEFAULT_PLAN,
            "dailyMessageCount": 0,
            "isAdmin": False,
            "isBanned": False,
            "friends": [],
            "savedChats": [],
            "friendsTab": [],
            "createdAt": firestore.SERVER_TIMESTAMP,
        },
        merge=True,
    )
    current_app.logger.info(f"User document initialized for {user_id}")


def move_chat_to_tab(
    db: Client, user_id: str, other_user_id: str, tab: str
) -> ProcedureOutcome:
    """Move a conversation between the active and friends chat lists."""
    if tab not in TAB_FIELDS:
        return ProcedureOutcome.failure(outcomes.INVALID_ARGUMENT, "Unknown tab.")
    source = TAB_FIELDS[TAB_FRIENDS if tab == TAB_ACTIVE else TAB_ACTIVE]
    try:
        db.collection(USERS_COLLECTION).document(user_id).update(
            {
                source: firestore.ArrayRemove([other_user_id]),
                TAB_FIELDS[tab]: firestore.ArrayUnion([other_user_id]),
            }
        )
    except gcp_exceptions.NotFound:
        return ProcedureOutcome.failure(outcomes.NOT_FOUND, "User profile not found.")
    except gcp_exceptions.GoogleAPICallError as e:
        current_app.logger.error(f"Error moving chat to {tab}: {e}")
        return ProcedureOutcome.failure(outcomes.INTERNAL, "Failed to move chat.")
    return ProcedureOutcome.ok(f"Chat moved to {tab}.", tab=tab)


def dump_chat(db: Client, user_id: str, other_user_id: str, tab: str) -> ProcedureOutcome:
    """Drop a conversation from one chat list without deleting its messages."""
    if tab not in TAB_FIELDS:
        return ProcedureOutcome.failure(outcomes.INVALID_ARGUMENT, "Unknown tab.")
    try:
        db.collection(USERS_COLLECTION).document(user_id).update(
            {TAB_FIELDS[tab]: firestore.ArrayRemove([other_user_id])}
        )
    except gcp_exceptions.NotFound:
        return ProcedureOutcome.failure(outcomes.NOT_FOUND, "User profile not found.")
    except gcp_exceptions.GoogleAPICallError as e:
        current_app.logger.error(f"Error removing chat from {tab}: {e}")
        return ProcedureOutcome.failure(outcomes.INTERNAL, "Failed to remove chat.")
    return ProcedureOutcome.ok("Chat removed from list.", tab=tab)
