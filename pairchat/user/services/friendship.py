from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app
from google.api_core import exceptions as gcp_exceptions

from pairchat.chat.models import to_datetime
from pairchat.core import outcomes
from pairchat.core.constants import (
    FRIEND_REQUESTS_COLLECTION,
    FRIENDSHIP_FRIENDS,
    FRIENDSHIP_NONE,
    FRIENDSHIP_PENDING_RECEIVED,
    FRIENDSHIP_PENDING_SENT,
    FRIENDSHIP_SELF,
    REQUEST_ACCEPTED,
    REQUEST_PENDING,
    REQUEST_REJECTED,
    TRANSACTION_TIMEOUT_SECONDS,
    USERS_COLLECTION,
)
from pairchat.core.outcomes import ProcedureOutcome
from pairchat.errors import ProcedureError

from .procedures import run_in_transaction

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


def _get_in_transaction(ref: Any, transaction: Transaction) -> DocumentSnapshot:
    return cast(
        "DocumentSnapshot",
        ref.get(transaction=transaction, timeout=TRANSACTION_TIMEOUT_SECONDS),
    )


def _accept_friend_request_transaction(
    transaction: Transaction, db: Client, user_id: str, request_id: str
) -> ProcedureOutcome:
    """Mark a pending request accepted and add the edge on both users."""
    request_ref = db.collection(FRIEND_REQUESTS_COLLECTION).document(request_id)
    request_doc = _get_in_transaction(request_ref, transaction)
    if not request_doc.exists:
        raise ProcedureError(outcomes.NOT_FOUND, "The friend request does not exist.")

    data = request_doc.to_dict() or {}
    sender_id = data.get("senderId")
    receiver_id = data.get("receiverId")
    if receiver_id != user_id:
        raise ProcedureError(
            outcomes.PERMISSION_DENIED,
            "You do not have permission to accept this request.",
        )
    if data.get("status") != REQUEST_PENDING:
        raise ProcedureError(
            outcomes.FAILED_PRECONDITION, "This request is no longer pending."
        )

    receiver_ref = db.collection(USERS_COLLECTION).document(receiver_id)
    sender_ref = db.collection(USERS_COLLECTION).document(sender_id)
    receiver_doc = _get_in_transaction(receiver_ref, transaction)
    sender_doc = _get_in_transaction(sender_ref, transaction)
    if not receiver_doc.exists or not sender_doc.exists:
        raise ProcedureError(
            outcomes.NOT_FOUND, "One or both user profiles do not exist."
        )

    transaction.update(
        request_ref, {"status": REQUEST_ACCEPTED, "updatedAt": firestore.SERVER_TIMESTAMP}
    )
    transaction.update(receiver_ref, {"friends": firestore.ArrayUnion([sender_id])})
    transaction.update(sender_ref, {"friends": firestore.ArrayUnion([receiver_id])})
    return ProcedureOutcome.ok(
        "Friend request accepted successfully.", friendId=sender_id
    )


def accept_friend_request(
    db: Client, user_id: str | None, request_id: str | None
) -> ProcedureOutcome:
    """Accept a friend request addressed to ``user_id``."""
    if not user_id:
        return ProcedureOutcome.failure(
            outcomes.UNAUTHENTICATED,
            "The function must be called while authenticated.",
        )
    if not request_id:
        return ProcedureOutcome.failure(
            outcomes.INVALID_ARGUMENT, "The request ID is missing."
        )
    return run_in_transaction(
        db,
        _accept_friend_request_transaction,
        db,
        user_id,
        request_id,
        name="acceptFriendRequest",
    )


def _unfriend_transaction(
    transaction: Transaction, db: Client, user_id: str, other_user_id: str
) -> ProcedureOutcome:
    """Remove the friendship edge from both users."""
    user_ref = db.collection(USERS_COLLECTION).document(user_id)
    other_ref = db.collection(USERS_COLLECTION).document(other_user_id)
    user_doc = _get_in_transaction(user_ref, transaction)
    other_doc = _get_in_transaction(other_ref, transaction)
    if not user_doc.exists or not other_doc.exists:
        raise ProcedureError(
            outcomes.NOT_FOUND, "One or both user profiles do not exist."
        )

    transaction.update(user_ref, {"friends": firestore.ArrayRemove([other_user_id])})
    transaction.update(other_ref, {"friends": firestore.ArrayRemove([user_id])})
    return ProcedureOutcome.ok("Unfriended successfully.")


def unfriend(
    db: Client, user_id: str | None, other_user_id: str | None
) -> ProcedureOutcome:
    """Atomically end the friendship between two users."""
    if not user_id:
        return ProcedureOutcome.failure(
            outcomes.UNAUTHENTICATED, "Authentication required."
        )
    if not other_user_id or other_user_id == user_id:
        return ProcedureOutcome.failure(
            outcomes.INVALID_ARGUMENT, "The other user ID is required."
        )
    return run_in_transaction(
        db, _unfriend_transaction, db, user_id, other_user_id, name="unfriendUser"
    )


def _load_pending_request(
    db: Client, request_id: str
) -> tuple[Any, dict[str, Any]]:
    request_ref = db.collection(FRIEND_REQUESTS_COLLECTION).document(request_id)
    request_doc = cast("DocumentSnapshot", request_ref.get())
    if not request_doc.exists:
        raise ProcedureError(outcomes.NOT_FOUND, "The friend request does not exist.")
    data = request_doc.to_dict() or {}
    if data.get("status") != REQUEST_PENDING:
        raise ProcedureError(
            outcomes.FAILED_PRECONDITION, "This request is no longer pending."
        )
    return request_ref, data


def reject_friend_request(db: Client, user_id: str, request_id: str) -> ProcedureOutcome:
    """Reject a pending request; only its receiver may do this."""
    try:
        request_ref, data = _load_pending_request(db, request_id)
        if data.get("receiverId") != user_id:
            raise ProcedureError(
                outcomes.PERMISSION_DENIED,
                "You do not have permission to reject this request.",
            )
        request_ref.update(
            {"status": REQUEST_REJECTED, "updatedAt": firestore.SERVER_TIMESTAMP}
        )
    except ProcedureError as e:
        current_app.logger.warning(f"rejectFriendRequest rejected ({e.code}): {e.message}")
        return e.to_outcome()
    except gcp_exceptions.GoogleAPICallError as e:
        current_app.logger.error(f"Error rejecting friend request: {e}")
        return ProcedureOutcome.failure(
            outcomes.INTERNAL, "Failed to reject request. Please try again."
        )
    return ProcedureOutcome.ok("Friend request rejected.")


def delete_friend_request(db: Client, user_id: str, request_id: str) -> ProcedureOutcome:
    """Hard-delete a pending request; either party may do this."""
    try:
        request_ref, data = _load_pending_request(db, request_id)
        if user_id not in (data.get("senderId"), data.get("receiverId")):
            raise ProcedureError(
                outcomes.PERMISSION_DENIED,
                "You do not have permission to delete this request.",
            )
        request_ref.delete()
    except ProcedureError as e:
        current_app.logger.warning(f"deleteFriendRequest rejected ({e.code}): {e.message}")
        return e.to_outcome()
    except gcp_exceptions.GoogleAPICallError as e:
        current_app.logger.error(f"Error deleting friend request: {e}")
        return ProcedureOutcome.failure(
            outcomes.INTERNAL, "Failed to delete request. Please try again."
        )
    return ProcedureOutcome.ok("Friend request deleted.")


def _pending_between(db: Client, sender_id: str, receiver_id: str) -> bool:
    query = (
        db.collection(FRIEND_REQUESTS_COLLECTION)
        .where(filter=firestore.FieldFilter("senderId", "==", sender_id))
        .where(filter=firestore.FieldFilter("receiverId", "==", receiver_id))
        .where(filter=firestore.FieldFilter("status", "==", REQUEST_PENDING))
        .limit(1)
    )
    return len(list(query.stream())) > 0


def send_friend_request(
    db: Client, user_id: str | None, target_user_id: str | None
) -> ProcedureOutcome:
    """Create a pending friend request from ``user_id`` to ``target_user_id``."""
    if not user_id:
        return ProcedureOutcome.failure(
            outcomes.UNAUTHENTICATED, "Authentication required."
        )
    if not target_user_id or target_user_id == user_id:
        return ProcedureOutcome.failure(
            outcomes.INVALID_ARGUMENT, "A valid target user is required."
        )

    try:
        users = db.collection(USERS_COLLECTION)
        target_doc = cast("DocumentSnapshot", users.document(target_user_id).get())
        if not target_doc.exists:
            return ProcedureOutcome.failure(outcomes.NOT_FOUND, "User not found.")
        user_doc = cast("DocumentSnapshot", users.document(user_id).get())
        friends = (user_doc.to_dict() or {}).get("friends") or []
        if target_user_id in friends:
            return ProcedureOutcome.failure(
                outcomes.ALREADY_EXISTS, "You are already friends."
            )
        if _pending_between(db, user_id, target_user_id) or _pending_between(
            db, target_user_id, user_id
        ):
            return ProcedureOutcome.failure(
                outcomes.ALREADY_EXISTS, "A friend request is already pending."
            )

        _, request_ref = db.collection(FRIEND_REQUESTS_COLLECTION).add(
            {
                "senderId": user_id,
                "receiverId": target_user_id,
                "status": REQUEST_PENDING,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
    except gcp_exceptions.GoogleAPICallError as e:
        current_app.logger.error(f"Error sending friend request: {e}")
        return ProcedureOutcome.failure(
            outcomes.INTERNAL, "Failed to send friend request."
        )
    return ProcedureOutcome.ok("Friend request sent.", requestId=request_ref.id)


def get_friendship_status(db: Client, user_id: str, target_user_id: str) -> str:
    """Describe the relationship between the viewer and a profile."""
    if user_id == target_user_id:
        return FRIENDSHIP_SELF
    user_doc = cast(
        "DocumentSnapshot", db.collection(USERS_COLLECTION).document(user_id).get()
    )
    friends = (user_doc.to_dict() or {}).get("friends") or [] if user_doc.exists else []
    if target_user_id in friends:
        return FRIENDSHIP_FRIENDS
    if _pending_between(db, user_id, target_user_id):
        return FRIENDSHIP_PENDING_SENT
    if _pending_between(db, target_user_id, user_id):
        return FRIENDSHIP_PENDING_RECEIVED
    return FRIENDSHIP_NONE


def get_incoming_requests(db: Client, user_id: str) -> list[dict[str, Any]]:
    """Fetch pending requests addressed to the user, newest first."""
    query = (
        db.collection(FRIEND_REQUESTS_COLLECTION)
        .where(filter=firestore.FieldFilter("receiverId", "==", user_id))
        .where(filter=firestore.FieldFilter("status", "==", REQUEST_PENDING))
    )
    requests = [{"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()]
    if not requests:
        return []

    sender_ids = list({r["senderId"] for r in requests if r.get("senderId")})
    refs = [db.collection(USERS_COLLECTION).document(uid) for uid in sender_ids]
    sender_docs = cast(list["DocumentSnapshot"], db.get_all(refs))
    usernames = {
        doc.id: (doc.to_dict() or {}).get("username") for doc in sender_docs if doc.exists
    }

    for request in requests:
        sender_id = request.get("senderId")
        request["senderInfo"] = {
            "uid": sender_id,
            "username": usernames.get(sender_id) or "Unknown User",
        }

    def created(request: dict[str, Any]) -> float:
        created_at = to_datetime(request.get("createdAt"))
        return created_at.timestamp() if created_at else 0.0

    return sorted(requests, key=created, reverse=True)
