from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from flask import current_app

from pairchat.core import outcomes
from pairchat.core.constants import (
    TRANSACTION_TIMEOUT_SECONDS,
    USERNAMES_COLLECTION,
    USERS_COLLECTION,
)
from pairchat.core.outcomes import ProcedureOutcome
from pairchat.errors import ProcedureError

from .procedures import run_in_transaction

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


def normalize_username(raw: Any) -> str:
    """Trim and lowercase a requested username; non-strings normalize to ''."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()


def _rename_username_transaction(
    transaction: Transaction, db: Client, user_id: str, new_username: str
) -> ProcedureOutcome:
    """Swap a user's username reservation; the reservation read serializes renames."""
    user_ref = db.collection(USERS_COLLECTION).document(user_id)
    user_doc = cast(
        "DocumentSnapshot",
        user_ref.get(transaction=transaction, timeout=TRANSACTION_TIMEOUT_SECONDS),
    )
    if not user_doc.exists:
        raise ProcedureError(outcomes.NOT_FOUND, "User profile not found.")

    old_username = (user_doc.to_dict() or {}).get("username")
    if old_username == new_username:
        return ProcedureOutcome.ok(
            "Username is already the same.", username=new_username
        )

    new_ref = db.collection(USERNAMES_COLLECTION).document(new_username)
    new_doc = cast(
        "DocumentSnapshot",
        new_ref.get(transaction=transaction, timeout=TRANSACTION_TIMEOUT_SECONDS),
    )
    if new_doc.exists and (new_doc.to_dict() or {}).get("uid") != user_id:
        raise ProcedureError(outcomes.ALREADY_EXISTS, "This username is already taken.")

    transaction.set(new_ref, {"uid": user_id})
    if old_username:
        transaction.delete(db.collection(USERNAMES_COLLECTION).document(old_username))
    transaction.update(user_ref, {"username": new_username})
    return ProcedureOutcome.ok("Username updated successfully.", username=new_username)


def rename_username(db: Client, user_id: str | None, new_username: Any) -> ProcedureOutcome:
    """Atomically give ``user_id`` a new globally unique username."""
    if not user_id:
        return ProcedureOutcome.failure(
            outcomes.UNAUTHENTICATED, "Authentication required."
        )
    username = normalize_username(new_username)
    if not username:
        return ProcedureOutcome.failure(
            outcomes.INVALID_ARGUMENT, "New username is required."
        )

    outcome = run_in_transaction(
        db, _rename_username_transaction, db, user_id, username, name="updateUsername"
    )
    if outcome.success:
        current_app.logger.info(f"User {user_id} now owns username {username}")
    return outcome

