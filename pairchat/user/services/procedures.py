"""Runs server procedures inside Firestore transactions."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore
from flask import current_app
from google.api_core import exceptions as gcp_exceptions

from pairchat.core import outcomes
from pairchat.core.constants import TRANSACTION_MAX_ATTEMPTS
from pairchat.core.outcomes import ProcedureOutcome
from pairchat.errors import ProcedureError

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


def run_in_transaction(
    db: Client,
    procedure: Callable[..., ProcedureOutcome],
    *args: Any,
    name: str,
) -> ProcedureOutcome:
    """Run ``procedure(transaction, *args)`` atomically and return its outcome.

    Firestore retries the function when a concurrent transaction touches the
    same documents. A ``ProcedureError`` raised by the function rolls the
    transaction back and becomes a failure outcome.
    """
    transaction: Transaction = db.transaction(max_attempts=TRANSACTION_MAX_ATTEMPTS)
    try:
        return firestore.transactional(procedure)(transaction, *args)
    except ProcedureError as e:
        current_app.logger.warning(f"{name} rejected ({e.code}): {e.message}")
        return e.to_outcome()
    except gcp_exceptions.DeadlineExceeded as e:
        current_app.logger.error(f"{name} timed out: {e}")
        return ProcedureOutcome.failure(
            outcomes.DEADLINE_EXCEEDED, "The operation timed out. Please try again."
        )
    except (gcp_exceptions.GoogleAPICallError, ValueError) as e:
        # ValueError is raised once Firestore gives up retrying a contended commit.
        current_app.logger.error(f"{name} transaction failed: {e}")
        return ProcedureOutcome.failure(
            outcomes.INTERNAL, "An internal error occurred. Please try again."
        )
