"""JSON API routes for channels."""

from firebase_admin import firestore
from flask import current_app, jsonify, session
from google.api_core import exceptions as gcp_exceptions

from pairchat.auth.decorators import login_required
from pairchat.errors import AppError

from . import bp
from .services import delete_chat, reset_daily_counts


@bp.route("/api/<string:other_user_id>/delete", methods=["POST"])
@login_required
def delete_channel(other_user_id):
    """Delete the whole conversation with ``other_user_id`` for both users."""
    db = firestore.client()
    outcome = delete_chat(db, session["user_id"], other_user_id)
    if not outcome.success:
        current_app.logger.warning(
            f"Chat delete failed for {session['user_id']}: {outcome.message}"
        )
    return jsonify(outcome.to_dict()), outcome.status_code


@bp.route("/api/settings")
@login_required
def channel_settings():
    """Expose the paging, cache and quota settings clients open channels with."""
    return jsonify(
        {
            "success": True,
            "pageSize": current_app.config["MESSAGES_PAGE_SIZE"],
            "cacheTtlSeconds": current_app.config["MESSAGE_CACHE_TTL_SECONDS"],
            "dailyMessageLimit": current_app.config["FREE_PLAN_DAILY_MESSAGE_LIMIT"],
        }
    )


@bp.route("/api/admin/reset_daily_counts", methods=["POST"])
@login_required(admin_required=True)
def reset_daily_message_counts():
    """Zero every user's daily message counter. Run once a day by a scheduler."""
    db = firestore.client()
    try:
        reset = reset_daily_counts(db)
    except gcp_exceptions.GoogleAPICallError as e:
        current_app.logger.error(f"Error resetting daily message counts: {e}")
        raise AppError("Failed to reset daily message counts.", 500) from e
    current_app.logger.info(
        f"Admin {session['user_id']} reset daily message counts for {reset} users"
    )
    return jsonify(
        {"success": True, "message": "Daily message counts reset.", "reset": reset}
    )
