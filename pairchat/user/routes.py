"""JSON API routes for identity, friendship and chat lists."""

from firebase_admin import firestore
from flask import current_app, jsonify, session

from pairchat.auth.decorators import login_required
from pairchat.errors import ValidationError

from . import bp
from .forms import ChatTabForm, FriendRequestForm, RenameUsernameForm, UnfriendForm
from .services import UserService


def _validated(form):
    """Return the form if it validates, else raise with its first error."""
    if not form.validate():
        field_errors = next(iter(form.errors.values()))
        raise ValidationError(field_errors[0])
    return form


def _respond(outcome):
    return jsonify(outcome.to_dict()), outcome.status_code


@bp.route("/api/username", methods=["POST"])
@login_required
def rename_username():
    """Claim a new globally unique username."""
    form = _validated(RenameUsernameForm())
    db = firestore.client()
    return _respond(
        UserService.rename_username(db, session["user_id"], form.newUsername.data)
    )


@bp.route("/api/friend_requests", methods=["POST"])
@login_required
def send_friend_request():
    """Send a friend request to another user."""
    form = _validated(FriendRequestForm())
    db = firestore.client()
    return _respond(
        UserService.send_friend_request(db, session["user_id"], form.targetUserId.data)
    )


@bp.route("/api/friend_requests", methods=["GET"])
@login_required
def incoming_friend_requests():
    """List pending requests addressed to the current user."""
    db = firestore.client()
    requests = UserService.get_incoming_requests(db, session["user_id"])
    return jsonify({"success": True, "requests": requests})


@bp.route("/api/friend_requests/<string:request_id>/accept", methods=["POST"])
@login_required
def accept_friend_request(request_id):
    """Accept a pending friend request."""
    db = firestore.client()
    outcome = UserService.accept_friend_request(db, session["user_id"], request_id)
    if outcome.success:
        current_app.logger.info(f"User {session['user_id']} accepted {request_id}")
    return _respond(outcome)


@bp.route("/api/friend_requests/<string:request_id>/reject", methods=["POST"])
@login_required
def reject_friend_request(request_id):
    """Reject a pending friend request."""
    db = firestore.client()
    return _respond(
        UserService.reject_friend_request(db, session["user_id"], request_id)
    )


@bp.route("/api/friend_requests/<string:request_id>/delete", methods=["POST"])
@login_required
def delete_friend_request(request_id):
    """Withdraw or discard a pending friend request."""
    db = firestore.client()
    return _respond(
        UserService.delete_friend_request(db, session["user_id"], request_id)
    )


@bp.route("/api/unfriend", methods=["POST"])
@login_required
def unfriend():
    """End a friendship on both sides."""
    form = _validated(UnfriendForm())
    db = firestore.client()
    return _respond(UserService.unfriend(db, session["user_id"], form.otherUserId.data))


@bp.route("/api/friendship/<string:user_id>")
@login_required
def friendship_status(user_id):
    """Describe the relationship between the current user and ``user_id``."""
    db = firestore.client()
    status = UserService.get_friendship_status(db, session["user_id"], user_id)
    return jsonify({"success": True, "status": status})


@bp.route("/api/chats/<string:other_user_id>/move", methods=["POST"])
@login_required
def move_chat(other_user_id):
    """Move a conversation to the requested chat list."""
    form = _validated(ChatTabForm())
    db = firestore.client()
    return _respond(
        UserService.move_chat_to_tab(db, session["user_id"], other_user_id, form.tab.data)
    )


@bp.route("/api/chats/<string:other_user_id>/dump", methods=["POST"])
@login_required
def dump_chat(other_user_id):
    """Remove a conversation from a chat list, keeping its history."""
    form = _validated(ChatTabForm())
    db = firestore.client()
    return _respond(
        UserService.dump_chat(db, session["user_id"], other_user_id, form.tab.data)
    )
