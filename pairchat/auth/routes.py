from firebase_admin import auth, firestore
from flask import current_app, jsonify, request, session
from flask_wtf.csrf import generate_csrf
from google.api_core import exceptions as gcp_exceptions

from pairchat.errors import AppError, AuthenticationError
from pairchat.user.services import UserService

from . import bp


@bp.route("/session_login", methods=["POST"])
def session_login():
    """
    Called from the client after a successful Firebase sign-in.
    It receives the ID token, verifies it, and creates a server-side session.
    A user signing in for the first time gets a profile with secure defaults.
    """
    payload = request.get_json(silent=True) or {}
    id_token = payload.get("idToken")
    if not id_token:
        raise AuthenticationError("An ID token is required.")
    try:
        decoded_token = auth.verify_id_token(id_token)
    except (auth.InvalidIdTokenError, auth.CertificateFetchError, ValueError) as e:
        current_app.logger.warning(f"Rejected ID token during session login: {e}")
        raise AuthenticationError("Invalid or expired token.") from e

    uid = decoded_token["uid"]
    db = firestore.client()
    try:
        user = UserService.get_user_by_id(db, uid)
        if user is None:
            UserService.initialize_user(db, uid, decoded_token.get("email"))
            user = {}
    except gcp_exceptions.GoogleAPICallError as e:
        current_app.logger.error(f"Error loading user {uid} during session login: {e}")
        raise AppError("Unable to load your profile. Please try again.", 500) from e

    if user.get("isBanned"):
        current_app.logger.warning(f"Banned user {uid} attempted to sign in.")
        return jsonify({"success": False, "message": "This account is banned."}), 403

    session.clear()
    session["user_id"] = uid
    session["is_admin"] = user.get("isAdmin", False)
    return jsonify({"success": True, "message": "Signed in.", "uid": uid})


@bp.route("/logout", methods=["POST"])
def logout():
    """
    The actual sign-out is handled by the Firebase client SDK.
    This route clears the server-side session.
    """
    session.clear()
    return jsonify({"success": True, "message": "You have been logged out."})


@bp.route("/csrf_token")
def csrf_token():
    """Hand the client a token to send back in the X-CSRFToken header."""
    return jsonify({"success": True, "csrfToken": generate_csrf()})
