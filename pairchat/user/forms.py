"""Forms for the user blueprint.

The API endpoints post JSON bodies, which Flask-WTF binds to the form like
regular form data. CSRF is enforced app-wide by CSRFProtect instead of per
form.
"""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import StringField
from wtforms.validators import AnyOf, DataRequired, Length

from pairchat.core.constants import TAB_FIELDS


class JSONForm(FlaskForm):
    """Base form for JSON API payloads."""

    class Meta:
        csrf = False


class RenameUsernameForm(JSONForm):
    """Form for claiming a new username."""

    newUsername = StringField(
        "Username",
        validators=[
            DataRequired(message="New username is required."),
            Length(max=30),
        ],
    )


class FriendRequestForm(JSONForm):
    """Form for sending a friend request."""

    targetUserId = StringField(
        "Target User",
        validators=[DataRequired(message="A target user is required.")],
    )


class UnfriendForm(JSONForm):
    """Form for ending a friendship."""

    otherUserId = StringField(
        "Other User",
        validators=[DataRequired(message="The other user ID is required.")],
    )


class ChatTabForm(JSONForm):
    """Form for choosing one of the chat lists."""

    tab = StringField(
        "Tab",
        validators=[
            DataRequired(message="A tab is required."),
            AnyOf(list(TAB_FIELDS), message="Unknown tab."),
        ],
    )
