"""Custom exception classes for the application."""

from .core import outcomes


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class AuthenticationError(AppError):
    """Raised when a request has no authenticated user."""

    def __init__(self, message="Authentication required."):
        """Initialize the error."""
        super().__init__(message, 401)


class ProcedureError(AppError):
    """Raised inside a server procedure to abort it with a typed failure.

    Raising from inside a Firestore transaction function rolls the
    transaction back, so no partial state is ever committed.
    """

    def __init__(self, code, message):
        """Initialize the error."""
        super().__init__(message, outcomes.HTTP_STATUS.get(code, 500))
        self.code = code

    def to_outcome(self):
        """Convert the error into a procedure outcome."""
        return outcomes.ProcedureOutcome.failure(self.code, self.message)


class ChannelUnavailableError(AppError):
    """Raised when a channel cannot be opened because a participant id is missing."""

    def __init__(self, message="Both participants are required to open a channel."):
        """Initialize the error."""
        super().__init__(message, 400)


class TransportError(AppError):
    """Raised when a subscription or fetch against the document store fails."""

    def __init__(self, message="Unable to reach the message store."):
        """Initialize the error."""
        super().__init__(message, 503)


class WriteRejectedError(AppError):
    """Raised when the document store rejects a message write."""

    def __init__(self, message="The write was rejected.", reason=None):
        """Initialize the error."""
        super().__init__(message, 403 if reason == "permission-denied" else 400)
        self.reason = reason
