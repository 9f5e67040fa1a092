"""Typed results returned by the server procedures.

Every procedure reports exactly one outcome. ``OK`` carries a success
message; every other code names the precondition that failed. Outcomes are
plain values so they cross the HTTP boundary without relying on exception
propagation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

OK = "ok"
NOT_FOUND = "not-found"
PERMISSION_DENIED = "permission-denied"
FAILED_PRECONDITION = "failed-precondition"
ALREADY_EXISTS = "already-exists"
UNAUTHENTICATED = "unauthenticated"
INVALID_ARGUMENT = "invalid-argument"
DEADLINE_EXCEEDED = "deadline-exceeded"
INTERNAL = "internal"

HTTP_STATUS = {
    OK: 200,
    INVALID_ARGUMENT: 400,
    UNAUTHENTICATED: 401,
    PERMISSION_DENIED: 403,
    NOT_FOUND: 404,
    ALREADY_EXISTS: 409,
    FAILED_PRECONDITION: 412,
    INTERNAL: 500,
    DEADLINE_EXCEEDED: 504,
}


@dataclass(frozen=True)
class ProcedureOutcome:
    """The terminal result of a server procedure."""

    code: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.code == OK

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.code, 500)

    @classmethod
    def ok(cls, message: str, **data: Any) -> ProcedureOutcome:
        return cls(OK, message, dict(data))

    @classmethod
    def failure(cls, code: str, message: str) -> ProcedureOutcome:
        return cls(code, message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the outcome for a JSON response."""
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if not self.success:
            payload["code"] = self.code
        if self.data:
            payload["data"] = self.data
        return payload
