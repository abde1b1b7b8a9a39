# claimdesk/errors.py
from __future__ import annotations


class ClaimDeskError(Exception):
    """Base class for every error the claim services raise on purpose.

    ``kind`` is the machine-readable discriminator returned to API callers;
    ``status_code`` is the HTTP status the JSON error handler uses.
    """

    kind = "error"
    status_code = 500
    default_message = "Request failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "kind": self.kind}


class Unauthenticated(ClaimDeskError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Authentication required."


class Forbidden(ClaimDeskError):
    kind = "forbidden"
    status_code = 403
    default_message = "You are not permitted to perform this action."


class NotFound(ClaimDeskError):
    kind = "not_found"
    status_code = 404
    default_message = "Claim not found."


class ValidationError(ClaimDeskError):
    kind = "validation"
    status_code = 400
    default_message = "Invalid input."


class ConflictError(ClaimDeskError):
    kind = "conflict"
    status_code = 409
    default_message = "Claim is not in a state that permits this action."


class ClaimNumberExhaustedError(ConflictError):
    default_message = "Claim number sequence exhausted for this year."


class DependencyError(ClaimDeskError):
    kind = "dependency"
    status_code = 503
    default_message = "A storage dependency failed. Please try again."


class AuditLogImmutableError(RuntimeError):
    """Raised when code tries to update or delete an existing claim log row."""
