"""
API Error Taxonomy

Every failure that crosses the API boundary is converted into one of the
exceptions below. Callers never see raw transport exceptions.

DESIGN DECISION: Classification happens once, in from_response() and
from_transport_error(). The cache and the mutation runner only ever deal
with SpendSyncError subclasses, so a timeout, an offline device and a 500
are handled by the same code path.
"""

from typing import Any, Optional

from pydantic import BaseModel


GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."
NETWORK_ERROR_MESSAGE = "Unable to connect to the server"

# Successful status, unusable body. For writes this means the server committed.
INVALID_RESPONSE_CODE = "INVALID_RESPONSE"

# Domain-specific codes the client knows how to explain.
CONFLICT_MESSAGES: dict[str, str] = {
    "ACCOUNT_NAME_EXISTS": "An account with this name already exists",
    "LAST_ACCOUNT": "You cannot delete your only account",
    "CATEGORY_NAME_EXISTS": "A category with this name already exists",
    "TAG_NAME_EXISTS": "A tag with this name already exists",
    "TAG_NAME_INVALID_FORMAT": (
        "Tag names can only contain letters, numbers, hyphens and underscores"
    ),
}


class FieldError(BaseModel):
    """A single field-level problem reported by the server."""

    field: str
    message: str


class SpendSyncError(Exception):
    """Base exception for every API failure."""

    def __init__(
        self,
        message: str,
        *,
        status: int = 0,
        code: str = "UNKNOWN_ERROR",
        details: Optional[list[FieldError]] = None,
    ):
        self.status = status
        self.code = code
        self.message = message
        self.details = details or []
        super().__init__(message)

    @property
    def user_message(self) -> str:
        """Message suitable for showing to the user."""
        if self.code in CONFLICT_MESSAGES:
            return CONFLICT_MESSAGES[self.code]
        return self.message or GENERIC_ERROR_MESSAGE

    def field_errors(self) -> dict[str, str]:
        """Map of field name to message (first message wins)."""
        errors: dict[str, str] = {}
        for detail in self.details:
            errors.setdefault(detail.field, detail.message)
        return errors

    def to_log_dict(self) -> dict:
        return {
            "error_class": type(self).__name__,
            "status": self.status,
            "code": self.code,
            "message": self.message,
            "details": [d.model_dump() for d in self.details],
        }


class ValidationError(SpendSyncError):
    """Request rejected because of invalid fields (4xx with details)."""
    pass


class ConflictError(SpendSyncError):
    """Duplicate name or another domain-specific conflict."""
    pass


class NotFoundError(SpendSyncError):
    """Entity does not exist on the server."""
    pass


class AuthError(SpendSyncError):
    """Unauthorized or expired session."""
    pass


class NetworkError(SpendSyncError):
    """Transport failure: no response was received."""
    pass


class UnknownError(SpendSyncError):
    """Anything not covered above."""
    pass


def _parse_details(raw: Any) -> list[FieldError]:
    if not isinstance(raw, list):
        return []
    details = []
    for item in raw:
        if isinstance(item, dict) and "field" in item:
            details.append(FieldError(
                field=str(item["field"]),
                message=str(item.get("message", "")),
            ))
    return details


def from_response(status: int, body: Any) -> SpendSyncError:
    """
    Build the matching exception for an error response.

    Args:
        status: HTTP status code
        body: Decoded JSON body ({code, message, details?}) or None

    Returns:
        A SpendSyncError subclass instance (never raises)
    """
    body = body if isinstance(body, dict) else {}
    code = str(body.get("code") or "UNKNOWN_ERROR")
    message = str(body.get("message") or "An unexpected error occurred")
    details = _parse_details(body.get("details"))
    kwargs = {"status": status, "code": code, "details": details}

    if status == 409 or code in CONFLICT_MESSAGES:
        return ConflictError(message, **kwargs)
    if status in (401, 403):
        return AuthError(message, **kwargs)
    if status == 404:
        return NotFoundError(message, **kwargs)
    if status in (400, 422) or (400 <= status < 500 and details):
        return ValidationError(message, **kwargs)
    return UnknownError(message, **kwargs)


def from_transport_error(exc: Exception) -> NetworkError:
    """Wrap a transport-level failure (timeout, DNS, refused connection)."""
    error = NetworkError(NETWORK_ERROR_MESSAGE, status=0, code="NETWORK_ERROR")
    error.__cause__ = exc
    return error


def from_invalid_body(exc: Exception, what: str, status: int = 0) -> UnknownError:
    """Wrap a successful response whose body cannot be decoded or validated."""
    error = UnknownError(f"Unexpected response for {what}", status=status, code=INVALID_RESPONSE_CODE)
    error.__cause__ = exc
    return error


def user_message_for(error: BaseException) -> str:
    """User-facing text for any exception, falling back to a generic message."""
    if isinstance(error, SpendSyncError):
        return error.user_message
    return GENERIC_ERROR_MESSAGE
