"""Error taxonomy and client-safe error messages."""

import re

GENERIC_MESSAGE = "An unexpected error occurred"
INTERNAL_MESSAGE = "Internal server error"
_MAX_MESSAGE_LENGTH = 200
_PRODUCTION_ENVIRONMENTS = {"prod", "production"}
_SENSITIVE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"secret",
        r"key",
        r"password",
        r"token",
        r"credential",
        r"authorization",
    )
]


class DeliveryError(Exception):
    """Base error carrying an HTTP status code."""

    status_code = 500
    error = INTERNAL_MESSAGE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(DeliveryError):
    """Missing or malformed caller input."""

    status_code = 400
    error = "Invalid input"


class UnauthorizedError(DeliveryError):
    """Caller identity is missing or does not match the gallery."""

    status_code = 401
    error = "Unauthorized"


class ForbiddenError(DeliveryError):
    """Caller is authenticated but not allowed to perform the action."""

    status_code = 403
    error = "Forbidden"


class NotFoundError(DeliveryError):
    """Gallery or order does not exist."""

    status_code = 404
    error = "Not found"


class ConflictError(DeliveryError):
    """The action conflicts with the current order state."""

    status_code = 409
    error = "Conflict"


class DependencyFailureError(DeliveryError):
    """An external collaborator (archive task, email API) failed."""

    status_code = 502
    error = "Dependency failure"


def sanitize_error_message(
    error: BaseException | str | None, environment: str = "local"
) -> str:
    """Return a message that is safe to show to API clients."""
    if error is None:
        return GENERIC_MESSAGE
    message = str(error) or GENERIC_MESSAGE
    if any(pattern.search(message) for pattern in _SENSITIVE_PATTERNS):
        return GENERIC_MESSAGE
    if environment.lower() in _PRODUCTION_ENVIRONMENTS:
        return INTERNAL_MESSAGE
    if len(message) > _MAX_MESSAGE_LENGTH:
        return message[: _MAX_MESSAGE_LENGTH - 3] + "..."
    return message


def error_payload(
    error: BaseException, environment: str = "local"
) -> tuple[int, dict[str, object]]:
    """Build the status code and JSON body for an error response."""
    if isinstance(error, DeliveryError):
        status_code = error.status_code
        if status_code < 500:
            return status_code, {"error": error.error, "message": error.message}
        return status_code, {
            "error": error.error,
            "message": sanitize_error_message(error, environment),
        }
    return 500, {
        "error": INTERNAL_MESSAGE,
        "message": sanitize_error_message(error, environment),
    }
