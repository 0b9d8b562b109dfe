"""Client error taxonomy.

Learn: callers only need to distinguish four outcomes:
- NetworkError → no response at all (not retried here)
- RequestError → the server answered with a non-2xx; passed through as-is
- AuthExpired → the session could not be recovered and has been ended
- RefreshExhausted → a 401 came back even after a refresh + replay

Authentication failures are resolved locally (refresh + replay) and only
surface here when that local resolution itself fails.
"""

from typing import Any, Optional

# Texts shown to end users for common statuses
USER_MESSAGES = {
    403: "You do not have permission to perform this action",
    404: "Resource not found",
    422: "Validation error",
    429: "Too many requests. Please try again later",
    500: "Server error. Please try again later",
}


class ContinuumError(Exception):
    """Base class for every error raised by the client."""


class NetworkError(ContinuumError):
    """The request never produced a response (connect failure, timeout, ...)."""


class RequestError(ContinuumError):
    """The server responded with a non-2xx status."""

    def __init__(self, status: int, body: Any = None):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {self.message}")

    @property
    def message(self) -> str:
        """Best-effort human message pulled out of the error body."""
        body = self.body
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            for key in ("message", "detail"):
                if body.get(key):
                    return str(body[key])
        elif isinstance(body, str) and body:
            return body
        return "An error occurred"

    def user_message(self) -> str:
        if self.status == 400:
            return f"Bad Request: {self.message}"
        return USER_MESSAGES.get(self.status, self.message)


class HttpError(RequestError):
    """Raised by the dispatcher for a non-2xx response."""


class AuthExpired(ContinuumError):
    """The session for an audience ended and could not be recovered."""

    def __init__(self, audience: str, reason: str, status: Optional[int] = None):
        self.audience = audience
        self.reason = reason
        self.status = status
        super().__init__(f"{audience} session expired: {reason}")


class RefreshExhausted(AuthExpired):
    """401 on a request that was already replayed once after a refresh."""


class InvalidTokenResponse(ContinuumError):
    """A login or refresh response did not carry the expected tokens."""
