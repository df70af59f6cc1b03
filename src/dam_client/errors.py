"""Exception types raised by the DAM client."""
from typing import Any, Optional


class DamClientError(Exception):
    """Base class for every error raised by the client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(DamClientError):
    """Raised when the session cannot be refreshed and the user must log in again."""


class NetworkError(DamClientError):
    """Raised when the API could not be reached."""


class ValidationError(DamClientError):
    """Raised by client-side guards before any network call is made."""


class ApiError(DamClientError):
    """Non-2xx response from the API.

    ``payload`` is the response body exactly as the server sent it (decoded JSON
    when possible, raw text otherwise).
    """

    def __init__(self, status_code: int, payload: Any = None, message: Optional[str] = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(message or _message_from_payload(payload) or f"API request failed with status {status_code}")

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.message}"


class TransferError(DamClientError):
    """The direct PUT to object storage failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UploadCancelled(TransferError):
    """The caller aborted an upload."""

    def __init__(self, message: str = "Upload cancelled"):
        super().__init__(message)


def _message_from_payload(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("detail", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, list) and value:
                return "; ".join(str(item) for item in value)
        return None
    if isinstance(payload, str) and payload.strip():
        return payload.strip()[:200]
    return None
