"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - use a specific subclass so callers (the UI
    # shell) can decide what to show: "log in again", "try later", "check the link"...
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    Raised for malformed playlist references and empty required ID lists.
    Never retried.

    Example:
        raise ValidationError("Invalid playlist URL or ID")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Example:
        raise ConfigurationError("SPOTIFY_CLIENT_ID is not configured")
    """

    pass


class AuthenticationError(DomainException):
    """User is not authenticated or the session could not be renewed.

    Raised when an operation runs without a stored credential, or when Spotify keeps
    answering 401 after the refresh-and-replay path. Caller must re-authenticate.
    """

    pass


class ExternalServiceError(DomainException):
    """Spotify returned a non-2xx response that is not otherwise classified.

    Surfaced only after the retry budget is exhausted.

    Example:
        raise ExternalServiceError("Spotify API error: 503 Service Unavailable", status_code=503)
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceededError(DomainException):
    """Spotify asked us to wait longer than we are willing to.

    Hey future me - retry_after_seconds is what Spotify requested, so the UI can say
    "try again in ~N minutes". We don't sleep on it, that would freeze the app.
    """

    def __init__(self, message: str, retry_after_seconds: int | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class NetworkError(DomainException):
    """Connection reset, timeout or aborted request that survived every retry."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class TokenRefreshException(DomainException):
    """Raised when token refresh fails and re-authentication is required.

    Hey future me - this exception is thrown when Spotify's refresh token is no longer valid.
    Common causes:
    - User revoked app access in Spotify settings
    - App credentials changed
    - No refresh token stored at all

    The token manager catches this, logs it and lets the original 401 bubble up.
    """

    def __init__(
        self,
        message: str = "Token refresh failed. Please re-authenticate with Spotify.",
        error_code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code  # e.g., "invalid_grant"
        self.http_status = http_status  # e.g., 400, 401

    @property
    def requires_reauth(self) -> bool:
        """Check if error requires user re-authentication."""
        return self.error_code == "invalid_grant" or self.http_status in (400, 401, 403)


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DomainException",
    "ExternalServiceError",
    "NetworkError",
    "RateLimitExceededError",
    "TokenRefreshException",
    "ValidationError",
]
