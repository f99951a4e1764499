"""Application-specific exceptions for actionsee.

This module provides a hierarchy of exceptions that enable more precise
error handling throughout the application. Using specific exception types
allows callers to catch and handle different error conditions appropriately.

Exception Hierarchy:
    ActionseeError (base)
    ├── ApiError
    │   ├── AuthenticationError
    │   ├── NotFoundError
    │   └── RateLimitExceededError
    └── ConfigurationError
"""


class ActionseeError(Exception):
    """Base exception for all actionsee errors.

    All application-specific exceptions inherit from this class,
    allowing callers to catch all actionsee errors with a single handler.
    """


class ApiError(ActionseeError):
    """Raised when a call to the GitHub API fails.

    Covers both transport failures (connection refused, timeouts) and
    error responses from the API.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, or None for transport failures.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.cause = cause
        self.message = message
        if cause:
            self.message = f"{self.message}: {cause}"
        super().__init__(self.message)


class AuthenticationError(ApiError):
    """Raised when the API rejects the configured token (401/403)."""


class NotFoundError(ApiError):
    """Raised when the requested repository, run, or job does not exist."""


class RateLimitExceededError(ApiError):
    """Raised when the API quota is exhausted.

    Attributes:
        reset_at: Unix timestamp when the quota resets, if reported.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reset_at: int | None = None,
    ) -> None:
        self.reset_at = reset_at
        super().__init__(message, status_code=status_code)


class ConfigurationError(ActionseeError):
    """Raised when there is a configuration error.

    Attributes:
        parameter: The configuration parameter that is invalid.
        message: Human-readable error description.
    """

    def __init__(self, parameter: str, message: str | None = None) -> None:
        self.parameter = parameter
        self.message = message or f"Invalid configuration for '{parameter}'"
        super().__init__(self.message)
