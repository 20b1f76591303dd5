# src/bearer_refresh/error_handler.py

from typing import Collection, Optional

import httpx

DEFAULT_AUTH_FAILURE_STATUSES = (401,)


class TokenRefreshError(Exception):
    """Base class for every error raised by the library."""

    pass


class StoreError(TokenRefreshError):
    """
    Raised when a credential store operation fails.

    The original exception is chained as ``__cause__``.

    Attributes:
        operation: Name of the store method that failed (e.g. "get_credential")
    """

    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        self.message = message or f"Credential store operation '{operation}' failed"
        super().__init__(self.message)


class MissingRefreshCredentialError(TokenRefreshError):
    """Raised when a refresh is needed but the store holds no refresh credential."""

    def __init__(self, message: str = "No refresh credential available"):
        super().__init__(message)


class RefreshEndpointError(TokenRefreshError):
    """
    Raised when the call to the refresh endpoint fails.

    Covers non-2xx responses, transport errors and response bodies the
    response adapter cannot map.

    Attributes:
        status_code: HTTP status of the refresh response, None for transport errors
        body: Raw response text when one was received
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class RefreshAbortedError(TokenRefreshError):
    """Delivered to queued requests when the driving refresh is cancelled."""

    pass


class ConfigLoadError(TokenRefreshError):
    """Raised when configuration fails to load."""

    pass


class ConfigValidationError(TokenRefreshError):
    """Raised when configuration validation fails."""

    pass


def is_authorization_failure(
    response: httpx.Response,
    statuses: Collection[int] = DEFAULT_AUTH_FAILURE_STATUSES,
) -> bool:
    """Return True if the response means the presented credential was rejected."""
    return response.status_code in statuses


def describe_refresh_failure(response: httpx.Response) -> RefreshEndpointError:
    """Build a RefreshEndpointError from a non-2xx refresh response."""
    try:
        body = response.text
    except httpx.ResponseNotRead:
        body = None
    return RefreshEndpointError(
        f"Refresh endpoint returned HTTP {response.status_code}",
        status_code=response.status_code,
        body=body,
    )
