from .adapters import (
    DefaultPayloadAdapter,
    DefaultResponseAdapter,
    PayloadAdapter,
    RefreshedCredentials,
    ResponseAdapter,
)
from .client import TokenRefreshAuth, WithTokenOptions, with_token
from .credential_store import (
    CredentialStore,
    FunctionCredentialStore,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
)
from .error_handler import (
    ConfigLoadError,
    ConfigValidationError,
    MissingRefreshCredentialError,
    RefreshAbortedError,
    RefreshEndpointError,
    StoreError,
    TokenRefreshError,
)
from .refresh_config import RefreshSettings
from .refresh_coordinator import RefreshCoordinator
from .retry_queue import RetryQueue

__all__ = [
    "with_token",
    "WithTokenOptions",
    "TokenRefreshAuth",
    "RefreshCoordinator",
    "RetryQueue",
    "RefreshSettings",
    "CredentialStore",
    "FunctionCredentialStore",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    "ResponseAdapter",
    "PayloadAdapter",
    "DefaultResponseAdapter",
    "DefaultPayloadAdapter",
    "RefreshedCredentials",
    "TokenRefreshError",
    "StoreError",
    "MissingRefreshCredentialError",
    "RefreshEndpointError",
    "RefreshAbortedError",
    "ConfigLoadError",
    "ConfigValidationError",
]
