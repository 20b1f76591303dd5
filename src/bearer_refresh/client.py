# src/bearer_refresh/client.py

import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncGenerator,
    Callable,
    Collection,
    Generator,
    Optional,
    Union,
)

import httpx

from .adapters import (
    PayloadAdapter,
    ResponseAdapter,
    as_payload_adapter,
    as_response_adapter,
)
from .credential_store import CredentialStore, FunctionCredentialStore
from .error_handler import DEFAULT_AUTH_FAILURE_STATUSES
from .refresh_coordinator import RefreshCoordinator
from .request_injector import DEFAULT_AUTH_HEADER_PREFIX, RequestInjector

if TYPE_CHECKING:
    from .refresh_config import RefreshSettings

lib_logger = logging.getLogger("bearer_refresh")


@dataclass
class WithTokenOptions:
    """
    Configuration for ``with_token``.

    The five store functions may be plain functions or coroutine functions.
    ``response_adapter`` and ``payload_adapter`` accept an adapter instance or
    a plain callable; None selects the default field mapping.
    """

    get_credential_fn: Callable[[], Any]
    get_refresh_credential_fn: Callable[[], Any]
    set_credential_fn: Callable[[str], Any]
    set_refresh_credential_fn: Callable[[str], Any]
    remove_credentials_fn: Callable[[], Any]
    refresh_endpoint: str
    on_refresh_failure: Optional[Callable[[BaseException], Any]] = None
    auth_header_prefix: str = DEFAULT_AUTH_HEADER_PREFIX
    response_adapter: Union[ResponseAdapter, Callable[[Any], Any], None] = None
    payload_adapter: Union[PayloadAdapter, Callable[[str], Any], None] = None
    auth_failure_statuses: Collection[int] = DEFAULT_AUTH_FAILURE_STATUSES

    @classmethod
    def from_store(
        cls, store: CredentialStore, refresh_endpoint: str, **kwargs: Any
    ) -> "WithTokenOptions":
        """Build options whose store functions are the methods of ``store``."""
        return cls(
            get_credential_fn=store.get_credential,
            get_refresh_credential_fn=store.get_refresh_credential,
            set_credential_fn=store.set_credential,
            set_refresh_credential_fn=store.set_refresh_credential,
            remove_credentials_fn=store.remove_credentials,
            refresh_endpoint=refresh_endpoint,
            **kwargs,
        )

    @classmethod
    def from_settings(
        cls,
        settings: "RefreshSettings",
        store: Optional[CredentialStore] = None,
        **kwargs: Any,
    ) -> "WithTokenOptions":
        """Build options from loaded settings, using the settings' store unless one is given."""
        store = store if store is not None else settings.build_store()
        kwargs.setdefault("auth_header_prefix", settings.auth_header_prefix)
        kwargs.setdefault("auth_failure_statuses", settings.auth_failure_statuses)
        return cls.from_store(store, settings.refresh_endpoint, **kwargs)

    def build_store(self) -> CredentialStore:
        return FunctionCredentialStore(
            self.get_credential_fn,
            self.get_refresh_credential_fn,
            self.set_credential_fn,
            self.set_refresh_credential_fn,
            self.remove_credentials_fn,
        )


class TokenRefreshAuth(httpx.Auth):
    """
    HTTPX Auth flow that injects the stored bearer credential and, on an
    authorization failure, retries once after a coordinated refresh.
    """

    requires_request_body = True

    def __init__(self, client: httpx.AsyncClient, options: WithTokenOptions):
        store = options.build_store()
        self.injector = RequestInjector(store, options.auth_header_prefix)
        self.coordinator = RefreshCoordinator(
            client=client,
            store=store,
            injector=self.injector,
            refresh_endpoint=options.refresh_endpoint,
            response_adapter=as_response_adapter(options.response_adapter),
            payload_adapter=as_payload_adapter(options.payload_adapter),
            on_refresh_failure=options.on_refresh_failure,
            auth_failure_statuses=options.auth_failure_statuses,
        )

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("TokenRefreshAuth only supports httpx.AsyncClient")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        if self.requires_request_body:
            # Buffer the body so the request can be replayed after a refresh
            await request.aread()
        await self.injector.inject(request)
        response = yield request

        retry = await self.coordinator.handle_response(request, response)
        if retry is not None:
            yield retry


def with_token(
    client: httpx.AsyncClient, options: WithTokenOptions
) -> httpx.AsyncClient:
    """
    Add bearer authentication with single-flight refresh to an httpx client.

    Args:
        client: AsyncClient to augment; its ``auth`` is replaced
        options: Configuration for the credential store, endpoint and adapters

    Returns:
        The same client, ready to use as before
    """
    if not isinstance(client, httpx.AsyncClient):
        raise TypeError(
            f"with_token requires an httpx.AsyncClient, got {type(client).__name__}"
        )
    if not options.refresh_endpoint:
        raise ValueError("refresh_endpoint is required")
    if client.auth is not None:
        lib_logger.warning(
            f"Replacing existing client auth {type(client.auth).__name__} with TokenRefreshAuth"
        )

    client.auth = TokenRefreshAuth(client, options)
    return client
