# src/bearer_refresh/refresh_coordinator.py

"""
Single-flight Credential Refresh Coordinator

Ensures only ONE credential refresh runs at a time per client. When a request
is rejected with an authorization failure, the first such request becomes the
driver and performs the refresh; requests failing while that refresh is in
flight park in a RetryQueue and are released with the driver's outcome.

All state lives on the instance and is only touched between suspension points
of a single event loop, so no locks are needed.
"""

import logging
import time
from typing import Any, Callable, Collection, Dict, Optional

import httpx

from .adapters import PayloadAdapter, ResponseAdapter
from .credential_store import CredentialStore, call_store, maybe_await
from .error_handler import (
    DEFAULT_AUTH_FAILURE_STATUSES,
    MissingRefreshCredentialError,
    RefreshAbortedError,
    RefreshEndpointError,
    describe_refresh_failure,
    is_authorization_failure,
)
from .request_injector import RequestInjector
from .retry_queue import RetryQueue

lib_logger = logging.getLogger("bearer_refresh")

RETRY_MARKER = "bearer_refresh.retried"


class RefreshCoordinator:
    """
    Response-phase state machine with two states, idle and refreshing.

    One instance belongs to exactly one httpx.AsyncClient for the client's
    whole lifetime.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: CredentialStore,
        injector: RequestInjector,
        refresh_endpoint: str,
        response_adapter: ResponseAdapter,
        payload_adapter: PayloadAdapter,
        on_refresh_failure: Optional[Callable[[BaseException], Any]] = None,
        auth_failure_statuses: Collection[int] = DEFAULT_AUTH_FAILURE_STATUSES,
    ):
        self._client = client
        self.store = store
        self.injector = injector
        self.refresh_endpoint = refresh_endpoint
        self.response_adapter = response_adapter
        self.payload_adapter = payload_adapter
        self.on_refresh_failure = on_refresh_failure
        self.auth_failure_statuses = frozenset(auth_failure_statuses)

        self._refreshing: bool = False
        self._queue = RetryQueue()
        self._refresh_start_time: Optional[float] = None

        # Statistics
        self._total_refreshes: int = 0
        self._successful_refreshes: int = 0
        self._failed_refreshes: int = 0

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def is_refresh_request(self, request: httpx.Request) -> bool:
        """Check whether a request targets the refresh endpoint."""
        target = self._client.build_request("POST", self.refresh_endpoint).url
        url = request.url
        return (url.scheme, url.host, url.port, url.path) == (
            target.scheme,
            target.host,
            target.port,
            target.path,
        )

    async def handle_response(
        self, request: httpx.Request, response: httpx.Response
    ) -> Optional[httpx.Request]:
        """
        Decide what happens after a response arrives.

        Returns the request to reissue with a fresh credential, or None when the
        response should reach the caller untouched.

        Raises:
            TokenRefreshError: If the refresh this request depends on failed
        """
        if not is_authorization_failure(response, self.auth_failure_statuses):
            return None
        if request.extensions.get(RETRY_MARKER):
            lib_logger.debug(
                f"[RefreshCoordinator] {request.method} {request.url} rejected again after retry; giving up"
            )
            return None
        if self.is_refresh_request(request):
            return None

        request.extensions = {**request.extensions, RETRY_MARKER: True}
        # Release the rejected response before parking on the refresh
        await response.aread()

        credential = await self.recover()
        return self.injector.attach(request, credential)

    async def recover(self) -> str:
        """
        Obtain a fresh access credential, joining an in-flight refresh if one exists.

        Returns:
            The new access credential

        Raises:
            TokenRefreshError: The refresh failure, shared by the driver and every waiter
        """
        if self._refreshing:
            waiter = self._queue.enqueue()
            return await waiter

        self._refreshing = True
        self._total_refreshes += 1
        self._refresh_start_time = time.time()
        lib_logger.info(f"[RefreshCoordinator] Starting credential refresh via {self.refresh_endpoint}")

        try:
            try:
                credential = await self._refresh()
            except Exception as e:
                self._failed_refreshes += 1
                await self._fail(e)
                raise

            self._successful_refreshes += 1
            released = self._queue.resolve_all(credential)
            duration = time.time() - self._refresh_start_time
            lib_logger.info(
                f"[RefreshCoordinator] Refresh SUCCESS in {duration:.1f}s; released {released} queued request(s)"
            )
            return credential

        finally:
            self._refreshing = False
            self._refresh_start_time = None
            self._queue.clear(RefreshAbortedError("Credential refresh was aborted"))

    async def _refresh(self) -> str:
        refresh_credential = await call_store(
            "get_refresh_credential", self.store.get_refresh_credential
        )
        if not refresh_credential:
            raise MissingRefreshCredentialError()

        payload = self.payload_adapter(refresh_credential)

        try:
            # auth=None keeps the refresh call out of this coordinator
            response = await self._client.post(
                self.refresh_endpoint, json=payload, auth=None
            )
        except httpx.HTTPError as e:
            raise RefreshEndpointError(f"Refresh request failed: {e}") from e

        if not response.is_success:
            raise describe_refresh_failure(response)

        try:
            refreshed = self.response_adapter(response.json())
        except (ValueError, TypeError, KeyError) as e:
            raise RefreshEndpointError(
                f"Malformed refresh response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        await call_store("set_credential", self.store.set_credential, refreshed.credential)
        if refreshed.refresh_credential:
            await call_store(
                "set_refresh_credential",
                self.store.set_refresh_credential,
                refreshed.refresh_credential,
            )

        self._client.headers["Authorization"] = self.injector.header_value(refreshed.credential)
        return refreshed.credential

    async def _fail(self, error: Exception) -> None:
        rejected = self._queue.reject_all(error)
        lib_logger.warning(
            f"[RefreshCoordinator] Refresh FAILED ({type(error).__name__}: {error}); "
            f"rejected {rejected} queued request(s)"
        )

        try:
            await call_store("remove_credentials", self.store.remove_credentials)
        except Exception as e:
            lib_logger.error(f"[RefreshCoordinator] Could not clear credentials after failed refresh: {e}")
        self._client.headers.pop("Authorization", None)

        if self.on_refresh_failure is not None:
            try:
                await maybe_await(self.on_refresh_failure(error))
            except Exception as e:
                lib_logger.error(f"[RefreshCoordinator] on_refresh_failure callback raised: {e}")

    def get_status(self) -> Dict[str, Any]:
        """Get current coordinator status for debugging/monitoring."""
        return {
            "refreshing": self._refreshing,
            "refresh_duration": (time.time() - self._refresh_start_time)
            if self._refresh_start_time
            else None,
            "pending_count": len(self._queue),
            "refresh_endpoint": self.refresh_endpoint,
            "stats": {
                "total": self._total_refreshes,
                "successful": self._successful_refreshes,
                "failed": self._failed_refreshes,
            },
        }
