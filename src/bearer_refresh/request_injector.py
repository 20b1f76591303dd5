# src/bearer_refresh/request_injector.py

import logging

import httpx

from .credential_store import CredentialStore, call_store

lib_logger = logging.getLogger("bearer_refresh")

DEFAULT_AUTH_HEADER_PREFIX = "Bearer "


class RequestInjector:
    """Attaches the stored access credential to outgoing requests."""

    def __init__(
        self,
        store: CredentialStore,
        auth_header_prefix: str = DEFAULT_AUTH_HEADER_PREFIX,
    ):
        self.store = store
        self.auth_header_prefix = auth_header_prefix

    def header_value(self, credential: str) -> str:
        return f"{self.auth_header_prefix}{credential}"

    def attach(self, request: httpx.Request, credential: str) -> httpx.Request:
        request.headers["Authorization"] = self.header_value(credential)
        return request

    async def inject(self, request: httpx.Request) -> httpx.Request:
        """
        Set the Authorization header from the store, if a credential is stored.

        Raises:
            StoreError: If the store lookup fails; the request is left untouched.
        """
        credential = await call_store("get_credential", self.store.get_credential)
        if credential:
            self.attach(request, credential)
        else:
            lib_logger.debug(f"No stored credential for {request.method} {request.url}")
        return request
