# src/bearer_refresh/credential_store.py

import inspect
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from .error_handler import StoreError
from .utils.resilient_io import read_json, remove_file, write_json_atomic

lib_logger = logging.getLogger("bearer_refresh")

DEFAULT_ENV_PREFIX = "BEARER_REFRESH"

ACCESS_KEY = "access_token"
REFRESH_KEY = "refresh_token"


class CredentialStore(ABC):
    """
    Persistence backend for the access and refresh credentials.

    All methods are coroutines and any of them may raise. Callers inside the
    library go through ``call_store`` so failures surface as StoreError.
    """

    @abstractmethod
    async def get_credential(self) -> Optional[str]:
        pass

    @abstractmethod
    async def get_refresh_credential(self) -> Optional[str]:
        pass

    @abstractmethod
    async def set_credential(self, credential: str) -> None:
        pass

    @abstractmethod
    async def set_refresh_credential(self, refresh_credential: str) -> None:
        pass

    @abstractmethod
    async def remove_credentials(self) -> None:
        pass


async def call_store(operation: str, func: Callable[..., Any], *args: Any) -> Any:
    """Run a store operation, wrapping any failure in StoreError."""
    try:
        return await maybe_await(func(*args))
    except StoreError:
        raise
    except Exception as e:
        raise StoreError(operation, f"Credential store operation '{operation}' failed: {e}") from e


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class FunctionCredentialStore(CredentialStore):
    """Adapts five caller-supplied functions (sync or async) to CredentialStore."""

    def __init__(
        self,
        get_credential_fn: Callable[[], Union[Optional[str], Awaitable[Optional[str]]]],
        get_refresh_credential_fn: Callable[[], Union[Optional[str], Awaitable[Optional[str]]]],
        set_credential_fn: Callable[[str], Any],
        set_refresh_credential_fn: Callable[[str], Any],
        remove_credentials_fn: Callable[[], Any],
    ):
        self._get_credential = get_credential_fn
        self._get_refresh_credential = get_refresh_credential_fn
        self._set_credential = set_credential_fn
        self._set_refresh_credential = set_refresh_credential_fn
        self._remove_credentials = remove_credentials_fn

    async def get_credential(self) -> Optional[str]:
        return await maybe_await(self._get_credential())

    async def get_refresh_credential(self) -> Optional[str]:
        return await maybe_await(self._get_refresh_credential())

    async def set_credential(self, credential: str) -> None:
        await maybe_await(self._set_credential(credential))

    async def set_refresh_credential(self, refresh_credential: str) -> None:
        await maybe_await(self._set_refresh_credential(refresh_credential))

    async def remove_credentials(self) -> None:
        await maybe_await(self._remove_credentials())


class InMemoryCredentialStore(CredentialStore):
    """Keeps both credentials in process memory."""

    def __init__(
        self,
        credential: Optional[str] = None,
        refresh_credential: Optional[str] = None,
    ):
        self.credential = credential
        self.refresh_credential = refresh_credential

    @classmethod
    def from_env(
        cls,
        prefix: str = DEFAULT_ENV_PREFIX,
        env: Optional[Mapping[str, str]] = None,
    ) -> "InMemoryCredentialStore":
        """
        Seed the store from environment variables for stateless deployments.

        Reads ``{prefix}_ACCESS_TOKEN`` and ``{prefix}_REFRESH_TOKEN``; either
        may be absent.
        """
        env = os.environ if env is None else env
        credential = env.get(f"{prefix}_ACCESS_TOKEN") or None
        refresh_credential = env.get(f"{prefix}_REFRESH_TOKEN") or None
        if credential or refresh_credential:
            lib_logger.debug(f"Loaded credentials from environment (prefix: {prefix})")
        return cls(credential, refresh_credential)

    async def get_credential(self) -> Optional[str]:
        return self.credential

    async def get_refresh_credential(self) -> Optional[str]:
        return self.refresh_credential

    async def set_credential(self, credential: str) -> None:
        self.credential = credential

    async def set_refresh_credential(self, refresh_credential: str) -> None:
        self.refresh_credential = refresh_credential

    async def remove_credentials(self) -> None:
        self.credential = None
        self.refresh_credential = None


class JsonFileCredentialStore(CredentialStore):
    """
    Persists both credentials in a JSON file readable only by the owner.

    File layout: ``{"access_token": "...", "refresh_token": "..."}``. The file
    is re-read on every get, so several processes sharing it see each other's
    refreshes. Removing credentials deletes the file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> dict:
        return read_json(self.path)

    def _update(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        write_json_atomic(self.path, data, lib_logger)

    async def get_credential(self) -> Optional[str]:
        return self._read().get(ACCESS_KEY)

    async def get_refresh_credential(self) -> Optional[str]:
        return self._read().get(REFRESH_KEY)

    async def set_credential(self, credential: str) -> None:
        self._update(ACCESS_KEY, credential)

    async def set_refresh_credential(self, refresh_credential: str) -> None:
        self._update(REFRESH_KEY, refresh_credential)

    async def remove_credentials(self) -> None:
        remove_file(self.path, lib_logger)
