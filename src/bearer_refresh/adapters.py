# src/bearer_refresh/adapters.py

"""
Mapping between the refresh endpoint's wire shape and the coordinator's
internal credential pair.

Adapters are pure and synchronous. Callers either subclass the abstract bases
or pass plain functions, which get wrapped in the Callable* implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, NamedTuple, Optional, Union


class RefreshedCredentials(NamedTuple):
    """Credential pair extracted from a refresh response."""

    credential: str
    refresh_credential: Optional[str] = None


class ResponseAdapter(ABC):
    """Maps a decoded refresh response body to RefreshedCredentials."""

    @abstractmethod
    def adapt(self, body: Any) -> RefreshedCredentials:
        pass

    def __call__(self, body: Any) -> RefreshedCredentials:
        return self.adapt(body)


class PayloadAdapter(ABC):
    """Builds the JSON payload sent to the refresh endpoint."""

    @abstractmethod
    def build(self, refresh_credential: str) -> Any:
        pass

    def __call__(self, refresh_credential: str) -> Any:
        return self.build(refresh_credential)


class DefaultResponseAdapter(ResponseAdapter):
    """
    Reads ``token`` (or ``accessToken``/``access_token``) and ``refreshToken``
    (or ``refresh_token``) from a JSON object.
    """

    ACCESS_FIELDS = ("token", "accessToken", "access_token")
    REFRESH_FIELDS = ("refreshToken", "refresh_token")

    def adapt(self, body: Any) -> RefreshedCredentials:
        if not isinstance(body, dict):
            raise ValueError(
                f"Refresh response must be a JSON object, got {type(body).__name__}"
            )
        credential = _first_present(body, self.ACCESS_FIELDS)
        if not credential:
            raise ValueError(
                f"Refresh response has none of the fields {', '.join(self.ACCESS_FIELDS)}"
            )
        return RefreshedCredentials(
            credential=credential,
            refresh_credential=_first_present(body, self.REFRESH_FIELDS),
        )


class DefaultPayloadAdapter(PayloadAdapter):
    """Sends ``{"refreshToken": <refresh credential>}``."""

    def __init__(self, field_name: str = "refreshToken"):
        self.field_name = field_name

    def build(self, refresh_credential: str) -> Any:
        return {self.field_name: refresh_credential}


class CallableResponseAdapter(ResponseAdapter):
    def __init__(self, func: Callable[[Any], Any]):
        self._func = func

    def adapt(self, body: Any) -> RefreshedCredentials:
        result = self._func(body)
        # Plain dicts and 2-tuples are accepted from caller functions
        if isinstance(result, RefreshedCredentials):
            refreshed = result
        elif isinstance(result, dict):
            refreshed = RefreshedCredentials(
                credential=result.get("credential") or result.get("token"),
                refresh_credential=result.get("refresh_credential")
                or result.get("refreshToken"),
            )
        elif isinstance(result, tuple) and len(result) == 2:
            refreshed = RefreshedCredentials(*result)
        else:
            raise ValueError(
                f"Response adapter returned {type(result).__name__}; expected "
                "RefreshedCredentials, a dict or a 2-tuple"
            )

        if not isinstance(refreshed.credential, str) or not refreshed.credential:
            raise ValueError("Response adapter produced no access credential")
        if refreshed.refresh_credential is not None and not isinstance(
            refreshed.refresh_credential, str
        ):
            raise ValueError("Response adapter produced a non-string refresh credential")
        return refreshed


class CallablePayloadAdapter(PayloadAdapter):
    def __init__(self, func: Callable[[str], Any]):
        self._func = func

    def build(self, refresh_credential: str) -> Any:
        return self._func(refresh_credential)


def as_response_adapter(
    adapter: Union[ResponseAdapter, Callable[[Any], Any], None],
) -> ResponseAdapter:
    if adapter is None:
        return DefaultResponseAdapter()
    if isinstance(adapter, ResponseAdapter):
        return adapter
    if callable(adapter):
        return CallableResponseAdapter(adapter)
    raise TypeError(f"Not a response adapter: {adapter!r}")


def as_payload_adapter(
    adapter: Union[PayloadAdapter, Callable[[str], Any], None],
) -> PayloadAdapter:
    if adapter is None:
        return DefaultPayloadAdapter()
    if isinstance(adapter, PayloadAdapter):
        return adapter
    if callable(adapter):
        return CallablePayloadAdapter(adapter)
    raise TypeError(f"Not a payload adapter: {adapter!r}")


def _first_present(body: dict, fields) -> Optional[str]:
    for name in fields:
        value = body.get(name)
        if value:
            return value
    return None
