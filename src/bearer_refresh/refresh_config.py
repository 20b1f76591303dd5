# src/bearer_refresh/refresh_config.py
"""
Settings for wiring a client from the environment or a YAML file.

Environment variables (a .env file is honoured when given):
    BEARER_REFRESH_ENDPOINT - Refresh endpoint path or URL (required)
    BEARER_REFRESH_HEADER_PREFIX - Authorization header prefix (default: "Bearer ")
    BEARER_REFRESH_AUTH_STATUSES - Comma-separated statuses treated as
        authorization failures (default: 401)
    BEARER_REFRESH_CREDENTIALS_FILE - JSON file backing the credential store
        (default: unset, credentials are kept in memory)
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

import yaml
from dotenv import load_dotenv

from .credential_store import (
    DEFAULT_ENV_PREFIX,
    CredentialStore,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
)
from .error_handler import (
    DEFAULT_AUTH_FAILURE_STATUSES,
    ConfigLoadError,
    ConfigValidationError,
)
from .request_injector import DEFAULT_AUTH_HEADER_PREFIX

lib_logger = logging.getLogger("bearer_refresh")


@dataclass
class RefreshSettings:
    refresh_endpoint: str
    auth_header_prefix: str = DEFAULT_AUTH_HEADER_PREFIX
    auth_failure_statuses: Tuple[int, ...] = DEFAULT_AUTH_FAILURE_STATUSES
    credentials_file: Optional[Path] = None
    env_prefix: str = DEFAULT_ENV_PREFIX

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Union[str, Path]] = None,
        prefix: str = DEFAULT_ENV_PREFIX,
    ) -> "RefreshSettings":
        """
        Load settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ
            dotenv_path: Optional .env file loaded into os.environ first (existing
                variables win)
            prefix: Variable name prefix

        Raises:
            ConfigValidationError: If the refresh endpoint is not set
        """
        if dotenv_path is not None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
        env = os.environ if env is None else env

        endpoint = env.get(f"{prefix}_ENDPOINT")
        if not endpoint:
            raise ConfigValidationError(f"{prefix}_ENDPOINT is not set")

        credentials_file = env.get(f"{prefix}_CREDENTIALS_FILE")
        return cls(
            refresh_endpoint=endpoint,
            auth_header_prefix=env.get(f"{prefix}_HEADER_PREFIX", DEFAULT_AUTH_HEADER_PREFIX),
            auth_failure_statuses=_parse_statuses(
                f"{prefix}_AUTH_STATUSES", env.get(f"{prefix}_AUTH_STATUSES")
            ),
            credentials_file=Path(credentials_file) if credentials_file else None,
            env_prefix=prefix,
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RefreshSettings":
        """
        Load settings from a YAML mapping with the keys refresh_endpoint,
        auth_header_prefix, auth_failure_statuses and credentials_file.

        Raises:
            ConfigLoadError: If the file cannot be read or parsed
            ConfigValidationError: If required values are missing or malformed
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigLoadError(f"Failed to load settings from '{path}': {e}") from e

        if not isinstance(data, dict):
            raise ConfigValidationError(f"Settings file '{path}' must contain a mapping")

        endpoint = data.get("refresh_endpoint")
        if not endpoint:
            raise ConfigValidationError(f"'refresh_endpoint' missing in '{path}'")

        statuses: Any = data.get("auth_failure_statuses", DEFAULT_AUTH_FAILURE_STATUSES)
        if isinstance(statuses, int):
            statuses = [statuses]
        try:
            statuses = tuple(int(s) for s in statuses)
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(
                f"'auth_failure_statuses' in '{path}' must be a list of integers"
            ) from e

        credentials_file = data.get("credentials_file")
        return cls(
            refresh_endpoint=endpoint,
            auth_header_prefix=data.get("auth_header_prefix", DEFAULT_AUTH_HEADER_PREFIX),
            auth_failure_statuses=statuses,
            credentials_file=Path(credentials_file) if credentials_file else None,
            env_prefix=data.get("env_prefix", DEFAULT_ENV_PREFIX),
        )

    def build_store(self, env: Optional[Mapping[str, str]] = None) -> CredentialStore:
        """File-backed store when credentials_file is set, env-seeded memory store otherwise."""
        if self.credentials_file is not None:
            return JsonFileCredentialStore(self.credentials_file)
        return InMemoryCredentialStore.from_env(self.env_prefix, env)


def _parse_statuses(key: str, value: Optional[str]) -> Tuple[int, ...]:
    if not value:
        return DEFAULT_AUTH_FAILURE_STATUSES
    try:
        statuses = tuple(int(part) for part in value.split(",") if part.strip())
    except ValueError:
        lib_logger.warning(
            f"Invalid value for {key}: {value}. Using default: {DEFAULT_AUTH_FAILURE_STATUSES}"
        )
        return DEFAULT_AUTH_FAILURE_STATUSES
    return statuses or DEFAULT_AUTH_FAILURE_STATUSES
