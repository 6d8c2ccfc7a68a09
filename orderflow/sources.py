"""
Read-only config and secret lookup.

Keys:
    max-items-per-order  -> int   (ConfigSource)
    notification-api-key -> str   (SecretSource, returned as SecretStr)

Environment-backed sources map a key to ORDERFLOW_<KEY> with dashes turned
into underscores, e.g. ORDERFLOW_MAX_ITEMS_PER_ORDER.
"""

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from pydantic import SecretStr

from orderflow.core.exceptions import ConfigurationError

MAX_ITEMS_PER_ORDER = "max-items-per-order"
NOTIFICATION_API_KEY = "notification-api-key"


def _env_name(key: str, prefix: str) -> str:
    return f"{prefix}{key.upper().replace('-', '_')}"


class ConfigSource(ABC):
    """Read-only lookup for tunables."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the raw value for key, or None when unset."""
        pass

    async def get_int(self, key: str, default: Optional[int] = None) -> int:
        """
        Return key as an integer.

        Raises:
            ConfigurationError: If unset with no default, or not an integer
        """
        raw = await self.get(key)
        if raw is None:
            if default is None:
                raise ConfigurationError(f"Config key '{key}' is not set")
            return default
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Config key '{key}' is not an integer: {raw!r}") from e


class StaticConfigSource(ConfigSource):
    """Config values from a fixed mapping."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values = {k: str(v) for k, v in (values or {}).items()}

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)


class EnvironmentConfigSource(ConfigSource):
    """Config values from ORDERFLOW_* environment variables, with fallbacks."""

    def __init__(
        self,
        defaults: Optional[Mapping[str, Any]] = None,
        prefix: str = "ORDERFLOW_",
    ) -> None:
        self._defaults = {k: str(v) for k, v in (defaults or {}).items()}
        self._prefix = prefix

    async def get(self, key: str) -> Optional[str]:
        value = os.getenv(_env_name(key, self._prefix))
        if value:
            return value
        return self._defaults.get(key)


class SecretSource(ABC):
    """Read-only lookup for credentials."""

    @abstractmethod
    async def get_secret(self, key: str) -> SecretStr:
        """
        Return the secret for key.

        Raises:
            ConfigurationError: If the secret is not available
        """
        pass


def _unwrap_secret(key: str, raw: str) -> str:
    """
    Accept either a plain string or a JSON document with an apiKey field.

    Secret stores commonly hold JSON such as {"apiKey": "..."}.
    """
    stripped = raw.strip()
    if stripped.startswith("{"):
        try:
            document = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Secret '{key}' is not valid JSON") from e
        if "apiKey" not in document:
            raise ConfigurationError(f"Secret '{key}' has no apiKey field")
        return str(document["apiKey"])
    return raw


class StaticSecretSource(SecretSource):
    """Secrets from a fixed mapping."""

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values = {k: SecretStr(_unwrap_secret(k, v)) for k, v in (values or {}).items()}

    async def get_secret(self, key: str) -> SecretStr:
        secret = self._values.get(key)
        if secret is None:
            raise ConfigurationError(f"Secret '{key}' is not set")
        return secret


class EnvironmentSecretSource(SecretSource):
    """Secrets from ORDERFLOW_* environment variables."""

    def __init__(
        self,
        defaults: Optional[Mapping[str, str]] = None,
        prefix: str = "ORDERFLOW_",
    ) -> None:
        self._defaults = dict(defaults or {})
        self._prefix = prefix

    async def get_secret(self, key: str) -> SecretStr:
        raw = os.getenv(_env_name(key, self._prefix)) or self._defaults.get(key)
        if not raw:
            raise ConfigurationError(f"Secret '{key}' is not set")
        return SecretStr(_unwrap_secret(key, raw))
