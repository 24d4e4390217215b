from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Generic, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class ConfigurationError(Exception):
    """Raised when no configuration source produced a valid configuration."""


class ConfigurationStore(Protocol):
    def get(self, refresh: bool = False) -> Any: ...


# -----------------------------------------------------------------------------
# Sources
# -----------------------------------------------------------------------------
class EnvConfigurationStore:
    """Configuration from environment variables (and .env) via pydantic-settings."""

    def __init__(self, settings_cls: type[BaseModel]) -> None:
        self._settings_cls = settings_cls

    def peek(self, name: str) -> str | None:
        return os.environ.get(name)

    def get(self, refresh: bool = False) -> dict[str, Any]:
        return self._settings_cls().model_dump()


class FileConfigurationStore:
    """Configuration from a JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self, refresh: bool = False) -> dict[str, Any]:
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {self.path} must contain a JSON object")

        return data


# -----------------------------------------------------------------------------
# Composition
# -----------------------------------------------------------------------------
class CompositeConfigurationStore(Generic[T]):
    """
    Checks each store in the order added and returns the first configuration
    that validates against the schema. Failing stores are logged and skipped.
    """

    def __init__(self, schema: type[T]) -> None:
        self.schema = schema
        self.stores: list[ConfigurationStore] = []

    def add_store(self, store: ConfigurationStore) -> None:
        self.stores.append(store)

    def get(self, refresh: bool = False) -> T:
        for store in self.stores:
            try:
                config = store.get(refresh=refresh)
                return self.schema(**config)
            except (OSError, TypeError, ValueError, ValidationError) as e:
                logger.warning(
                    "Configuration store %s failed: %s", type(store).__name__, e
                )
                continue

        raise ConfigurationError("No valid configuration found in any store")


class CachedConfigurationStore(Generic[T]):
    """Adds a TTL cache in front of another store. ``ttl_minutes`` may be infinite."""

    def __init__(
        self,
        inner: ConfigurationStore,
        ttl_minutes: float = 15,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.inner = inner
        self.ttl_seconds = ttl_minutes * 60
        self._clock = clock
        self._value: T | None = None
        self._timestamp: float | None = None

    def get(self, refresh: bool = False) -> T:
        if not refresh and self._is_valid():
            logger.debug("Configuration cache hit")
            return self._value  # type: ignore[return-value]

        logger.info("%s - loading configuration", "Refresh requested" if refresh else "Cache miss")
        value = self.inner.get(refresh=refresh)

        self._value = value
        self._timestamp = self._clock()
        return value

    def clear_cache(self) -> None:
        self._value = None
        self._timestamp = None

    def cache_info(self) -> dict[str, Any]:
        if self._timestamp is None:
            return {"cached": False, "ttl": self.ttl_seconds}
        return {
            "cached": True,
            "age": self._clock() - self._timestamp,
            "ttl": self.ttl_seconds,
        }

    def _is_valid(self) -> bool:
        if self._timestamp is None:
            return False
        return (self._clock() - self._timestamp) < self.ttl_seconds
