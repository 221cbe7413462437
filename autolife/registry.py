"""
In-memory provider table.

Holds one ProviderConfig per id. Every read returns a copy, so callers can
never mutate a stored record behind the registry's back. Health events go
through apply(), which performs an atomic read-modify-write under a lock
held for that id only; different providers never contend with each other.
"""

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace

from .errors import DuplicateProvider, ProviderNotFound
from .types import ProviderConfig, ProviderStatus

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Thread- and task-safe keyed store of provider configurations.

    Example:
        registry = ProviderRegistry()
        cfg = registry.add(ProviderConfig(name="Local", kind="local", priority=1))
        registry.apply(cfg.id, tracker.record_failure)
        registry.active_by_priority()
    """

    def __init__(self, configs: Iterable[ProviderConfig] = ()):
        # dict preserves insertion order, which is the tie-break for priority
        self._records: dict[str, ProviderConfig] = {}
        self._record_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        for config in configs:
            self.add(config)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, provider_id: str) -> bool:
        with self._lock:
            return provider_id in self._records

    def list_all(self) -> list[ProviderConfig]:
        with self._lock:
            return [replace(c) for c in self._records.values()]

    def get(self, provider_id: str) -> ProviderConfig:
        with self._lock:
            config = self._records.get(provider_id)
            if config is None:
                raise ProviderNotFound(provider_id)
            return replace(config)

    def add(self, config: ProviderConfig) -> ProviderConfig:
        """Register a provider, assigning an id if it has none."""
        stored = replace(config, id=config.id or uuid.uuid4().hex)
        with self._lock:
            if stored.id in self._records:
                raise DuplicateProvider(stored.id)
            self._records[stored.id] = stored
            self._record_locks[stored.id] = threading.Lock()
        logger.debug("Registered provider %s (%s)", stored.name, stored.id)
        return replace(stored)

    def update(self, config: ProviderConfig) -> ProviderConfig:
        """Replace the stored record with the same id."""
        record_lock = self._record_lock(config.id)
        with record_lock:
            with self._lock:
                if config.id not in self._records:
                    raise ProviderNotFound(config.id)
                stored = replace(config)
                self._records[config.id] = stored
            return replace(stored)

    def remove(self, provider_id: str) -> None:
        """Delete a provider. Removing an unknown id is not an error."""
        with self._lock:
            removed = self._records.pop(provider_id, None)
            self._record_locks.pop(provider_id, None)
        if removed is not None:
            logger.debug("Removed provider %s (%s)", removed.name, provider_id)

    def active_by_priority(self) -> list[ProviderConfig]:
        """Enabled providers, lowest priority value first, stable on ties."""
        with self._lock:
            enabled = [replace(c) for c in self._records.values() if c.enabled]
        return sorted(enabled, key=lambda c: c.priority)

    def apply(
        self,
        provider_id: str,
        mutate: Callable[[ProviderConfig], object],
    ) -> ProviderConfig:
        """
        Atomically read, mutate and store one record.

        Concurrent apply() calls for the same id are serialized, so every
        event is applied on top of the previous one and none is lost.

        Args:
            provider_id: Record to change
            mutate: Called with a working copy; changes it in place

        Returns:
            A copy of the stored record after the change

        Raises:
            ProviderNotFound: If the record does not exist (or was removed
                while the change was being applied)
        """
        record_lock = self._record_lock(provider_id)
        with record_lock:
            with self._lock:
                current = self._records.get(provider_id)
            if current is None:
                raise ProviderNotFound(provider_id)
            working = replace(current)
            mutate(working)
            with self._lock:
                if self._records.get(provider_id) is not current:
                    raise ProviderNotFound(provider_id)
                self._records[provider_id] = working
            return replace(working)

    def set_status(self, provider_id: str, status: ProviderStatus | str) -> ProviderConfig:
        """Overwrite the status label, leaving the failure count alone."""
        status = ProviderStatus(status)

        def _set(config: ProviderConfig) -> None:
            config.status = status

        updated = self.apply(provider_id, _set)
        logger.info("Provider %s status set to %s", updated.name, status.value)
        return updated

    def _record_lock(self, provider_id: str) -> threading.Lock:
        with self._lock:
            lock = self._record_locks.get(provider_id)
        if lock is None:
            raise ProviderNotFound(provider_id)
        return lock
