"""
Consent Storage

Interface to the on-device storage collaborator. The coordinator only needs
one thing from it: the one-time signal that data written by a previous major
version of the SDK is still present. Reading the signal consumes it.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)


@runtime_checkable
class ConsentStorage(Protocol):
    """Storage collaborator consumed by the coordinator."""

    def consume_migration_signal(self) -> bool:
        """Return True once if legacy state exists, clearing it in the process."""
        ...


class InMemoryStorage:
    """
    Process-local storage.

    legacy_local_state holds whatever an older SDK version left behind; its
    presence is the migration signal.
    """

    def __init__(self, legacy_local_state: Any = None) -> None:
        self.legacy_local_state = legacy_local_state
        self._lock = threading.Lock()

    def consume_migration_signal(self) -> bool:
        with self._lock:
            if self.legacy_local_state is None:
                return False
            self.legacy_local_state = None
        logger.info("legacy_local_state_consumed")
        return True
