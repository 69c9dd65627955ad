"""
Contracts between the scheduler core and its collaborators.

The core never imports a browser library. It talks to workers, the shared
substrate and the session store only through these base classes, so tests
and alternative platforms can plug in their own implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

# Serialized session blob (Playwright storage-state layout in practice).
StorageState = Dict[str, Any]


class Substrate(ABC):
    """Heavyweight engine shared by every live worker (one browser process)."""

    @property
    @abstractmethod
    def headless(self) -> bool:
        ...

    @property
    @abstractmethod
    def is_running(self) -> bool:
        ...

    @abstractmethod
    async def start(self, headless: Optional[bool] = None) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class MeetingWorker(ABC):
    """
    Exclusive automation handle bound to one job for its whole lifetime.

    All action methods report success as a bool. They may also raise; the
    job driver treats a raised error the same as a False result.
    """

    @abstractmethod
    async def join(self, target: str) -> bool:
        ...

    @abstractmethod
    async def start_recording(self) -> bool:
        ...

    @abstractmethod
    async def stop_recording(self) -> bool:
        ...

    @abstractmethod
    async def leave(self) -> bool:
        ...

    @abstractmethod
    def is_recording(self) -> bool:
        ...

    @abstractmethod
    async def dispose(self) -> None:
        """Release the worker's isolated context. Must not raise."""

    async def is_in_meeting(self) -> bool:
        """Liveness probe. Workers that cannot tell report True."""
        return True

    async def storage_state(self) -> Optional[StorageState]:
        """Session state worth persisting after a successful join."""
        return None


class WorkerFactory(ABC):
    """Builds workers on top of the shared substrate."""

    @abstractmethod
    async def create(
        self,
        substrate: Substrate,
        persisted_state: Optional[StorageState] = None,
    ) -> MeetingWorker:
        ...


class SessionStore(ABC):
    """Persistence for the authenticated session blob."""

    @abstractmethod
    def has_valid_session(self) -> bool:
        ...

    @abstractmethod
    def load(self) -> Optional[StorageState]:
        ...

    @abstractmethod
    def save(self, state: StorageState) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...
