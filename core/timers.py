"""
Deferred dispatch timers, keyed by job id.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class DeferredTimers:
    """
    Registry of loop.call_later handles with at most one timer per key.

    A timer is removed from the registry before its callback runs, and
    cancelling removes it immediately, so `pending()` never lists a timer
    that has already fired or been cancelled.
    """

    def __init__(self):
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def schedule(self, key: str, delay_seconds: float, callback: Callable[[str], None]) -> bool:
        """
        Arm a timer for `key` unless one is already pending.

        Returns:
            True if a new timer was armed
        """
        if key in self._handles:
            return False
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(max(0.0, delay_seconds), self._fire, key, callback)
        logger.debug(f"Timer armed for {key} in {delay_seconds:.1f}s")
        return True

    def _fire(self, key: str, callback: Callable[[str], None]):
        self._handles.pop(key, None)
        try:
            callback(key)
        except Exception as e:
            logger.error(f"Timer callback for {key} failed: {e}")

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self, keep: Optional[str] = None) -> int:
        """Cancel every pending timer except `keep`. Returns how many were cancelled."""
        cancelled = 0
        for key in list(self._handles):
            if key != keep and self.cancel(key):
                cancelled += 1
        return cancelled

    def pending(self) -> List[str]:
        return list(self._handles)

    def __contains__(self, key: str) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)
