#!/usr/bin/env python3
"""
Bounded Worker Pool

Owns the shared substrate (one browser process) and gates how many
isolated workers may live on it at once. Each worker is bound to exactly
one job id from acquisition until release.

Concurrency model: everything runs on one event loop. The capacity check
and the slot claim happen in `reserve()` with no await in between, so two
acquisitions can never both see the last free slot.
"""

import logging
from typing import Dict, List, Optional, Set

from .errors import PoolNotReadyError
from .interfaces import MeetingWorker, SessionStore, StorageState, Substrate, WorkerFactory
from .models import PoolCapacity

logger = logging.getLogger(__name__)


class ResourcePool:
    """
    Capacity-limited pool of meeting workers.

    Example:
        pool = ResourcePool(ChromiumSubstrate(), PlaywrightWorkerFactory(), max_concurrent=3)
        await pool.initialize(headless=True)

        worker = await pool.acquire(job.id)
        if worker is None:
            ...  # no free slot, try again on the next dispatch pass

        await pool.release(job.id)
        await pool.close()
    """

    def __init__(
        self,
        substrate: Substrate,
        factory: WorkerFactory,
        max_concurrent: int = 3,
        session_store: Optional[SessionStore] = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.substrate = substrate
        self.factory = factory
        self.session_store = session_store
        self._max_concurrent = max_concurrent

        self._workers: Dict[str, MeetingWorker] = {}
        # Slots claimed by reserve() whose worker is not bound yet
        self._reserved: Set[str] = set()
        self._creating: Set[str] = set()
        self._releasing: Set[str] = set()

        self._persisted_state: Optional[StorageState] = None
        # Bumped on every teardown; workers created across a bump are discarded
        self._generation = 0
        self._ready = False
        self._closed = False

    # === Properties ===

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active_count(self) -> int:
        return len(self._workers) + len(self._reserved)

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def headless(self) -> bool:
        return self.substrate.headless

    @property
    def persisted_state(self) -> Optional[StorageState]:
        return self._persisted_state

    # === Lifecycle ===

    async def initialize(self, headless: Optional[bool] = None):
        """Start the substrate and load the saved session, if any."""
        await self.substrate.start(headless)

        if self.session_store is not None:
            try:
                if self.session_store.has_valid_session():
                    self._persisted_state = self.session_store.load()
                    logger.info("Loaded saved session for worker pool")
                else:
                    logger.warning("No valid session found. Workers will start unauthenticated.")
            except Exception as e:
                logger.error(f"Failed to load saved session: {e}")

        self._ready = True
        self._closed = False
        logger.info(
            f"Worker pool initialized (max concurrent: {self._max_concurrent}, "
            f"headless: {self.substrate.headless})"
        )

    async def reinitialize(self, headless: bool):
        """
        Tear down every worker and the substrate, then start again in a new mode.

        Jobs bound to the disposed workers are not touched here; the caller
        decides what happens to them.
        """
        logger.warning(f"Reinitializing worker pool (headless={headless}); {self.active_count} slot(s) dropped")
        await self._teardown()
        await self.initialize(headless)

    async def close(self):
        """Dispose every worker, then the substrate. Safe to call twice."""
        if self._closed:
            return
        logger.info("Closing worker pool...")
        await self._teardown()
        self._closed = True
        logger.info("Worker pool closed")

    async def _teardown(self):
        self._ready = False
        self._generation += 1
        self._reserved.clear()

        for job_id, worker in list(self._workers.items()):
            logger.info(f"Disposing worker for job {job_id}")
            await self._dispose(job_id, worker)
        self._workers.clear()
        self._releasing.clear()

        try:
            await self.substrate.close()
        except Exception as e:
            logger.error(f"Error closing substrate: {e}")

    # === Slot management ===

    def reserve(self, job_id: str) -> bool:
        """
        Claim a slot for `job_id` without creating its worker yet.

        Returns:
            True if the job holds a slot after the call, False when the
            pool is full or not ready (back-pressure, not an error)
        """
        if job_id in self._workers or job_id in self._reserved:
            return True
        if not self._ready:
            logger.debug(f"Pool not ready; job {job_id} must wait")
            return False
        if self.active_count >= self._max_concurrent:
            logger.info(
                f"Max concurrent workers ({self._max_concurrent}) reached. Job {job_id} must wait."
            )
            return False
        self._reserved.add(job_id)
        logger.info(f"Slot reserved for job {job_id} (active: {self.active_count}/{self._max_concurrent})")
        return True

    async def acquire(self, job_id: str) -> Optional[MeetingWorker]:
        """
        Get the worker bound to `job_id`, creating it if needed.

        Returns:
            The worker, or None when no slot is available (or the slot
            vanished while the worker was being built)

        Raises:
            PoolNotReadyError: if the job holds a slot but the substrate is down
            Exception: whatever the worker factory raised; the slot is freed
        """
        worker = self._workers.get(job_id)
        if worker is not None:
            logger.debug(f"Returning existing worker for job {job_id}")
            return worker

        if job_id in self._creating:
            logger.debug(f"Worker for job {job_id} is still being created")
            return None

        if not self.reserve(job_id):
            return None

        if not self._ready:
            self._reserved.discard(job_id)
            raise PoolNotReadyError("Worker pool is not initialized")

        generation = self._generation
        self._creating.add(job_id)
        try:
            worker = await self.factory.create(self.substrate, self._persisted_state)
        except Exception:
            if generation == self._generation:
                self._reserved.discard(job_id)
            raise
        finally:
            self._creating.discard(job_id)

        if generation != self._generation or job_id not in self._reserved:
            logger.warning(f"Slot for job {job_id} was dropped during worker creation; discarding worker")
            await self._dispose(job_id, worker)
            return None

        self._reserved.discard(job_id)
        self._workers[job_id] = worker
        logger.info(f"Worker bound to job {job_id} (active: {self.active_count}/{self._max_concurrent})")
        return worker

    async def release(self, job_id: str) -> bool:
        """
        Free the slot held by `job_id`.

        Returns:
            True if a slot was freed, False if the job held none
        """
        if job_id in self._reserved:
            self._reserved.discard(job_id)
            logger.info(f"Released reserved slot for job {job_id}")
            return True

        worker = self._workers.get(job_id)
        if worker is None or job_id in self._releasing:
            logger.debug(f"No worker bound to job {job_id}; nothing to release")
            return False

        self._releasing.add(job_id)
        generation = self._generation
        try:
            await self._dispose(job_id, worker)
        finally:
            # A teardown during dispose already cleared the bookkeeping
            if generation == self._generation:
                self._workers.pop(job_id, None)
                self._releasing.discard(job_id)

        logger.info(f"Released worker for job {job_id} (active: {self.active_count}/{self._max_concurrent})")
        return True

    async def _dispose(self, job_id: str, worker: MeetingWorker):
        try:
            await worker.dispose()
        except Exception as e:
            logger.error(f"Error disposing worker for job {job_id}: {e}")

    # === Queries ===

    def get_worker(self, job_id: str) -> Optional[MeetingWorker]:
        return self._workers.get(job_id)

    def active_job_ids(self) -> List[str]:
        return list(self._workers) + [job_id for job_id in self._reserved if job_id not in self._workers]

    def has_available_slot(self) -> bool:
        return self._ready and self.active_count < self._max_concurrent

    def capacity(self) -> PoolCapacity:
        return PoolCapacity(active=self.active_count, max_concurrent=self._max_concurrent)

    def remember_state(self, state: Optional[StorageState]):
        """Seed future workers with freshly established session state."""
        if state:
            self._persisted_state = state

    def get_stats(self) -> Dict[str, object]:
        return {
            "active": self.active_count,
            "bound": len(self._workers),
            "reserved": len(self._reserved),
            "max": self._max_concurrent,
            "ready": self._ready,
            "headless": self.substrate.headless,
            "has_session": self._persisted_state is not None,
        }
