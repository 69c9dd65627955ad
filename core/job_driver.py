#!/usr/bin/env python3
"""
Meeting Job Driver

Glue between the queue and a worker: join the meeting, persist the fresh
session, optionally start recording, then report the job as active. The
job stays active until a leave request (or the liveness monitor) completes
it.

Also hosts the per-job actions exposed to callers (stop recording, leave).
"""

import asyncio
import logging
from typing import Optional

from .errors import DriverFailure, JobNotFoundError, SoftActionFailure
from .interfaces import MeetingWorker, SessionStore
from .job_queue import JobQueue
from .models import MeetingJob
from .resource_pool import ResourcePool

logger = logging.getLogger(__name__)


class MeetingJobDriver:
    """Runs a dispatched job on its worker."""

    def __init__(
        self,
        queue: JobQueue,
        pool: ResourcePool,
        session_store: Optional[SessionStore] = None,
        recording_start_delay: float = 5.0,
    ):
        self.queue = queue
        self.pool = pool
        self.session_store = session_store
        self.recording_start_delay = recording_start_delay

    async def __call__(self, job: MeetingJob, worker: MeetingWorker):
        try:
            joined = await worker.join(job.target)
        except Exception as e:
            raise DriverFailure(f"Failed to join meeting: {e}")
        if not joined:
            raise DriverFailure("Failed to join meeting")

        await self._persist_session(worker)

        if job.wants_recording:
            # Let the meeting UI settle before looking for recording controls
            if self.recording_start_delay > 0:
                await asyncio.sleep(self.recording_start_delay)
            try:
                await self._start_recording(worker)
            except SoftActionFailure as e:
                logger.warning(f"Job {job.id}: {e} - continuing in meeting without recording")

        self.queue.mark_active(job.id)

    async def _start_recording(self, worker: MeetingWorker):
        try:
            started = await worker.start_recording()
        except Exception as e:
            raise SoftActionFailure(f"Could not start recording: {e}")
        if not started:
            raise SoftActionFailure("Could not start recording")

    async def _persist_session(self, worker: MeetingWorker):
        try:
            state = await worker.storage_state()
            if not state:
                return
            if self.session_store is not None:
                self.session_store.save(state)
            self.pool.remember_state(state)
        except Exception as e:
            logger.error(f"Failed to persist session state: {e}")

    # === Caller-facing actions ===

    def _worker_for(self, job_id: str) -> MeetingWorker:
        if self.queue.status(job_id) is None:
            raise JobNotFoundError(job_id)
        worker = self.pool.get_worker(job_id)
        if worker is None:
            raise JobNotFoundError(job_id, f"No active worker for job {job_id}")
        return worker

    def is_recording(self, job_id: str) -> bool:
        worker = self.pool.get_worker(job_id)
        return bool(worker and worker.is_recording())

    async def stop_recording(self, job_id: str) -> bool:
        """
        Stop the recording of a running job.

        Returns:
            False if the worker could not stop it (soft failure)

        Raises:
            JobNotFoundError: unknown job or no bound worker
        """
        worker = self._worker_for(job_id)
        try:
            stopped = await worker.stop_recording()
        except Exception as e:
            logger.warning(f"Job {job_id}: could not stop recording: {e}")
            return False
        if not stopped:
            logger.warning(f"Job {job_id}: could not stop recording")
        return bool(stopped)

    async def leave(self, job_id: str) -> bool:
        """
        Leave the meeting and complete the job.

        The job is completed and its slot released even when the worker
        fails to leave cleanly; disposing the worker ends the session.

        Returns:
            Whether the worker reported a clean exit

        Raises:
            JobNotFoundError: unknown job or no bound worker
        """
        worker = self._worker_for(job_id)

        if worker.is_recording():
            await self.stop_recording(job_id)

        try:
            left = bool(await worker.leave())
        except Exception as e:
            logger.warning(f"Job {job_id}: error while leaving meeting: {e}")
            left = False

        await self.queue.complete(job_id)
        return left
