#!/usr/bin/env python3
"""
Meeting Job Queue

Ordered, append-only list of meeting jobs plus the dispatcher that moves
ready jobs onto pool slots.

- FIFO among ready jobs; a job that cannot get a slot blocks the jobs
  behind it until capacity frees up
- Scheduled jobs wait for their start time on a single deferred timer
- Each dispatched job runs its driver as an independent asyncio task and
  reports back through mark_active()/complete()

All status changes happen in plain (non-async) code paths, so no lock is
needed: the event loop cannot interleave another coroutine in the middle
of a dispatch pass.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Union

from .errors import (
    ConfigurationError,
    DriverFailure,
    JobNotFoundError,
    PoolNotReadyError,
    QueueClosedError,
    categorize_error,
    describe_error,
)
from .interfaces import MeetingWorker
from .models import JobStatus, MeetingJob, QueueSnapshot, parse_scheduled_time, utcnow
from .resource_pool import ResourcePool
from .timers import DeferredTimers

logger = logging.getLogger(__name__)

JobDriver = Callable[[MeetingJob, MeetingWorker], Awaitable[None]]

MODE_SWITCH_ERROR = "Worker torn down by browser mode switch"
CANCELLED_ERROR = "Cancelled before joining the meeting"


class JobQueue:
    """
    Scheduler for meeting jobs on top of a ResourcePool.

    Example:
        queue = JobQueue(pool)
        queue.set_driver(MeetingJobDriver(queue, pool))

        job = queue.submit("https://meet.example.com/abc", wants_recording=True)
        ...
        await queue.complete(job.id)
    """

    def __init__(
        self,
        pool: ResourcePool,
        driver: Optional[JobDriver] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.pool = pool
        self._driver = driver
        self._clock = clock

        self._jobs: List[MeetingJob] = []
        self._index: Dict[str, MeetingJob] = {}
        self._timers = DeferredTimers()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._closed = False

    def set_driver(self, driver: JobDriver):
        """Set the coroutine that runs a dispatched job on its worker."""
        self._driver = driver

    # === Submission ===

    def submit(
        self,
        target: str,
        wants_recording: bool = True,
        scheduled_time: Union[None, str, datetime] = None,
    ) -> MeetingJob:
        """
        Add a meeting job and trigger a dispatch pass.

        Returns immediately; the job runs later on its own task.

        Raises:
            ConfigurationError: invalid target or scheduled time (no job is created)
            QueueClosedError: the queue was shut down
        """
        if self._closed:
            raise QueueClosedError("Job queue is shut down")
        if not isinstance(target, str) or not target.strip():
            raise ConfigurationError("Meeting target is required")
        # Raises RuntimeError outside the event loop, before any job exists
        asyncio.get_running_loop()

        job = MeetingJob(
            id=str(uuid.uuid4()),
            target=target.strip(),
            wants_recording=bool(wants_recording),
            scheduled_time=parse_scheduled_time(scheduled_time),
            created_at=self._clock(),
        )
        self._jobs.append(job)
        self._index[job.id] = job

        if job.scheduled_time:
            logger.info(f"Job added: {job.id} - {job.target} (scheduled for {job.scheduled_time.isoformat()})")
        else:
            logger.info(f"Job added: {job.id} - {job.target}")

        self.dispatch()
        return job

    # === Dispatch ===

    def dispatch(self) -> int:
        """
        Start as many ready jobs as the pool has room for.

        Returns:
            Number of jobs moved to PROCESSING in this pass
        """
        if self._closed or self._driver is None:
            return 0

        loop = asyncio.get_running_loop()
        now = self._clock()
        started = 0
        for job in self._jobs:
            if job.status != JobStatus.QUEUED or not job.is_ready(now):
                continue
            if not self.pool.reserve(job.id):
                # Keep FIFO: later jobs may not jump ahead of this one
                break
            self._start(job, now, loop)
            started += 1

        self._schedule_next_timer(now)
        return started

    def _start(self, job: MeetingJob, now: datetime, loop: asyncio.AbstractEventLoop):
        self._timers.cancel(job.id)
        job.status = JobStatus.PROCESSING
        job.started_at = max(now, job.created_at)
        logger.info(f"Processing job: {job.id}")

        task = loop.create_task(self._run_job(job), name=f"meeting-job:{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(lambda _t, job_id=job.id: self._tasks.pop(job_id, None))

    def _schedule_next_timer(self, now: datetime):
        waiting = [
            job for job in self._jobs
            if job.status == JobStatus.QUEUED and not job.is_ready(now)
        ]
        if not waiting:
            self._timers.cancel_all()
            return

        next_job = min(waiting, key=lambda j: j.scheduled_time)
        self._timers.cancel_all(keep=next_job.id)
        delay = (next_job.scheduled_time - now).total_seconds()
        if self._timers.schedule(next_job.id, delay, self._on_timer):
            logger.info(f"Next scheduled job in {round(delay)}s ({next_job.id})")

    def _on_timer(self, job_id: str):
        logger.debug(f"Deferred timer fired for job {job_id}")
        self.dispatch()

    async def _run_job(self, job: MeetingJob):
        """Driver wrapper: every failure ends in complete(job, error)."""
        if job.status != JobStatus.PROCESSING:
            # Finished before the task got to run (cancel, mode switch)
            return
        try:
            worker = await self.pool.acquire(job.id)
            if worker is None:
                if job.is_terminal:
                    # Cancelled while its worker was being built
                    return
                raise DriverFailure("No worker available for dispatched job")
            await self._driver(job, worker)
            if job.status == JobStatus.PROCESSING:
                raise DriverFailure("Job driver exited before the job became active")
        except Exception as e:
            logger.error(f"Job {job.id} failed ({categorize_error(e).value}): {e}")
            await self.complete(job.id, error=describe_error(e))

    # === Driver callbacks ===

    def mark_active(self, job_id: str) -> bool:
        """PROCESSING -> ACTIVE. Ignored for jobs in any other state."""
        job = self._index.get(job_id)
        if job is None or job.status != JobStatus.PROCESSING:
            logger.debug(f"Ignoring mark_active for job {job_id}")
            return False
        job.status = JobStatus.ACTIVE
        logger.info(f"Job active (in meeting): {job_id}")
        return True

    async def complete(self, job_id: str, error: Optional[str] = None) -> MeetingJob:
        """
        Finish a job, free its slot and offer the slot to the next waiter.

        Terminal jobs are returned unchanged. A job that has no worker yet
        (QUEUED, or PROCESSING with its worker still being built) is
        cancelled and marked FAILED.

        Raises:
            JobNotFoundError: unknown job id
        """
        job = self._index.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.is_terminal:
            return job

        if job.status == JobStatus.QUEUED:
            self._timers.cancel(job_id)
            error = error or CANCELLED_ERROR
        elif job.status == JobStatus.PROCESSING and self.pool.get_worker(job_id) is None:
            error = error or CANCELLED_ERROR

        self._finish(job, error)
        await self.pool.release(job_id)
        self.dispatch()
        return job

    def _finish(self, job: MeetingJob, error: Optional[str]):
        job.completed_at = max(self._clock(), job.started_at or job.created_at)
        if error:
            job.status = JobStatus.FAILED
            job.error = error
            logger.error(f"Job failed: {job.id} - {error}")
        else:
            job.status = JobStatus.COMPLETED
            logger.info(f"Job completed: {job.id}")

    # === Mode switch ===

    async def switch_mode(self, headless: bool) -> List[MeetingJob]:
        """
        Rebuild the pool in a different browser mode.

        Every running job loses its worker, so it is marked FAILED before
        the pool is torn down.

        Returns:
            The jobs that were failed by the switch

        Raises:
            PoolNotReadyError: the browser could not be restarted; jobs stay
                queued until a later switch succeeds
        """
        if self.pool.is_ready and self.pool.headless == headless:
            return []

        affected = [job for job in self._jobs if job.is_running]
        for job in affected:
            self._finish(job, MODE_SWITCH_ERROR)

        logger.warning(f"Switching browser mode (headless={headless}); {len(affected)} running job(s) failed")
        try:
            await self.pool.reinitialize(headless)
        except Exception as e:
            logger.error(f"Browser restart failed (headless={headless}): {e}")
            raise PoolNotReadyError(f"Browser restart failed: {describe_error(e)}") from e
        self.dispatch()
        return affected

    # === Queries ===

    def status(self, job_id: str) -> Optional[MeetingJob]:
        return self._index.get(job_id)

    def all_jobs(self) -> List[MeetingJob]:
        return list(self._jobs)

    def running_jobs(self) -> List[MeetingJob]:
        return [job for job in self._jobs if job.is_running]

    def snapshot(self) -> QueueSnapshot:
        now = self._clock()
        queued = [job for job in self._jobs if job.status == JobStatus.QUEUED]
        return QueueSnapshot(
            active_jobs=self.running_jobs(),
            queued_count=len(queued),
            scheduled_count=sum(1 for job in queued if not job.is_ready(now)),
        )

    @property
    def pending_timers(self) -> List[str]:
        return self._timers.pending()

    @property
    def is_closed(self) -> bool:
        return self._closed

    # === Shutdown ===

    async def shutdown(self):
        """
        Stop scheduling: cancel pending timers and in-flight driver tasks.

        Job states are left as they are; worker teardown belongs to the pool.
        """
        self._closed = True
        cancelled = self._timers.cancel_all()

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(f"Job queue shut down ({cancelled} timer(s), {len(tasks)} driver task(s) cancelled)")
