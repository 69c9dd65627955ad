#!/usr/bin/env python3
"""
Meeting Liveness Monitor

Polls the workers of active jobs and completes a job once its meeting has
ended on its own (host ended the call, bot was removed, tab crashed).

This monitor is designed to run inside the FastAPI lifespan task.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from .job_queue import JobQueue
from .models import JobStatus
from .resource_pool import ResourcePool

logger = logging.getLogger(__name__)


@dataclass
class LivenessMonitor:
    queue: JobQueue
    pool: ResourcePool
    poll_interval_seconds: float = 15.0
    monitor_id: str = field(default_factory=lambda: f"liveness_{uuid.uuid4().hex[:8]}")
    _task: Optional[asyncio.Task] = None
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event)

    def start(self):
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_loop(), name=f"liveness-monitor:{self.monitor_id}")
        logger.info(f"LivenessMonitor started: {self.monitor_id}")

    async def stop(self):
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(f"LivenessMonitor stopped: {self.monitor_id}")

    async def run_loop(self):
        while not self._stop_event.is_set():
            try:
                await self.check_once()
                await asyncio.sleep(self.poll_interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"LivenessMonitor loop error: {e}")
                await asyncio.sleep(self.poll_interval_seconds)

    async def check_once(self) -> List[str]:
        """
        Probe every active job once.

        Returns:
            Ids of the jobs completed because their meeting ended
        """
        ended = []
        for job in self.queue.running_jobs():
            if job.status != JobStatus.ACTIVE:
                continue
            worker = self.pool.get_worker(job.id)
            if worker is None:
                continue
            try:
                in_meeting = await worker.is_in_meeting()
            except Exception as e:
                logger.warning(f"Liveness probe failed for job {job.id}: {e}")
                continue
            if in_meeting or job.status != JobStatus.ACTIVE:
                continue

            logger.info(f"Meeting ended for job {job.id}; completing")
            await self.queue.complete(job.id)
            ended.append(job.id)
        return ended
