"""
Core scheduling components for the meeting attendant.

Modules:
- models: Job, capacity and snapshot data models
- interfaces: Worker / factory / substrate / session store contracts
- resource_pool: Bounded pool of workers on a shared browser
- job_queue: FIFO-with-deferral queue and dispatcher
- job_driver: Join -> record -> active routine and per-job actions
- liveness: Completes jobs whose meeting ended on its own
- timers: Deferred dispatch timer registry
- errors: Error taxonomy
"""

from .errors import (
    ConfigurationError,
    DriverFailure,
    ErrorCategory,
    JobNotFoundError,
    MeetingBotError,
    PoolNotReadyError,
    QueueClosedError,
    SoftActionFailure,
    categorize_error,
)
from .interfaces import MeetingWorker, SessionStore, StorageState, Substrate, WorkerFactory
from .models import JobStatus, MeetingJob, PoolCapacity, QueueSnapshot
from .resource_pool import ResourcePool
from .job_queue import JobQueue
from .job_driver import MeetingJobDriver
from .liveness import LivenessMonitor
from .timers import DeferredTimers

__all__ = [
    "ConfigurationError",
    "DriverFailure",
    "ErrorCategory",
    "JobNotFoundError",
    "MeetingBotError",
    "PoolNotReadyError",
    "QueueClosedError",
    "SoftActionFailure",
    "categorize_error",
    "MeetingWorker",
    "SessionStore",
    "StorageState",
    "Substrate",
    "WorkerFactory",
    "JobStatus",
    "MeetingJob",
    "PoolCapacity",
    "QueueSnapshot",
    "ResourcePool",
    "JobQueue",
    "MeetingJobDriver",
    "LivenessMonitor",
    "DeferredTimers",
]
