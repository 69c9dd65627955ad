"""
Error taxonomy for the meeting scheduler.

Capacity shortage is not an exception: ResourcePool.acquire/reserve signal it
by returning None/False and the next dispatch pass retries. Everything else
surfaces as one of the classes below.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Error categories, used for logging and API payloads."""
    CAPACITY_UNAVAILABLE = "capacity_unavailable"
    DRIVER_FAILURE = "driver_failure"
    SOFT_ACTION_FAILURE = "soft_action_failure"
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class MeetingBotError(Exception):
    """Base class for scheduler errors."""
    category = ErrorCategory.UNKNOWN


class ConfigurationError(MeetingBotError, ValueError):
    """Invalid submission (target, scheduled time). No job is created."""
    category = ErrorCategory.CONFIGURATION


class JobNotFoundError(MeetingBotError):
    """Unknown job id, or no worker bound to the job."""
    category = ErrorCategory.NOT_FOUND

    def __init__(self, job_id: str, message: str = None):
        self.job_id = job_id
        super().__init__(message or f"Job not found: {job_id}")


class DriverFailure(MeetingBotError):
    """Join/setup failed. The job fails and its slot is released."""
    category = ErrorCategory.DRIVER_FAILURE


class SoftActionFailure(MeetingBotError):
    """Recording start/stop failed. Logged, the job carries on."""
    category = ErrorCategory.SOFT_ACTION_FAILURE


class PoolNotReadyError(MeetingBotError):
    """The pool has no running substrate (not initialized, closed or rebuilding)."""
    category = ErrorCategory.UNAVAILABLE


class QueueClosedError(MeetingBotError):
    """The queue has been shut down and accepts no more jobs."""
    category = ErrorCategory.UNAVAILABLE


def categorize_error(error: BaseException) -> ErrorCategory:
    """Map an exception to an ErrorCategory."""
    if isinstance(error, MeetingBotError):
        return error.category
    if isinstance(error, (TimeoutError, ConnectionError)):
        return ErrorCategory.DRIVER_FAILURE
    text = str(error).lower()
    if "timeout" in text or "net::" in text or "target closed" in text:
        return ErrorCategory.DRIVER_FAILURE
    return ErrorCategory.UNKNOWN


def describe_error(error: BaseException) -> str:
    """Human-readable error text stored on failed jobs."""
    message = str(error).strip()
    if not message:
        message = error.__class__.__name__
    return message
