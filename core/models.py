#!/usr/bin/env python3
"""
Data models for the meeting scheduler.

MeetingJob is owned and mutated by JobQueue only; everything else reads it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigurationError


# ============== Enums ==============

class JobStatus(str, Enum):
    """Job lifecycle states."""
    QUEUED = "queued"
    PROCESSING = "processing"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})
RUNNING_STATUSES = frozenset({JobStatus.PROCESSING, JobStatus.ACTIVE})


# ============== Time helpers ==============

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC. Naive values are taken as local time."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc)


def parse_scheduled_time(value: Union[None, str, datetime]) -> Optional[datetime]:
    """
    Validate a scheduled start time.

    Args:
        value: None, a datetime, or an ISO-8601 string ("Z" suffix allowed)

    Returns:
        A tz-aware UTC datetime, or None for "ready immediately"

    Raises:
        ConfigurationError: if the value is not a usable timestamp
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            raise ConfigurationError(f"Invalid scheduled_time format: {value!r}")
    raise ConfigurationError(f"Invalid scheduled_time type: {type(value).__name__}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============== Data Models ==============

@dataclass
class MeetingJob:
    """One request to occupy a worker for a meeting."""
    id: str
    target: str
    wants_recording: bool = True
    scheduled_time: Optional[datetime] = None
    status: JobStatus = JobStatus.QUEUED
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_running(self) -> bool:
        return self.status in RUNNING_STATUSES

    def is_ready(self, now: datetime) -> bool:
        """True if the job has no start time or its start time has passed."""
        return self.scheduled_time is None or self.scheduled_time <= now

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "target": self.target,
            "wants_recording": self.wants_recording,
            "scheduled_time": _iso(self.scheduled_time),
            "status": self.status.value,
            "error": self.error,
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }


@dataclass(frozen=True)
class PoolCapacity:
    """Read-only snapshot of pool usage."""
    active: int
    max_concurrent: int

    @property
    def available(self) -> int:
        return max(0, self.max_concurrent - self.active)

    def to_dict(self) -> Dict[str, int]:
        return {
            "active": self.active,
            "max": self.max_concurrent,
            "available": self.available,
        }


@dataclass
class QueueSnapshot:
    """Point-in-time view of the queue."""
    active_jobs: List[MeetingJob] = field(default_factory=list)
    queued_count: int = 0
    scheduled_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active_jobs": [job.to_dict() for job in self.active_jobs],
            "queued_count": self.queued_count,
            "scheduled_count": self.scheduled_count,
        }
