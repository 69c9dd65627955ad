"""
Pytest fixtures and configuration for the Meet Attendant test suite.

The fakes below stand in for the Playwright layer so the scheduler can be
tested without a browser.
"""

import pytest
import asyncio
import os
from pathlib import Path
from typing import List, Optional

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("LOG_DIR", "/tmp/meet_attendant_test_logs")

from core import JobQueue, MeetingJobDriver, MeetingWorker, ResourcePool, SessionStore, Substrate, WorkerFactory


# === Fakes ===

class FakeWorker(MeetingWorker):
    """Scriptable worker that records every call."""

    def __init__(
        self,
        join_result: bool = True,
        join_error: Optional[Exception] = None,
        join_gate: Optional[asyncio.Event] = None,
        record_result: bool = True,
        record_error: Optional[Exception] = None,
        leave_result: bool = True,
        in_meeting: bool = True,
        state: Optional[dict] = None,
        dispose_error: Optional[Exception] = None,
    ):
        self.join_result = join_result
        self.join_error = join_error
        self.join_gate = join_gate
        self.record_result = record_result
        self.record_error = record_error
        self.leave_result = leave_result
        self.in_meeting = in_meeting
        self.state = state
        self.dispose_error = dispose_error

        self.calls: List[str] = []
        self.dispose_count = 0
        self._recording = False

    @property
    def disposed(self) -> bool:
        return self.dispose_count > 0

    async def join(self, target: str) -> bool:
        self.calls.append("join")
        if self.join_gate is not None:
            await self.join_gate.wait()
        if self.join_error is not None:
            raise self.join_error
        return self.join_result

    async def start_recording(self) -> bool:
        self.calls.append("start_recording")
        if self.record_error is not None:
            raise self.record_error
        self._recording = self.record_result
        return self.record_result

    async def stop_recording(self) -> bool:
        self.calls.append("stop_recording")
        self._recording = False
        return True

    async def leave(self) -> bool:
        self.calls.append("leave")
        self._recording = False
        return self.leave_result

    def is_recording(self) -> bool:
        return self._recording

    async def is_in_meeting(self) -> bool:
        return self.in_meeting

    async def storage_state(self):
        return self.state

    async def dispose(self):
        self.dispose_count += 1
        if self.dispose_error is not None:
            raise self.dispose_error


class FakeWorkerFactory(WorkerFactory):
    """Hands out FakeWorkers; can fail or hold creation on a gate."""

    def __init__(self, **worker_kwargs):
        self.worker_kwargs = worker_kwargs
        self.created: List[FakeWorker] = []
        self.seen_states: List[Optional[dict]] = []
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.peak_live = 0

    @property
    def live_workers(self) -> List[FakeWorker]:
        return [w for w in self.created if not w.disposed]

    async def create(self, substrate, persisted_state=None) -> FakeWorker:
        self.seen_states.append(persisted_state)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        worker = FakeWorker(**self.worker_kwargs)
        self.created.append(worker)
        self.peak_live = max(self.peak_live, len(self.live_workers))
        return worker


class FakeSubstrate(Substrate):
    def __init__(self, headless: bool = True):
        self._headless = headless
        self._running = False
        self.start_count = 0
        self.close_count = 0
        self.start_error: Optional[Exception] = None

    @property
    def headless(self) -> bool:
        return self._headless

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, headless=None):
        if self.start_error is not None:
            raise self.start_error
        if headless is not None:
            self._headless = headless
        self._running = True
        self.start_count += 1

    async def close(self):
        self._running = False
        self.close_count += 1


class MemorySessionStore(SessionStore):
    def __init__(self, state: Optional[dict] = None):
        self.state = state
        self.saved: List[dict] = []

    def has_valid_session(self) -> bool:
        return bool(self.state and self.state.get("cookies"))

    def load(self):
        return self.state

    def save(self, state):
        self.state = state
        self.saved.append(state)

    def clear(self):
        self.state = None


# === Fixtures ===

@pytest.fixture
def fake_factory():
    return FakeWorkerFactory()


@pytest.fixture
def fake_substrate():
    return FakeSubstrate()


@pytest.fixture
def session_store():
    return MemorySessionStore({"cookies": [{"name": "SID", "value": "x", "domain": ".example.com", "expires": -1}]})


@pytest.fixture
def make_pool(fake_factory, fake_substrate, session_store):
    """Async builder for an initialized pool with the shared fakes."""
    async def _make(max_concurrent: int = 2, store=session_store) -> ResourcePool:
        pool = ResourcePool(fake_substrate, fake_factory, max_concurrent=max_concurrent, session_store=store)
        await pool.initialize(headless=True)
        return pool
    return _make


@pytest.fixture
def make_queue(make_pool, session_store):
    """Async builder for a (queue, pool, driver) trio wired like production."""
    async def _make(max_concurrent: int = 2):
        pool = await make_pool(max_concurrent=max_concurrent)
        queue = JobQueue(pool)
        driver = MeetingJobDriver(queue, pool, session_store=session_store, recording_start_delay=0)
        queue.set_driver(driver)
        return queue, pool, driver
    return _make


async def settle(rounds: int = 5):
    """Let spawned driver tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def drain():
    return settle


# === Markers ===

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "scheduling: Queue ordering and timer tests")
    config.addinivalue_line("markers", "resilience: Failure handling tests")
    config.addinivalue_line("markers", "api: HTTP front end tests")
