"""
Job queue tests - dispatch order, deferred start, failure handling and
mode switches.
"""

import pytest
import asyncio
import random
from datetime import timedelta

from core import (
    ConfigurationError,
    JobNotFoundError,
    JobQueue,
    JobStatus,
    PoolNotReadyError,
    QueueClosedError,
)
from core.job_queue import CANCELLED_ERROR, MODE_SWITCH_ERROR
from core.models import utcnow

MEET_URL = "https://meet.example.com/abc-defg-hij"


@pytest.mark.scheduling
class TestDispatchOrder:

    @pytest.mark.asyncio
    async def test_ready_job_dispatched_on_submit(self, make_queue):
        queue, pool, _ = await make_queue(max_concurrent=2)

        job = queue.submit(MEET_URL)

        assert job.status == JobStatus.PROCESSING
        assert job.started_at is not None
        assert pool.active_count == 1

    @pytest.mark.asyncio
    async def test_excess_jobs_wait_for_free_slot(self, make_queue, drain):
        queue, pool, _ = await make_queue(max_concurrent=2)

        a = queue.submit(MEET_URL + "?a")
        b = queue.submit(MEET_URL + "?b")
        c = queue.submit(MEET_URL + "?c")

        assert a.status == JobStatus.PROCESSING
        assert b.status == JobStatus.PROCESSING
        assert c.status == JobStatus.QUEUED

        await drain()
        assert a.status == JobStatus.ACTIVE
        assert c.status == JobStatus.QUEUED

        await queue.complete(a.id)
        assert a.status == JobStatus.COMPLETED
        assert c.status == JobStatus.PROCESSING

        await drain()
        assert c.status == JobStatus.ACTIVE
        assert pool.active_count == 2

    @pytest.mark.asyncio
    async def test_fifo_with_single_slot(self, make_queue, drain):
        queue, _, _ = await make_queue(max_concurrent=1)
        jobs = [queue.submit(f"{MEET_URL}?n={i}") for i in range(3)]

        started = []
        for job in jobs:
            await drain()
            running = queue.running_jobs()
            assert len(running) == 1
            started.append(running[0].id)
            await queue.complete(running[0].id)

        assert started == [job.id for job in jobs]

    @pytest.mark.asyncio
    async def test_future_job_does_not_block_ready_job(self, make_queue):
        queue, _, _ = await make_queue(max_concurrent=1)

        later = queue.submit(MEET_URL, scheduled_time=utcnow() + timedelta(minutes=5))
        now = queue.submit(MEET_URL)

        assert later.status == JobStatus.QUEUED
        assert now.status == JobStatus.PROCESSING
        await queue.shutdown()

    @pytest.mark.asyncio
    async def test_past_scheduled_time_is_ready(self, make_queue):
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL, scheduled_time="2020-01-01T00:00:00Z")
        assert job.status == JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_capacity_invariant_under_churn(self, make_queue, fake_factory, drain):
        queue, pool, _ = await make_queue(max_concurrent=2)
        rng = random.Random(7)

        for _ in range(60):
            running = queue.running_jobs()
            if running and rng.random() < 0.4:
                await queue.complete(rng.choice(running).id)
            else:
                queue.submit(MEET_URL)
            if rng.random() < 0.5:
                await drain(1)

            assert pool.active_count <= 2
            assert len(queue.running_jobs()) <= 2

        assert fake_factory.peak_live <= 2
        await queue.shutdown()


@pytest.mark.scheduling
class TestDeferredStart:

    @pytest.mark.asyncio
    async def test_scheduled_job_starts_at_its_time(self, make_queue):
        queue, _, _ = await make_queue()

        job = queue.submit(MEET_URL, scheduled_time=utcnow() + timedelta(seconds=0.3))
        assert job.status == JobStatus.QUEUED
        assert queue.pending_timers == [job.id]

        await asyncio.sleep(0.1)
        assert job.status == JobStatus.QUEUED

        await asyncio.sleep(0.5)
        assert job.status in (JobStatus.PROCESSING, JobStatus.ACTIVE)
        assert job.started_at >= job.scheduled_time
        assert queue.pending_timers == []

    @pytest.mark.asyncio
    async def test_single_timer_for_earliest_job(self, make_queue):
        queue, _, _ = await make_queue()
        now = utcnow()

        late = queue.submit(MEET_URL, scheduled_time=now + timedelta(minutes=10))
        assert queue.pending_timers == [late.id]

        early = queue.submit(MEET_URL, scheduled_time=now + timedelta(minutes=5))
        assert queue.pending_timers == [early.id]

        queue.submit(MEET_URL, scheduled_time=now + timedelta(minutes=20))
        assert queue.pending_timers == [early.id]

        await queue.shutdown()
        assert queue.pending_timers == []

    @pytest.mark.asyncio
    async def test_cancel_scheduled_job(self, make_queue):
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL, scheduled_time=utcnow() + timedelta(minutes=5))

        await queue.complete(job.id)

        assert job.status == JobStatus.FAILED
        assert job.error == CANCELLED_ERROR
        assert queue.pending_timers == []

    @pytest.mark.asyncio
    async def test_timer_moves_to_next_job_after_cancel(self, make_queue):
        queue, _, _ = await make_queue()
        now = utcnow()
        first = queue.submit(MEET_URL, scheduled_time=now + timedelta(minutes=5))
        second = queue.submit(MEET_URL, scheduled_time=now + timedelta(minutes=6))

        await queue.complete(first.id)

        assert queue.pending_timers == [second.id]
        await queue.shutdown()


@pytest.mark.resilience
class TestFailures:

    @pytest.mark.asyncio
    async def test_join_failure_fails_job_and_frees_slot(self, make_queue, fake_factory, drain):
        fake_factory.worker_kwargs["join_result"] = False
        queue, pool, _ = await make_queue(max_concurrent=1)

        a = queue.submit(MEET_URL)
        b = queue.submit(MEET_URL)
        await drain(10)

        for job in (a, b):
            assert job.status == JobStatus.FAILED
            assert "Failed to join meeting" in job.error
        assert len(fake_factory.created) == 2
        assert all(w.disposed for w in fake_factory.created)
        assert pool.active_count == 0

    @pytest.mark.asyncio
    async def test_join_exception_message_recorded(self, make_queue, fake_factory, drain):
        fake_factory.worker_kwargs["join_error"] = TimeoutError("navigation timed out")
        queue, _, _ = await make_queue()

        job = queue.submit(MEET_URL)
        await drain()

        assert job.status == JobStatus.FAILED
        assert "navigation timed out" in job.error

    @pytest.mark.asyncio
    async def test_worker_creation_failure_fails_job(self, make_queue, fake_factory, drain):
        fake_factory.fail_with = RuntimeError("browser context limit")
        queue, pool, _ = await make_queue(max_concurrent=1)

        job = queue.submit(MEET_URL)
        await drain()

        assert job.status == JobStatus.FAILED
        assert job.error == "browser context limit"
        assert pool.active_count == 0

    @pytest.mark.asyncio
    async def test_recording_failure_is_soft(self, make_queue, fake_factory, drain):
        fake_factory.worker_kwargs["record_result"] = False
        queue, _, driver = await make_queue()

        job = queue.submit(MEET_URL)
        await drain()

        assert job.status == JobStatus.ACTIVE
        assert job.error is None
        assert driver.is_recording(job.id) is False

    @pytest.mark.asyncio
    async def test_driver_that_never_marks_active(self, make_queue, drain):
        queue, pool, _ = await make_queue()

        async def lazy_driver(job, worker):
            return None

        queue.set_driver(lazy_driver)
        job = queue.submit(MEET_URL)
        await drain()

        assert job.status == JobStatus.FAILED
        assert "before the job became active" in job.error
        assert pool.active_count == 0


class TestCompletion:

    @pytest.mark.asyncio
    async def test_complete_unknown_job(self, make_queue):
        queue, _, _ = await make_queue()
        with pytest.raises(JobNotFoundError):
            await queue.complete("missing")

    @pytest.mark.asyncio
    async def test_complete_is_idempotent(self, make_queue, drain):
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL)
        await drain()

        await queue.complete(job.id)
        finished_at = job.completed_at
        again = await queue.complete(job.id, error="late error")

        assert again is job
        assert job.status == JobStatus.COMPLETED
        assert job.error is None
        assert job.completed_at == finished_at

    @pytest.mark.asyncio
    async def test_complete_with_error(self, make_queue, drain):
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL)
        await drain()

        await queue.complete(job.id, error="Meeting ended unexpectedly")

        assert job.status == JobStatus.FAILED
        assert job.error == "Meeting ended unexpectedly"

    @pytest.mark.asyncio
    async def test_timestamps_are_ordered(self, make_queue, drain):
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL)
        await drain()
        await queue.complete(job.id)

        assert job.created_at <= job.started_at <= job.completed_at

    @pytest.mark.asyncio
    async def test_mark_active_only_from_processing(self, make_queue, drain):
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL)
        await drain()
        await queue.complete(job.id)

        assert queue.mark_active(job.id) is False
        assert job.status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cancel_while_worker_is_being_built(self, make_queue, fake_factory, drain):
        fake_factory.gate = asyncio.Event()
        queue, pool, _ = await make_queue(max_concurrent=1)
        job = queue.submit(MEET_URL)
        await drain()
        assert job.status == JobStatus.PROCESSING
        assert pool.get_worker(job.id) is None

        await queue.complete(job.id)

        assert job.status == JobStatus.FAILED
        assert job.error == CANCELLED_ERROR

        fake_factory.gate.set()
        await drain()

        assert job.error == CANCELLED_ERROR
        assert fake_factory.created[0].disposed
        assert pool.active_count == 0


class TestValidation:

    @pytest.mark.asyncio
    async def test_empty_target_rejected(self, make_queue):
        queue, _, _ = await make_queue()
        with pytest.raises(ConfigurationError):
            queue.submit("   ")
        assert queue.all_jobs() == []

    @pytest.mark.asyncio
    async def test_bad_scheduled_time_rejected(self, make_queue):
        queue, _, _ = await make_queue()
        with pytest.raises(ConfigurationError):
            queue.submit(MEET_URL, scheduled_time="next tuesday")
        assert queue.all_jobs() == []

    @pytest.mark.asyncio
    async def test_submit_after_shutdown(self, make_queue):
        queue, _, _ = await make_queue()
        await queue.shutdown()
        with pytest.raises(QueueClosedError):
            queue.submit(MEET_URL)

    def test_submit_outside_event_loop(self, make_pool):
        pool = asyncio.run(make_pool(max_concurrent=1))

        async def idle_driver(job, worker):
            return None

        queue = JobQueue(pool, driver=idle_driver)
        with pytest.raises(RuntimeError):
            queue.submit(MEET_URL)

        assert queue.all_jobs() == []
        assert pool.active_count == 0


class TestModeSwitch:

    @pytest.mark.asyncio
    async def test_switch_fails_running_jobs_and_redispatches(self, make_queue, fake_factory, drain):
        queue, pool, _ = await make_queue(max_concurrent=2)
        a = queue.submit(MEET_URL)
        b = queue.submit(MEET_URL)
        c = queue.submit(MEET_URL)
        await drain()
        old_workers = list(fake_factory.created)

        failed = await queue.switch_mode(headless=False)

        assert {job.id for job in failed} == {a.id, b.id}
        for job in (a, b):
            assert job.status == JobStatus.FAILED
            assert job.error == MODE_SWITCH_ERROR
        assert all(w.disposed for w in old_workers)
        assert pool.headless is False
        assert c.status == JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_same_mode_is_noop(self, make_queue, drain):
        queue, pool, _ = await make_queue()
        job = queue.submit(MEET_URL)
        await drain()

        assert await queue.switch_mode(headless=True) == []
        assert job.status == JobStatus.ACTIVE
        assert pool.get_worker(job.id) is not None

    @pytest.mark.asyncio
    async def test_failed_restart_raises_pool_not_ready(self, make_queue, fake_substrate, drain):
        queue, pool, _ = await make_queue(max_concurrent=1)
        running = queue.submit(MEET_URL)
        waiting = queue.submit(MEET_URL)
        await drain()
        fake_substrate.start_error = RuntimeError("chromium failed to launch")

        with pytest.raises(PoolNotReadyError):
            await queue.switch_mode(headless=False)

        assert running.status == JobStatus.FAILED
        assert waiting.status == JobStatus.QUEUED
        assert not pool.is_ready

        fake_substrate.start_error = None
        assert await queue.switch_mode(headless=False) == []
        assert waiting.status == JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_switch_while_joining(self, make_queue, fake_factory, drain):
        gate = asyncio.Event()
        fake_factory.worker_kwargs["join_gate"] = gate
        queue, pool, _ = await make_queue()
        job = queue.submit(MEET_URL)
        await drain()
        assert job.status == JobStatus.PROCESSING

        await queue.switch_mode(headless=False)
        gate.set()
        await drain()

        assert job.status == JobStatus.FAILED
        assert job.error == MODE_SWITCH_ERROR
        assert pool.active_count == 0


class TestQueries:

    @pytest.mark.asyncio
    async def test_snapshot_counts(self, make_queue, fake_factory, drain):
        fake_factory.worker_kwargs["join_gate"] = asyncio.Event()
        queue, _, _ = await make_queue(max_concurrent=1)

        running = queue.submit(MEET_URL)
        queue.submit(MEET_URL)
        queue.submit(MEET_URL, scheduled_time=utcnow() + timedelta(hours=1))
        await drain()

        snapshot = queue.snapshot()
        assert [job.id for job in snapshot.active_jobs] == [running.id]
        assert snapshot.queued_count == 2
        assert snapshot.scheduled_count == 1

        data = snapshot.to_dict()
        assert data["active_jobs"][0]["status"] == "processing"
        await queue.shutdown()

    @pytest.mark.asyncio
    async def test_status_lookup(self, make_queue):
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL, wants_recording=False)

        assert queue.status(job.id) is job
        assert queue.status("missing") is None
        assert job.to_dict()["wants_recording"] is False

    @pytest.mark.asyncio
    async def test_shutdown_cancels_driver_tasks(self, make_queue, fake_factory, drain):
        fake_factory.worker_kwargs["join_gate"] = asyncio.Event()
        queue, _, _ = await make_queue()
        job = queue.submit(MEET_URL)
        await drain()

        await queue.shutdown()

        assert queue.is_closed
        assert job.status == JobStatus.PROCESSING
        assert queue.pending_timers == []
