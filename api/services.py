"""
Service wiring for the Meet Attendant API.

Builds the session store, worker pool, job queue, driver and liveness
monitor from an AppConfig. Every piece is an explicit instance, so tests
can assemble their own container with fakes.
"""

import functools
from dataclasses import dataclass
from typing import Optional

from api.config import AppConfig
from browser import (
    ChromiumSubstrate,
    FileSessionStore,
    PlatformSelectors,
    PlaywrightWorkerFactory,
    get_platform_class,
)
from core import JobQueue, LivenessMonitor, MeetingJobDriver, ResourcePool, SessionStore


@dataclass
class ServiceContainer:
    """Everything the API needs, constructed once per app."""
    config: AppConfig
    session_store: SessionStore
    pool: ResourcePool
    queue: JobQueue
    driver: MeetingJobDriver
    liveness: Optional[LivenessMonitor] = None


def build_session_store(cfg: AppConfig) -> FileSessionStore:
    return FileSessionStore(
        session_dir=cfg.SESSION_DIR,
        filename=cfg.SESSION_FILE,
        cookie_domain=cfg.SESSION_COOKIE_DOMAIN,
        required_cookies=cfg.SESSION_REQUIRED_COOKIES,
    )


def build_worker_factory(cfg: AppConfig) -> PlaywrightWorkerFactory:
    selectors = PlatformSelectors.from_strings(
        join=cfg.JOIN_SELECTOR,
        in_meeting=cfg.IN_MEETING_SELECTOR,
        leave=cfg.LEAVE_SELECTOR,
        record_start=cfg.RECORD_START_SELECTORS,
        record_stop=cfg.RECORD_STOP_SELECTORS,
        dismiss=cfg.DISMISS_SELECTOR,
    )
    platform_factory = functools.partial(
        get_platform_class(cfg.MEETING_PLATFORM),
        selectors=selectors,
        page_load_timeout_ms=cfg.PAGE_LOAD_TIMEOUT_MS,
        element_timeout_ms=cfg.ELEMENT_TIMEOUT_MS,
        join_timeout_ms=cfg.MEETING_JOIN_TIMEOUT_MS,
    )
    return PlaywrightWorkerFactory(
        platform_factory=platform_factory,
        default_timeout_ms=cfg.ELEMENT_TIMEOUT_MS,
    )


def wire_services(
    cfg: AppConfig,
    pool: ResourcePool,
    session_store: SessionStore,
) -> ServiceContainer:
    """Connect queue, driver and liveness monitor to an existing pool."""
    queue = JobQueue(pool)
    driver = MeetingJobDriver(
        queue,
        pool,
        session_store=session_store,
        recording_start_delay=cfg.RECORDING_START_DELAY_SECONDS,
    )
    queue.set_driver(driver)

    liveness = None
    if cfg.LIVENESS_ENABLED:
        liveness = LivenessMonitor(queue, pool, poll_interval_seconds=cfg.LIVENESS_POLL_SECONDS)

    return ServiceContainer(
        config=cfg,
        session_store=session_store,
        pool=pool,
        queue=queue,
        driver=driver,
        liveness=liveness,
    )


def build_services(cfg: AppConfig) -> ServiceContainer:
    """Production wiring: Playwright Chromium + file session store."""
    store = build_session_store(cfg)
    pool = ResourcePool(
        substrate=ChromiumSubstrate(headless=cfg.HEADLESS),
        factory=build_worker_factory(cfg),
        max_concurrent=cfg.MAX_CONCURRENT_SESSIONS,
        session_store=store,
    )
    return wire_services(cfg, pool, store)
