#!/usr/bin/env python3
"""
Playwright meeting worker.

Each worker owns one isolated BrowserContext (own cookies and storage) and
one page on the shared Chromium substrate, and delegates page actions to a
MeetingPlatform.
"""

import logging
from typing import Any, Callable, Dict, Optional

from playwright.async_api import BrowserContext, Page

from core.interfaces import MeetingWorker, StorageState, Substrate, WorkerFactory

from .platforms import MeetingPlatform, SelectorMeetingPlatform
from .substrate import ChromiumSubstrate

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class PlaywrightMeetingWorker(MeetingWorker):
    """Meeting worker backed by a Playwright context and page."""

    def __init__(self, context: BrowserContext, page: Page, platform: MeetingPlatform):
        self.context = context
        self.page = page
        self.platform = platform
        self._recording = False
        self._active = True

    def _ensure_active(self):
        if not self._active:
            raise RuntimeError("Worker is no longer active")

    async def join(self, target: str) -> bool:
        self._ensure_active()
        return await self.platform.join(self.page, target)

    async def start_recording(self) -> bool:
        self._ensure_active()
        if self._recording:
            logger.info("Already recording")
            return True
        self._recording = await self.platform.start_recording(self.page)
        return self._recording

    async def stop_recording(self) -> bool:
        self._ensure_active()
        if not self._recording:
            return True
        stopped = await self.platform.stop_recording(self.page)
        if stopped:
            self._recording = False
        return stopped

    async def leave(self) -> bool:
        if not self._active:
            return True
        left = await self.platform.leave(self.page)
        if left:
            self._recording = False
        return left

    def is_recording(self) -> bool:
        return self._recording

    async def is_in_meeting(self) -> bool:
        if not self._active:
            return False
        return await self.platform.is_in_meeting(self.page)

    async def storage_state(self) -> Optional[StorageState]:
        if not self._active:
            return None
        return await self.context.storage_state()

    async def dispose(self):
        if not self._active:
            return
        self._active = False

        try:
            await self.platform.leave(self.page)
        except Exception as e:
            logger.debug(f"Leave during dispose failed: {e}")

        try:
            await self.page.close()
        except Exception as e:
            logger.debug(f"Page close failed: {e}")

        try:
            await self.context.close()
        except Exception as e:
            logger.warning(f"Context close failed: {e}")

        self._recording = False
        logger.info("Meeting worker disposed")


class PlaywrightWorkerFactory(WorkerFactory):
    """Creates one isolated context per worker on a ChromiumSubstrate."""

    def __init__(
        self,
        platform_factory: Callable[[], MeetingPlatform] = SelectorMeetingPlatform,
        viewport: Optional[Dict[str, int]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        default_timeout_ms: int = 30000,
    ):
        self.platform_factory = platform_factory
        self.viewport = viewport or dict(DEFAULT_VIEWPORT)
        self.user_agent = user_agent
        self.default_timeout_ms = default_timeout_ms

    async def create(
        self,
        substrate: Substrate,
        persisted_state: Optional[StorageState] = None,
    ) -> PlaywrightMeetingWorker:
        if not isinstance(substrate, ChromiumSubstrate) or substrate.browser is None:
            raise RuntimeError("Chromium substrate is not running")

        context_args: Dict[str, Any] = {
            "viewport": self.viewport,
            "user_agent": self.user_agent,
            "permissions": ["camera", "microphone"],
        }
        if persisted_state:
            context_args["storage_state"] = persisted_state

        context = await substrate.browser.new_context(**context_args)
        try:
            context.set_default_timeout(self.default_timeout_ms)
            page = await context.new_page()
        except Exception:
            await context.close()
            raise

        logger.info("Created new meeting worker context")
        return PlaywrightMeetingWorker(context, page, self.platform_factory())
