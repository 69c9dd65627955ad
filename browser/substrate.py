#!/usr/bin/env python3
"""
Shared Chromium substrate.

One Playwright driver and one Chromium process are shared by every live
meeting worker; each worker gets its own isolated BrowserContext on top.
"""

import logging
from typing import List, Optional

from playwright.async_api import Browser, Playwright, async_playwright

from core.interfaces import Substrate

logger = logging.getLogger(__name__)

# Launch flags: hide automation, run in containers, auto-grant fake camera/mic
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--use-fake-ui-for-media-stream",
    "--use-fake-device-for-media-stream",
]


class ChromiumSubstrate(Substrate):
    """Playwright Chromium instance shared by all meeting workers."""

    def __init__(self, headless: bool = True, extra_args: Optional[List[str]] = None):
        self._headless = headless
        self.launch_args = LAUNCH_ARGS + list(extra_args or [])
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    @property
    def headless(self) -> bool:
        return self._headless

    @property
    def is_running(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    async def start(self, headless: Optional[bool] = None):
        if headless is not None:
            self._headless = headless
        if self.is_running:
            return

        logger.info(f"Launching shared Chromium (headless={self._headless})...")
        if self.playwright is None:
            self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self._headless,
            args=self.launch_args,
        )
        logger.info("Shared Chromium launched")

    async def close(self):
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.error(f"Error closing browser: {e}")
            finally:
                self.browser = None

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}")
            finally:
                self.playwright = None

        logger.info("Shared Chromium closed")
