#!/usr/bin/env python3
"""
Meeting platform scripts.

A MeetingPlatform knows how to drive one meeting product's web UI on a
Playwright page. Workers delegate every page action to one, so supporting
another product means adding another platform, not touching the pool.

SelectorMeetingPlatform is the generic variant: it walks operator-supplied
selector lists (first visible match wins) and ships with none built in.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type

from playwright.async_api import Page

logger = logging.getLogger(__name__)


class MeetingPlatform(ABC):
    """Page-level actions for one meeting product."""

    name: str = "base"

    @abstractmethod
    async def join(self, page: Page, target: str) -> bool:
        ...

    @abstractmethod
    async def start_recording(self, page: Page) -> bool:
        ...

    @abstractmethod
    async def stop_recording(self, page: Page) -> bool:
        ...

    @abstractmethod
    async def leave(self, page: Page) -> bool:
        ...

    @abstractmethod
    async def is_in_meeting(self, page: Page) -> bool:
        ...


@dataclass
class PlatformSelectors:
    """Selector lists; every entry is tried in order."""
    join: List[str] = field(default_factory=list)
    in_meeting: List[str] = field(default_factory=list)
    leave: List[str] = field(default_factory=list)
    record_start: List[str] = field(default_factory=list)
    record_stop: List[str] = field(default_factory=list)
    dismiss: List[str] = field(default_factory=list)

    @classmethod
    def from_strings(cls, **values: Optional[str]) -> "PlatformSelectors":
        """Build from '||'-separated strings (CSS selectors may contain commas)."""
        parsed = {}
        for key, raw in values.items():
            parsed[key] = [s.strip() for s in (raw or "").split("||") if s.strip()]
        return cls(**parsed)


class SelectorMeetingPlatform(MeetingPlatform):
    """Generic, configuration-driven meeting platform."""

    name = "selector"

    def __init__(
        self,
        selectors: Optional[PlatformSelectors] = None,
        page_load_timeout_ms: int = 60000,
        element_timeout_ms: int = 30000,
        join_timeout_ms: int = 60000,
        settle_delay_seconds: float = 2.0,
    ):
        self.selectors = selectors or PlatformSelectors()
        self.page_load_timeout_ms = page_load_timeout_ms
        self.element_timeout_ms = element_timeout_ms
        self.join_timeout_ms = join_timeout_ms
        self.settle_delay_seconds = settle_delay_seconds

    async def _click_first(self, page: Page, selectors: List[str]) -> Optional[str]:
        """Click the first visible match. Returns the selector that worked."""
        for sel in selectors:
            try:
                loc = page.locator(sel).first
                if await loc.count() > 0 and await loc.is_visible():
                    await loc.click(timeout=self.element_timeout_ms)
                    return sel
            except Exception as e:
                logger.debug(f"Selector {sel!r} not clickable: {e}")
                continue
        return None

    async def _any_visible(self, page: Page, selectors: List[str]) -> bool:
        for sel in selectors:
            try:
                loc = page.locator(sel).first
                if await loc.count() > 0 and await loc.is_visible():
                    return True
            except Exception:
                continue
        return False

    async def _wait_for_any(self, page: Page, selectors: List[str], timeout_ms: int) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while loop.time() < deadline:
            if await self._any_visible(page, selectors):
                return True
            await asyncio.sleep(1.0)
        return False

    async def join(self, page: Page, target: str) -> bool:
        logger.info(f"Navigating to meeting: {target}")
        await page.goto(target, wait_until="domcontentloaded", timeout=self.page_load_timeout_ms)
        await asyncio.sleep(self.settle_delay_seconds)

        await self._click_first(page, self.selectors.dismiss)

        if self.selectors.join:
            clicked = await self._click_first(page, self.selectors.join)
            if not clicked:
                logger.warning("No join control found")
                return False
            logger.info(f"Clicked join control: {clicked}")

        if self.selectors.in_meeting:
            joined = await self._wait_for_any(page, self.selectors.in_meeting, self.join_timeout_ms)
            if not joined:
                logger.warning("Timed out waiting for the in-meeting indicator")
            return joined
        return True

    async def start_recording(self, page: Page) -> bool:
        if not self.selectors.record_start:
            logger.warning("Recording controls are not configured for this platform")
            return False
        for sel in self.selectors.record_start:
            if not await self._click_first(page, [sel]):
                logger.warning(f"Recording step not found: {sel}")
                return False
            await asyncio.sleep(self.settle_delay_seconds)
        return True

    async def stop_recording(self, page: Page) -> bool:
        if not self.selectors.record_stop:
            logger.warning("Recording controls are not configured for this platform")
            return False
        for sel in self.selectors.record_stop:
            if not await self._click_first(page, [sel]):
                logger.warning(f"Stop-recording step not found: {sel}")
                return False
            await asyncio.sleep(self.settle_delay_seconds)
        return True

    async def leave(self, page: Page) -> bool:
        if self.selectors.leave and await self._click_first(page, self.selectors.leave):
            return True
        # No leave control: navigating away drops the call
        try:
            await page.goto("about:blank", timeout=self.page_load_timeout_ms)
            return True
        except Exception as e:
            logger.warning(f"Could not leave meeting page: {e}")
            return False

    async def is_in_meeting(self, page: Page) -> bool:
        if page.is_closed():
            return False
        if not self.selectors.in_meeting:
            return page.url not in ("", "about:blank")
        return await self._any_visible(page, self.selectors.in_meeting)


PLATFORMS: Dict[str, Type[MeetingPlatform]] = {
    SelectorMeetingPlatform.name: SelectorMeetingPlatform,
}


def get_platform_class(name: str) -> Type[MeetingPlatform]:
    """Look up a platform implementation by name."""
    try:
        return PLATFORMS[name]
    except KeyError:
        raise ValueError(f"Unknown meeting platform: {name!r} (available: {sorted(PLATFORMS)})")
