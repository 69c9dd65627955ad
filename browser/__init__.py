"""
Browser Automation Module - Playwright

Shared Chromium substrate, isolated per-job meeting workers and the
persisted sign-in session.

Environment Variables Used:
    HEADLESS - Run Chromium without a visible window (default: true)
    SESSION_DIR - Directory holding the saved storage state
"""

from .substrate import ChromiumSubstrate, LAUNCH_ARGS
from .platforms import (
    MeetingPlatform,
    PlatformSelectors,
    SelectorMeetingPlatform,
    get_platform_class,
)
from .meeting_worker import PlaywrightMeetingWorker, PlaywrightWorkerFactory
from .session_store import FileSessionStore


__all__ = [
    "ChromiumSubstrate",
    "LAUNCH_ARGS",
    "MeetingPlatform",
    "PlatformSelectors",
    "SelectorMeetingPlatform",
    "get_platform_class",
    "PlaywrightMeetingWorker",
    "PlaywrightWorkerFactory",
    "FileSessionStore",
]
