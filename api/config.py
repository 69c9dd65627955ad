"""
Unified Configuration Module for Meet Attendant

All configuration settings are centralized here.
Import from this module: from api.config import config
"""

import os
from typing import List, Optional
from dataclasses import dataclass, field
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str = "", sep: str = ",") -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(sep) if item.strip()]


@dataclass
class AppConfig:
    """Unified application configuration."""

    # === Server Settings ===
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))
    DEBUG: bool = _env_bool("DEBUG", "false")

    # === Browser ===
    HEADLESS: bool = _env_bool("HEADLESS", "true")
    MAX_CONCURRENT_SESSIONS: int = int(os.getenv("MAX_CONCURRENT_SESSIONS", "3"))
    MEETING_PLATFORM: str = os.getenv("MEETING_PLATFORM", "selector")

    # Timeouts (in milliseconds)
    PAGE_LOAD_TIMEOUT_MS: int = int(os.getenv("PAGE_LOAD_TIMEOUT_MS", "60000"))
    ELEMENT_TIMEOUT_MS: int = int(os.getenv("ELEMENT_TIMEOUT_MS", "30000"))
    MEETING_JOIN_TIMEOUT_MS: int = int(os.getenv("MEETING_JOIN_TIMEOUT_MS", "60000"))

    # === Job lifecycle ===
    RECORDING_START_DELAY_SECONDS: float = float(os.getenv("RECORDING_START_DELAY_SECONDS", "5.0"))
    LIVENESS_ENABLED: bool = _env_bool("LIVENESS_ENABLED", "true")
    LIVENESS_POLL_SECONDS: float = float(os.getenv("LIVENESS_POLL_SECONDS", "15.0"))

    # === Meeting targets ===
    # Empty list accepts any http(s) host
    ALLOWED_MEETING_HOSTS: List[str] = field(
        default_factory=lambda: _env_list("ALLOWED_MEETING_HOSTS", "meet.google.com")
    )

    # === Platform selectors ('||'-separated lists) ===
    JOIN_SELECTOR: str = os.getenv("JOIN_SELECTOR", "")
    IN_MEETING_SELECTOR: str = os.getenv("IN_MEETING_SELECTOR", "")
    LEAVE_SELECTOR: str = os.getenv("LEAVE_SELECTOR", "")
    RECORD_START_SELECTORS: str = os.getenv("RECORD_START_SELECTORS", "")
    RECORD_STOP_SELECTORS: str = os.getenv("RECORD_STOP_SELECTORS", "")
    DISMISS_SELECTOR: str = os.getenv("DISMISS_SELECTOR", "")

    # === Session persistence ===
    SESSION_DIR: str = os.getenv("SESSION_DIR", os.path.join(os.getcwd(), "sessions"))
    SESSION_FILE: str = os.getenv("SESSION_FILE", "session.json")
    SESSION_COOKIE_DOMAIN: Optional[str] = os.getenv("SESSION_COOKIE_DOMAIN") or None
    SESSION_REQUIRED_COOKIES: List[str] = field(
        default_factory=lambda: _env_list("SESSION_REQUIRED_COOKIES")
    )
    REQUIRE_SESSION: bool = _env_bool("REQUIRE_SESSION", "true")
    LOGIN_URL: str = os.getenv("LOGIN_URL", "https://accounts.google.com")

    # === Paths ===
    LOG_DIR: str = os.getenv("LOG_DIR", "./logs")

    def is_allowed_meeting_url(self, url: str) -> bool:
        """Check scheme and host of a meeting URL."""
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return False
        if not self.ALLOWED_MEETING_HOSTS:
            return True
        host = parsed.hostname.lower()
        return any(host == h.lower() or host.endswith("." + h.lower()) for h in self.ALLOWED_MEETING_HOSTS)

    def validate(self) -> List[str]:
        """Validate configuration and return a list of problems."""
        problems = []

        if self.MAX_CONCURRENT_SESSIONS < 1:
            problems.append("MAX_CONCURRENT_SESSIONS must be at least 1")
        if not 1 <= self.PORT <= 65535:
            problems.append("PORT must be between 1 and 65535")
        if self.LIVENESS_POLL_SECONDS <= 0:
            problems.append("LIVENESS_POLL_SECONDS must be positive")
        if self.RECORDING_START_DELAY_SECONDS < 0:
            problems.append("RECORDING_START_DELAY_SECONDS must not be negative")

        if self.REQUIRE_SESSION:
            session_path = os.path.join(self.SESSION_DIR, self.SESSION_FILE)
            if not os.path.exists(session_path):
                problems.append(f"No saved session at {session_path} (run: python main.py login)")

        return problems


# Global config instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the application configuration."""
    return config
