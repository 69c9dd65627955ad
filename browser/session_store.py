#!/usr/bin/env python3
"""
File-backed session store.

Keeps one Playwright storage-state blob (cookies + localStorage) per
deployment so new workers start already signed in.
"""

import json
import logging
import time
from pathlib import Path
from typing import Iterable, Optional

from core.interfaces import SessionStore, StorageState

logger = logging.getLogger(__name__)


class FileSessionStore(SessionStore):
    """
    JSON storage-state file under a session directory.

    A session is valid when it holds at least one unexpired cookie,
    optionally restricted to `cookie_domain` and to `required_cookies`
    (any one of the names is enough).
    """

    def __init__(
        self,
        session_dir: str,
        filename: str = "session.json",
        cookie_domain: Optional[str] = None,
        required_cookies: Iterable[str] = (),
    ):
        self.session_dir = Path(session_dir)
        self.session_file = self.session_dir / filename
        self.cookie_domain = (cookie_domain or "").strip() or None
        self.required_cookies = {name for name in required_cookies if name}

    def _read(self) -> Optional[StorageState]:
        if not self.session_file.exists():
            return None
        try:
            with open(self.session_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading session file {self.session_file}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def _cookie_is_live(self, cookie: dict, now: float) -> bool:
        if self.cookie_domain and self.cookie_domain not in str(cookie.get("domain", "")):
            return False
        if self.required_cookies and cookie.get("name") not in self.required_cookies:
            return False
        expires = cookie.get("expires", -1)
        # Playwright uses -1 for session cookies
        return expires is None or expires == -1 or expires > now

    def has_valid_session(self) -> bool:
        data = self._read()
        if not data:
            return False
        cookies = data.get("cookies") or []
        now = time.time()
        return any(self._cookie_is_live(c, now) for c in cookies if isinstance(c, dict))

    def load(self) -> Optional[StorageState]:
        return self._read()

    def save(self, state: StorageState):
        self.session_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.session_file.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2)
        tmp_path.replace(self.session_file)
        logger.info(f"Session saved to {self.session_file}")

    def clear(self):
        if self.session_file.exists():
            self.session_file.unlink()
            logger.info("Session cleared")
