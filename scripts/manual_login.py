#!/usr/bin/env python3
"""
Manual Login Script

Opens a visible browser window so a person can sign in by hand (automated
sign-in trips bot detection). Once they confirm in the terminal, the
browser's storage state is saved for the worker pool to reuse.

Usage:
    python scripts/manual_login.py
    python scripts/manual_login.py --url https://accounts.google.com
"""

import sys
import asyncio
import argparse
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.config import AppConfig, get_config
from api.services import build_session_store
from browser import ChromiumSubstrate
from browser.meeting_worker import DEFAULT_USER_AGENT, DEFAULT_VIEWPORT


async def manual_login(cfg: AppConfig, login_url: str) -> bool:
    """Run the interactive sign-in. Returns True if a valid session was saved."""
    store = build_session_store(cfg)

    print("🔐 Manual Login")
    print("=" * 40)

    if store.has_valid_session():
        print("✅ Already logged in! Session is valid.")
        print("\nYou can start the bot with: python main.py server")
        return True

    print("\nA browser window will open. Sign in, then come back here.\n")

    substrate = ChromiumSubstrate(headless=False)
    await substrate.start()
    try:
        context = await substrate.browser.new_context(
            viewport=DEFAULT_VIEWPORT,
            user_agent=DEFAULT_USER_AGENT,
        )
        page = await context.new_page()
        await page.goto(login_url, wait_until="domcontentloaded", timeout=cfg.PAGE_LOAD_TIMEOUT_MS)

        await asyncio.to_thread(input, "Press Enter once you are signed in... ")

        store.save(await context.storage_state())
        await context.close()
    finally:
        await substrate.close()

    if store.has_valid_session():
        print("\n✅ Login successful! Session saved.")
        print("\nYou can now start the bot with: python main.py server")
        return True

    print("\n❌ No valid session cookies were captured. Please try again.")
    return False


def main():
    cfg = get_config()
    parser = argparse.ArgumentParser(description="Sign in manually and save the browser session")
    parser.add_argument("--url", default=cfg.LOGIN_URL, help="Sign-in page to open")
    args = parser.parse_args()

    ok = asyncio.run(manual_login(cfg, args.url))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
