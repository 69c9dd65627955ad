#!/usr/bin/env python3
"""
Meet Attendant - Main Entry Point

Usage:
    # Run API server
    python main.py server

    # Sign in once in a visible browser and save the session
    python main.py login

    # Check configuration
    python main.py check
"""

import sys
import asyncio
import argparse
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def check_environment() -> bool:
    """Report configuration problems."""
    from api.config import get_config

    problems = get_config().validate()
    if problems:
        print("❌ Configuration problems:")
        for problem in problems:
            print(f"  - {problem}")
        return False

    print("✅ Configuration looks good")
    return True


def run_server(host: str, port: int, reload: bool = False):
    """Run the FastAPI server."""
    import uvicorn

    print(f"🚀 Starting Meet Attendant on {host}:{port}")
    uvicorn.run(
        "api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


def main():
    """Main entry point."""
    from api.config import get_config

    cfg = get_config()
    parser = argparse.ArgumentParser(
        description="Meet Attendant - scheduled meeting bot"
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Server command
    server_parser = subparsers.add_parser('server', help='Run API server')
    server_parser.add_argument('--host', default=cfg.HOST, help='Host to bind to')
    server_parser.add_argument('--port', type=int, default=cfg.PORT, help='Port to bind to')
    server_parser.add_argument('--reload', action='store_true', help='Enable auto-reload')

    # Login command
    login_parser = subparsers.add_parser('login', help='Sign in manually and save the session')
    login_parser.add_argument('--url', default=cfg.LOGIN_URL, help='Sign-in page to open')

    # Check command
    subparsers.add_parser('check', help='Validate configuration')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command == 'server':
        if not check_environment():
            logger.warning("Starting anyway; jobs may be rejected until the problems are fixed")
        run_server(args.host, args.port, args.reload)

    elif args.command == 'login':
        from scripts.manual_login import manual_login
        ok = asyncio.run(manual_login(cfg, args.url))
        sys.exit(0 if ok else 1)

    elif args.command == 'check':
        sys.exit(0 if check_environment() else 1)


if __name__ == "__main__":
    main()
