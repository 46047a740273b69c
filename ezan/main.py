#!/usr/bin/env python3
"""
Main entry point for the ezan service.

Usage:
    python -m ezan.main                    # Run the service
    python -m ezan.main --test-audio       # Play the test sound at startup
    python -m ezan.main --test-schedule 3  # Also fire a test announcement in 3 seconds
"""

import argparse
import signal
import sys
import threading
import time

from . import API_HOST, API_PORT, CONFIG_FILE, TEST
from .announcer import AnnouncementChain
from .config import ConfigStore
from .errors import StoreError
from .player import AudioPlayer
from .scheduler import DailyScheduleManager, create_scheduler

# Global manager reference for signal handler
_manager: DailyScheduleManager = None


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    print("\n[Ezan] Shutting down...")
    if _manager is not None:
        _manager.stop()
    sys.exit(0)


def _start_api(store, manager, host: str, port: int) -> threading.Thread:
    """Serve the settings endpoint from a background thread."""
    from app import create_app

    app = create_app(store, manager)
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": host, "port": port, "use_reloader": False},
        daemon=True,
    )
    thread.start()
    print(f"[API] Settings endpoint on http://{host}:{port}/settings")
    return thread


def main():
    """Main entry point."""
    global _manager

    parser = argparse.ArgumentParser(description="Ezan prayer-time announcer")
    parser.add_argument("--config", default=str(CONFIG_FILE), help="Settings JSON file")
    parser.add_argument("--host", default=API_HOST, help="Settings endpoint host")
    parser.add_argument("--port", type=int, default=API_PORT, help="Settings endpoint port")
    parser.add_argument("--no-api", action="store_true", help="Do not start the settings endpoint")
    parser.add_argument("--test-audio", action="store_true", help="Play the test sound at startup")
    parser.add_argument(
        "--test-schedule", type=float, metavar="SECONDS",
        help="Schedule a test announcement SECONDS from now",
    )
    args = parser.parse_args()

    # Set up signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    print("=" * 50)
    print("Ezan Service")
    print("=" * 50)

    store = ConfigStore(args.config)
    try:
        config = store.load()
    except StoreError as e:
        print(f"[Ezan] Failed to load config: {e}")
        sys.exit(1)

    print(f"Location: {config.latitude}, {config.longitude}")
    print(f"Method: {config.calculation_method} ({config.madhab})")
    print(f"Dua after adhan: {'enabled' if config.dua_enabled else 'disabled'}")
    print()

    announcer = AnnouncementChain(store, AudioPlayer())
    _manager = DailyScheduleManager(create_scheduler(), store, announcer)
    store.on_reload(_manager.force_rebuild)

    if args.test_audio:
        print("[Ezan] Testing audio output...")
        if announcer.play(TEST):
            print("[Ezan] Audio test successful")

    _manager.start()

    if args.test_schedule is not None:
        _manager.schedule_test(args.test_schedule)

    if not args.no_api:
        _start_api(store, _manager, args.host, args.port)

    print("Ezan service running. Press Ctrl+C to stop.")

    # Keep running
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        pass
    finally:
        _manager.stop()


if __name__ == "__main__":
    main()
