"""
CLI entry point.

Commands:
- init: Initialize data directory and snapshot database
- status <session>: Show persisted tier counts for a session
- preview <session>: Print the payload that would be injected for a session

Flags:
- --debug: Enable debug logging to file
"""

import asyncio
import json
import logging
import sys

from recollect.core.config import Settings, get_settings
from recollect.core.logging import get_logger, setup_logging
from recollect.injection.coordinator import InjectionCoordinator
from recollect.memory.persistence import SQLiteKeyValueStore
from recollect.memory.session import SessionLifecycleController


def main() -> int:
    """Main entry point."""
    settings = get_settings()

    debug_mode = "--debug" in sys.argv
    if debug_mode:
        sys.argv.remove("--debug")

    log_level = logging.DEBUG if debug_mode else logging.INFO
    log_file = settings.data_dir / "recollect.log"
    setup_logging(level=log_level, log_file=log_file)
    logger = get_logger("cli")

    logger.info(f"Logging to {log_file}" + (" (debug mode)" if debug_mode else ""))

    if len(sys.argv) < 2:
        print("Usage: recollect [--debug] <command>")
        print("Commands: init, status <session>, preview <session>")
        print("Flags: --debug (enable debug logging to data/recollect.log)")
        return 1

    command = sys.argv[1]

    if command == "init":
        return asyncio.run(_init(settings))

    if command in ("status", "preview"):
        if len(sys.argv) < 3:
            print(f"Usage: recollect {command} <session>")
            return 1
        session_id = sys.argv[2]
        if command == "status":
            return asyncio.run(_status(settings, session_id))
        return asyncio.run(_preview(settings, session_id))

    print(f"Unknown command: {command}")
    return 1


async def _init(settings: Settings) -> int:
    """Create the data directory and snapshot schema."""
    store = SQLiteKeyValueStore(settings.db_path)
    await store.connect()
    await store.close()
    get_logger("cli").info(f"Initialized data directory: {settings.data_dir}")
    print(f"Created: {settings.db_path}")
    return 0


async def _restore(settings: Settings, store: SQLiteKeyValueStore, session_id: str):
    sessions = SessionLifecycleController(settings, store)
    await sessions.switch(session_id)
    return sessions


async def _status(settings: Settings, session_id: str) -> int:
    """Print tier counts of a persisted session."""
    store = SQLiteKeyValueStore(settings.db_path)
    try:
        await store.connect()
        sessions = await _restore(settings, store, session_id)
        print(f"Session: {session_id}")
        print(json.dumps(sessions.stats.to_dict(), indent=2))
    except Exception as e:
        get_logger("cli.status").error(f"Status failed: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1
    finally:
        await store.close()
    return 0


async def _preview(settings: Settings, session_id: str) -> int:
    """Print the formatted payload built from a persisted session."""
    store = SQLiteKeyValueStore(settings.db_path)
    try:
        await store.connect()
        sessions = await _restore(settings, store, session_id)
        coordinator = InjectionCoordinator(sessions, settings=settings)
        text = await coordinator.prepare()
        if not text:
            print("(nothing to inject)")
        else:
            print(text)
            print("-" * 40)
            print(f"{len(text)} chars (budget {settings.max_budget})")
    except Exception as e:
        get_logger("cli.preview").error(f"Preview failed: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1
    finally:
        await store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
