# src/taskkeeper/cli/main.py

"""
CLI entrypoint.

Initializes logging, loads the task service from the configured storage,
then runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state, save_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..errors import PersistenceError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Final save when autosave is off; failures are reported, not raised."""
    if getattr(state.settings, "autosave", True):
        return
    try:
        save_state(state)
        logger.info("Saved tasks on exit.")
    except PersistenceError as e:
        logger.error("Failed to save tasks on exit: %s", e)
        print(f"Failed to save tasks: {e}", file=sys.stderr)


def main() -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except PersistenceError as e:
        # Nothing was overwritten; leave the broken file for the user to inspect.
        logger.error("Cannot load saved tasks: %s", e)
        print(f"Cannot load saved tasks: {e}", file=sys.stderr)
        return 1

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
