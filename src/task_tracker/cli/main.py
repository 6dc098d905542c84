# src/task_tracker/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads data, then runs the console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import print_notice, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings, notify=print_notice)
    try:
        await state.task_store.fetch_all()
        if state.task_store.last_load_error is not None:
            print_notice("Could not load data from the backend; starting with empty lists.")

        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled; nothing else to run.")
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(settings)

    logger.info("Starting %s (log file: %s)", settings.app_name, log_file)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
