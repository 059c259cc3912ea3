# src/taskup/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the task engine in a background
thread, then runs the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..cli.engine import start_engine_in_background
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _install_signal_handlers(stop_main: threading.Event, *, console: bool) -> None:
    """
    Without the console, SIGINT/SIGTERM just release stop_main.
    With it, input() blocks the main thread, so both signals must raise
    KeyboardInterrupt there for the REPL to unwind.
    """

    def _handle_signal(signum, frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()
        if console:
            signal.default_int_handler(signum, frame)

    try:
        if console:
            signal.signal(signal.SIGINT, signal.default_int_handler)
        else:
            signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Some platforms may not support SIGTERM, etc.
        logger.debug("Signal handlers not installed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)

    engine = start_engine_in_background(state)
    if engine is None:
        logger.error("Task engine failed to start; exiting.")
        return

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()
    _install_signal_handlers(stop_main, console=settings.console_enabled)

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Engine running in background. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        engine.stop()
        engine.join(timeout=10.0)
        state.auth.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
