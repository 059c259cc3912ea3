# src/taskup/cli/engine.py

"""
Background event loop for the task engine.

Why a thread:
- console REPL is blocking (input()).
- the task engine (subscriptions, deadline monitor, elapsed tracker) is async
  and wants its own event loop that keeps ticking while the REPL waits.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState
from ..tasks.task_store import run_change_poller

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CALL_TIMEOUT = 30.0


async def _run_engine(state: AppState, stop_event: asyncio.Event) -> None:
    """
    init -> auth listener -> change poller -> wait for stop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - the active TaskSession (subscription + timers) is torn down here, on the loop
    """
    settings = state.settings
    state.controller.start()

    poller = asyncio.create_task(
        run_change_poller(
            state.store,
            interval_seconds=float(getattr(settings, "change_poll_seconds", 2.0)),
        ),
        name="taskup-change-poller",
    )
    logger.info("Task engine started.")

    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("Task engine cancelled.")
    finally:
        current = state.controller.current
        state.controller.close()
        if current is not None:
            with contextlib.suppress(Exception):
                await current.wait_closed()

        poller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await poller

        state.store.close()
        logger.info("Task engine stopped.")


@dataclass
class EngineRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def run(self, coro: Awaitable[T], timeout: float | None = DEFAULT_CALL_TIMEOUT) -> T:
        future = asyncio.run_coroutine_threadsafe(_as_coroutine(coro), self.loop)
        return future.result(timeout=timeout)

    def call(self, fn: Callable[..., T], *args: Any, timeout: float | None = DEFAULT_CALL_TIMEOUT) -> T:
        async def _call() -> T:
            return fn(*args)

        return self.run(_call(), timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Engine loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _as_coroutine(awaitable: Awaitable[T]) -> T:
    return await awaitable


def start_engine_in_background(state: AppState) -> EngineRunner | None:
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_engine(state, stop_event))
        except Exception:
            logger.exception("Task engine crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name="taskup-engine", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Engine thread did not initialize properly.")
        return None

    engine = EngineRunner(thread=t, loop=loop, stop_event=stop_event)
    state.engine = engine
    logger.info("Engine background thread started.")
    return engine
