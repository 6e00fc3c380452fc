"""Utilities to execute coroutines on the main asyncio loop from sync contexts.

Flask views are synchronous while the repositories are async; views hand
their coroutines to a single long-lived loop running in a daemon thread so
the aiosqlite pool always lives on one loop.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Awaitable, Optional, TypeVar


_loop: Optional[asyncio.AbstractEventLoop] = None
_thread: Optional[threading.Thread] = None
T = TypeVar("T")


def set_main_loop(loop: Optional[asyncio.AbstractEventLoop]) -> None:
    global _loop
    _loop = loop


def start_background_loop() -> asyncio.AbstractEventLoop:
    """Start (once) an event loop in a daemon thread and make it the main loop."""
    global _thread
    if _loop is not None and _loop.is_running():
        return _loop

    loop = asyncio.new_event_loop()
    _thread = threading.Thread(target=loop.run_forever, name="async-runner", daemon=True)
    _thread.start()
    set_main_loop(loop)
    return loop


def stop_background_loop() -> None:
    global _thread
    if _loop is None:
        return
    _loop.call_soon_threadsafe(_loop.stop)
    if _thread is not None:
        _thread.join(timeout=5)
        _thread = None
    _loop.close()
    set_main_loop(None)


def run_coroutine_sync(coro: Awaitable[T]) -> T:
    if _loop is None:
        raise RuntimeError("Asyncio loop is not initialized")
    future = asyncio.run_coroutine_threadsafe(coro, _loop)
    return future.result()
