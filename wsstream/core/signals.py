"""
One-shot Signals - Stop and completion coordination
===================================================
Single-assignment signals shared between the caller and the session tasks.
"""

import asyncio
import signal
import threading
from typing import Optional


class OneShotSignal:
    """
    Signal that can be set exactly once and observed by any number of tasks.

    Setting it again is a no-op. Setting it from a thread other than the one
    running the owning event loop is forwarded with call_soon_threadsafe.
    """

    def __init__(self, name: str = "signal"):
        self.name = name
        self._event = asyncio.Event()
        self._requested = False
        self._lock = threading.Lock()
        try:
            self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    def set(self) -> bool:
        """Set the signal. Returns True only for the call that actually set it."""
        with self._lock:
            if self._requested:
                return False
            self._requested = True

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if self._loop is not None and running is not self._loop and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._event.set)
        else:
            self._event.set()
        return True

    def is_set(self) -> bool:
        return self._requested

    async def wait(self) -> None:
        self._bind_loop()
        await self._event.wait()

    async def wait_for(self, timeout: float) -> bool:
        """Wait up to timeout seconds. Returns True if the signal was set."""
        if self._requested:
            return True
        self._bind_loop()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return self._requested
        return True

    def _bind_loop(self) -> None:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

    def __repr__(self) -> str:
        return f"OneShotSignal(name={self.name!r}, set={self._requested})"


def install_signal_handlers(stop_signal: OneShotSignal) -> None:
    """Route SIGINT/SIGTERM on the running loop to stop_signal.set()."""
    loop = asyncio.get_running_loop()

    def signal_handler(signum: int) -> None:
        print(f"\n[SHUTDOWN] Signal {signum} received")
        stop_signal.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            # Windows event loops
            signal.signal(signum, lambda s, _frame: loop.call_soon_threadsafe(signal_handler, s))
