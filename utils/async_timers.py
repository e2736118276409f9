"""
Timer helpers for the event loop: debouncing and armed confirmations.
"""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

Callback = Callable[[], Union[None, Awaitable[None]]]


class Debouncer:
    """
    Coalesces bursts of calls into a single callback run after `delay` seconds
    of quiet. A delay of 0 runs the callback on the next loop iteration.
    """

    def __init__(self, delay: float, callback: Callback):
        self.delay = max(0.0, float(delay))
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """(Re)start the quiet window. Must be called from inside a running loop."""
        loop = asyncio.get_running_loop()
        self.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def flush(self) -> None:
        """Run a pending callback immediately."""
        if self._handle is None:
            return
        self.cancel()
        await self._run()

    async def wait(self) -> None:
        """Wait until the last scheduled callback has finished."""
        if self._task is not None:
            await self._task

    def _fire(self) -> None:
        self._handle = None
        self._task = asyncio.ensure_future(self._run())

    async def _run(self) -> None:
        result = self._callback()
        if inspect.isawaitable(result):
            await result


class ConfirmationGate:
    """
    Two-phase confirmation: the first `request()` arms the gate and returns
    False; a second `request()` before `timeout` seconds elapse returns True
    and disarms it. An armed gate expires on its own.
    """

    def __init__(self, timeout: float, on_expire: Optional[Callable[[], Any]] = None):
        self.timeout = float(timeout)
        self._on_expire = on_expire
        self._handle: Optional[asyncio.TimerHandle] = None
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def request(self) -> bool:
        if self._armed:
            self.reset()
            return True
        self._arm()
        return False

    def reset(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._armed = False

    def _arm(self) -> None:
        self._armed = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Without a loop the gate stays armed until reset or confirmed
            return
        self._handle = loop.call_later(self.timeout, self._expire)

    def _expire(self) -> None:
        self._handle = None
        self._armed = False
        if self._on_expire is not None:
            self._on_expire()
