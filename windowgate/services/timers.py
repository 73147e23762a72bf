"""Deferred-callback primitives the window controller runs on.

A ``Scheduler`` offers two things: ``defer`` (run a callback soon, never on
the caller's stack) and ``schedule_once`` (run a callback after a delay,
cancellable). Timer handles carry a keep-alive flag: when False the pending
timer should not by itself hold the runtime open. Runtimes that cannot express
that only record the flag.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable, Protocol

Callback = Callable[[], None]


class TimerHandle(Protocol):
    @property
    def keep_alive(self) -> bool: ...

    @property
    def stranded(self) -> bool: ...

    @property
    def remaining_millis(self) -> int: ...

    def cancel(self) -> None: ...

    def set_keep_alive(self, keep_alive: bool) -> None: ...


class Scheduler(Protocol):
    def defer(self, callback: Callback) -> None: ...

    def schedule_once(self, delay_millis: int, callback: Callback, *, keep_alive: bool = True) -> TimerHandle: ...


class AsyncioTimerHandle:
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        handle: asyncio.TimerHandle,
        delay_millis: int,
        keep_alive: bool,
    ) -> None:
        self._loop = loop
        self._handle = handle
        self._deadline = time.monotonic() + delay_millis / 1000
        self._keep_alive = keep_alive

    @property
    def keep_alive(self) -> bool:
        return self._keep_alive

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()

    @property
    def stranded(self) -> bool:
        """The owning loop closed before the timer could fire."""
        return self._loop.is_closed() and not self._handle.cancelled()

    @property
    def remaining_millis(self) -> int:
        return max(0, int((self._deadline - time.monotonic()) * 1000))

    def cancel(self) -> None:
        self._handle.cancel()

    def set_keep_alive(self, keep_alive: bool) -> None:
        # The event loop does not count pending timers, so this is bookkeeping only.
        self._keep_alive = keep_alive


class AsyncioScheduler:
    """Runs callbacks on an asyncio event loop.

    Without an explicit loop every call goes to the loop running at that
    moment, so one scheduler can serve successive ``asyncio.run`` calls.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def defer(self, callback: Callback) -> None:
        self.loop.call_soon(callback)

    def schedule_once(self, delay_millis: int, callback: Callback, *, keep_alive: bool = True) -> AsyncioTimerHandle:
        loop = self.loop
        handle = loop.call_later(delay_millis / 1000, callback)
        return AsyncioTimerHandle(loop, handle, delay_millis, keep_alive)


class ThreadTimerHandle:
    """One-shot ``threading.Timer`` whose daemon flag follows keep-alive.

    A thread's daemon flag is fixed once it starts, so turning keep-alive on
    or off re-arms a fresh timer for whatever delay remains.
    """

    def __init__(self, delay_millis: int, callback: Callback, keep_alive: bool) -> None:
        self._deadline = time.monotonic() + delay_millis / 1000
        self._callback = callback
        self._keep_alive = keep_alive
        self._lock = threading.Lock()
        self._fired = False
        self._cancelled = False
        self._timer: threading.Timer | None = None
        with self._lock:
            self._start()

    @property
    def keep_alive(self) -> bool:
        return self._keep_alive

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def stranded(self) -> bool:
        return False

    @property
    def remaining_millis(self) -> int:
        return max(0, int((self._deadline - time.monotonic()) * 1000))

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()

    def set_keep_alive(self, keep_alive: bool) -> None:
        with self._lock:
            if keep_alive == self._keep_alive or self._fired or self._cancelled:
                return
            self._keep_alive = keep_alive
            if self._timer is not None:
                self._timer.cancel()
            self._start()

    def _start(self) -> None:
        remaining = max(0.0, self._deadline - time.monotonic())
        timer = threading.Timer(remaining, self._fire)
        timer.daemon = not self._keep_alive
        self._timer = timer
        timer.start()

    def _fire(self) -> None:
        with self._lock:
            if self._fired or self._cancelled:
                return
            self._fired = True
        self._callback()


class ThreadScheduler:
    def defer(self, callback: Callback) -> None:
        threading.Thread(target=callback, name="windowgate-drain", daemon=True).start()

    def schedule_once(self, delay_millis: int, callback: Callback, *, keep_alive: bool = True) -> ThreadTimerHandle:
        return ThreadTimerHandle(delay_millis, callback, keep_alive)
