"""Fixed-window admission bookkeeping and the drain procedure."""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass

from windowgate.errors import GateClosedError
from windowgate.models.schemas import RateLimitConfig
from windowgate.services.admission_queue import AdmissionQueue, AdmissionRequest
from windowgate.services.timers import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


@dataclass
class WindowState:
    admitted_count: int = 0
    timer_active: bool = False


class WindowController:
    """Owns the window counter, the reset timer and the pending queue.

    ``drain()`` is called on enqueue, on completion and when the window timer
    fires. Each call admits at most one queued request. All mutation happens
    under one re-entrant lock, so timer threads, caller threads and event loop
    callbacks are serialized the same way.
    """

    def __init__(self, scheduler: Scheduler, config: RateLimitConfig, queue: AdmissionQueue | None = None) -> None:
        self._scheduler = scheduler
        self._config = config
        self._queue = queue if queue is not None else AdmissionQueue()
        self._state = WindowState()
        self._timer: TimerHandle | None = None
        self._lock = threading.RLock()
        self._closed = False

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def state(self) -> WindowState:
        with self._lock:
            return dataclasses.replace(self._state)

    @property
    def pending(self) -> int:
        with self._lock:
            return self._queue.size()

    @property
    def closed(self) -> bool:
        return self._closed

    def update_config(self, config: RateLimitConfig) -> None:
        with self._lock:
            self._config = config

    def enqueue(self, request: AdmissionRequest) -> None:
        with self._lock:
            if self._closed:
                raise GateClosedError("Rate gate closed")
            self._queue.enqueue(request)

    def cancel(self, request: AdmissionRequest) -> bool:
        """Drop a request that has not been admitted. False if it already was."""
        with self._lock:
            if not request.cancel() and not request.abandoned:
                return False
            removed = self._queue.remove(request)
        if removed:
            logger.debug("Cancelled pending admission request")
        return True

    def drain(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._discard_abandoned()
            if self._queue.size() == 0:
                return
            self._rearm_stranded_timer()

            config = self._config
            if self._state.admitted_count >= config.max_requests:
                # Saturated: the reset timer now has to fire on its own.
                if self._timer is not None:
                    self._timer.set_keep_alive(True)
                logger.debug(
                    "Window saturated (%d/%d), %d request(s) waiting",
                    self._state.admitted_count,
                    config.max_requests,
                    self._queue.size(),
                )
                return

            request = self._queue.dequeue_front()
            if self._state.admitted_count == 0 and self._timer is None:
                self._arm_timer(config.window_millis, keep_alive=self._queue.size() > 0)
            self._state.admitted_count += 1
            request.admit()

    def close(self, exc: BaseException) -> list[AdmissionRequest]:
        """Stop the window timer and reject everything still queued."""
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._state.timer_active = False
            pending = self._queue.clear()
            for request in pending:
                request.reject(exc)
        return pending

    def _arm_timer(self, window_millis: int, keep_alive: bool) -> None:
        self._timer = self._scheduler.schedule_once(window_millis, self._on_window_reset, keep_alive=keep_alive)
        self._state.timer_active = True

    def _on_window_reset(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._timer = None
            self._state.timer_active = False
            self._state.admitted_count = 0
            logger.debug("Window reset, %d request(s) waiting", self._queue.size())
            self.drain()

    def _rearm_stranded_timer(self) -> None:
        # A timer whose event loop closed will never fire; carry the window over.
        timer = self._timer
        if timer is None or not timer.stranded:
            return
        try:
            self._timer = self._scheduler.schedule_once(
                timer.remaining_millis, self._on_window_reset, keep_alive=timer.keep_alive
            )
        except RuntimeError:
            logger.debug("No running event loop to re-arm the window timer on")
            return
        logger.debug("Re-armed window timer, %d ms left", timer.remaining_millis)

    def _discard_abandoned(self) -> None:
        head = self._queue.peek_front()
        while head is not None and (head.abandoned or head.settled):
            self._queue.dequeue_front()
            head = self._queue.peek_front()
