from __future__ import annotations

import pytest

from windowgate.config import get_settings
from windowgate.services.admission_queue import AdmissionRequest


class ManualTimer:
    def __init__(self, scheduler: ManualScheduler, due: int, callback, keep_alive: bool) -> None:
        self.scheduler = scheduler
        self.due = due
        self.stranded = False
        self.callback = callback
        self.keep_alive = keep_alive
        self.cancelled = False
        self.fired = False

    @property
    def remaining_millis(self) -> int:
        return max(0, self.due - self.scheduler.now)

    def cancel(self) -> None:
        self.cancelled = True

    def set_keep_alive(self, keep_alive: bool) -> None:
        self.keep_alive = keep_alive


class ManualScheduler:
    """Scheduler driven by the test: nothing runs until asked to."""

    def __init__(self) -> None:
        self.now = 0
        self.deferred: list = []
        self.timers: list[ManualTimer] = []

    def defer(self, callback) -> None:
        self.deferred.append(callback)

    def schedule_once(self, delay_millis: int, callback, *, keep_alive: bool = True) -> ManualTimer:
        timer = ManualTimer(self, self.now + delay_millis, callback, keep_alive)
        self.timers.append(timer)
        return timer

    @property
    def pending_timers(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired and not t.stranded]

    def run_deferred(self) -> None:
        while self.deferred:
            self.deferred.pop(0)()

    def advance(self, millis: int) -> None:
        target = self.now + millis
        while True:
            due = [t for t in self.pending_timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            timer.fired = True
            timer.callback()
            self.run_deferred()
        self.now = target


class RecordingAdmission(AdmissionRequest):
    """Request that appends itself to a shared log when admitted."""

    def __init__(self, name: str, log: list, clock: ManualScheduler | None = None) -> None:
        super().__init__()
        self.name = name
        self.log = log
        self.clock = clock
        self.admitted_at: int | None = None
        self.error: BaseException | None = None
        self.gave_up = False

    @property
    def abandoned(self) -> bool:
        return self.gave_up

    def _on_admit(self) -> None:
        self.admitted_at = self.clock.now if self.clock is not None else None
        self.log.append(self.name)

    def _on_reject(self, exc: BaseException) -> None:
        self.error = exc


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
