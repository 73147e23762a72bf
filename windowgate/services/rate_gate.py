"""Admission gate facades: ``N`` operations per fixed window of ``W`` ms.

``RateGate`` serves asyncio callers, ``BlockingRateGate`` serves threads.
Both drive the same ``WindowController``:

    gate = RateGate(max_requests=3, window_millis=1000)
    async with gate.admitted():
        await send_request()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any, TypeVar

from pydantic import ValidationError

from windowgate.config import Settings
from windowgate.errors import AdmissionTimeoutError, GateClosedError, GateConfigurationError
from windowgate.models.schemas import RateLimitConfig
from windowgate.services.admission_queue import AdmissionRequest
from windowgate.services.timers import AsyncioScheduler, Scheduler, ThreadScheduler
from windowgate.services.window_controller import WindowController, WindowState

logger = logging.getLogger(__name__)

_GateT = TypeVar("_GateT", bound="BaseRateGate")


class FutureAdmission(AdmissionRequest):
    def __init__(self, future: asyncio.Future[None]) -> None:
        super().__init__()
        self.future = future

    @property
    def abandoned(self) -> bool:
        return self.future.cancelled()

    def _on_admit(self) -> None:
        self.future.set_result(None)

    def _on_reject(self, exc: BaseException) -> None:
        self.future.set_exception(exc)


class EventAdmission(AdmissionRequest):
    def __init__(self) -> None:
        super().__init__()
        self.error: BaseException | None = None
        self._event = threading.Event()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def _on_admit(self) -> None:
        self._event.set()

    def _on_reject(self, exc: BaseException) -> None:
        self.error = exc
        self._event.set()


class BaseRateGate:
    """Configuration and completion handling shared by both gates."""

    def __init__(
        self,
        max_requests: int,
        window_millis: int,
        *,
        scheduler: Scheduler,
        allow_zero_quota: bool = False,
    ) -> None:
        self._allow_zero_quota = allow_zero_quota
        self._scheduler = scheduler
        self._controller = WindowController(scheduler, self._build_config(max_requests, window_millis))

    @classmethod
    def from_settings(cls: type[_GateT], settings: Settings, **kwargs: Any) -> _GateT:
        return cls(
            settings.max_requests,
            settings.window_millis,
            allow_zero_quota=settings.allow_zero_quota,
            **kwargs,
        )

    @property
    def config(self) -> RateLimitConfig:
        return self._controller.config

    @property
    def window_state(self) -> WindowState:
        return self._controller.state

    @property
    def pending(self) -> int:
        return self._controller.pending

    @property
    def closed(self) -> bool:
        return self._controller.closed

    def configure(self, max_requests: int, window_millis: int) -> None:
        config = self._build_config(max_requests, window_millis)
        self._controller.update_config(config)
        logger.info("Rate gate set to %d request(s) per %d ms", config.max_requests, config.window_millis)

    def configure_by_rate(self, requests_per_second: int) -> None:
        self.configure(requests_per_second, 1000)

    def current_rate(self) -> float:
        return self._controller.config.requests_per_second

    def notify_completion(self) -> None:
        """An admitted operation finished. Tries one more admission; quota is not restored."""
        self._controller.drain()

    def close(self) -> None:
        if self._controller.closed:
            return
        pending = self._controller.close(GateClosedError("Rate gate closed"))
        logger.info("Rate gate closed, rejected %d pending request(s)", len(pending))

    def _enqueue(self, request: AdmissionRequest) -> None:
        self._controller.enqueue(request)
        try:
            self._scheduler.defer(self._controller.drain)
        except RuntimeError:
            self._controller.cancel(request)
            raise

    def _build_config(self, max_requests: int, window_millis: int) -> RateLimitConfig:
        try:
            config = RateLimitConfig(max_requests=max_requests, window_millis=window_millis)
        except ValidationError as exc:
            raise GateConfigurationError(f"Invalid rate limit: {exc.errors()[0]['msg']}") from exc
        if config.max_requests == 0:
            if not self._allow_zero_quota:
                raise GateConfigurationError("max_requests=0 would never admit a request")
            logger.warning("Rate gate configured with max_requests=0; queued requests will wait indefinitely")
        return config


class RateGate(BaseRateGate):
    """Admission gate for coroutines; one gate may outlive successive event loops."""

    def __init__(
        self,
        max_requests: int,
        window_millis: int,
        *,
        scheduler: Scheduler | None = None,
        allow_zero_quota: bool = False,
    ) -> None:
        super().__init__(
            max_requests,
            window_millis,
            scheduler=scheduler if scheduler is not None else AsyncioScheduler(),
            allow_zero_quota=allow_zero_quota,
        )

    def submit(self) -> asyncio.Future[None]:
        """Queue a request now and return the future that resolves on admission.

        Cancelling the future removes the request from the queue.
        """
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        request = FutureAdmission(future)
        self._enqueue(request)
        future.add_done_callback(lambda f: self._controller.cancel(request) if f.cancelled() else None)
        return future

    async def request_admission(self) -> None:
        await self.submit()

    @asynccontextmanager
    async def admitted(self) -> AsyncIterator[None]:
        await self.request_admission()
        try:
            yield
        finally:
            self.notify_completion()

    async def __aenter__(self) -> RateGate:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class BlockingRateGate(BaseRateGate):
    """Admission gate for synchronous callers; ``acquire()`` blocks the thread."""

    def __init__(
        self,
        max_requests: int,
        window_millis: int,
        *,
        scheduler: Scheduler | None = None,
        allow_zero_quota: bool = False,
    ) -> None:
        super().__init__(
            max_requests,
            window_millis,
            scheduler=scheduler if scheduler is not None else ThreadScheduler(),
            allow_zero_quota=allow_zero_quota,
        )

    def acquire(self, timeout: float | None = None) -> bool:
        """Wait until admitted. Returns False if ``timeout`` seconds pass first."""
        request = EventAdmission()
        self._enqueue(request)
        if not request.wait(timeout):
            if self._controller.cancel(request):
                logger.debug("Admission wait timed out after %.3fs", timeout)
                return False
            # Admitted or rejected while we were giving up.
            request.wait()
        if request.error is not None:
            raise request.error
        return True

    def request_admission(self) -> None:
        self.acquire()

    @contextmanager
    def admitted(self, timeout: float | None = None) -> Iterator[None]:
        if not self.acquire(timeout):
            raise AdmissionTimeoutError(f"Not admitted within {timeout}s")
        try:
            yield
        finally:
            self.notify_completion()

    def __enter__(self) -> BlockingRateGate:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
