from __future__ import annotations

import threading
import time

import pytest

from windowgate.errors import AdmissionTimeoutError, GateClosedError
from windowgate.services.rate_gate import BlockingRateGate


class TestBlockingRateGate:
    def test_within_quota_passes_immediately(self) -> None:
        with BlockingRateGate(5, 1000) as gate:
            start = time.monotonic()
            for _ in range(5):
                assert gate.acquire(timeout=1.0) is True
            assert time.monotonic() - start < 0.5
            assert gate.window_state.admitted_count == 5

    def test_saturated_window_times_out_and_cleans_up(self) -> None:
        with BlockingRateGate(2, 10_000) as gate:
            gate.acquire()
            gate.acquire()

            assert gate.acquire(timeout=0.05) is False
            assert gate.pending == 0
            assert gate.window_state.admitted_count == 2

    def test_window_reset_spaces_admissions(self) -> None:
        with BlockingRateGate(1, 100) as gate:
            start = time.monotonic()
            for _ in range(3):
                assert gate.acquire(timeout=2.0) is True
            # The third admission needs two window resets.
            assert time.monotonic() - start >= 0.18

    def test_concurrent_callers_respect_quota(self) -> None:
        admitted: list[float] = []
        lock = threading.Lock()

        with BlockingRateGate(3, 200) as gate:

            def worker() -> None:
                if gate.acquire(timeout=0.1):
                    with lock:
                        admitted.append(time.monotonic())

            threads = [threading.Thread(target=worker) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert len(admitted) == 3

    def test_close_wakes_blocked_caller(self) -> None:
        gate = BlockingRateGate(1, 10_000)
        gate.acquire()
        closer = threading.Timer(0.05, gate.close)
        closer.start()

        with pytest.raises(GateClosedError):
            gate.acquire(timeout=2.0)
        closer.join()
        with pytest.raises(GateClosedError):
            gate.acquire()

    def test_admitted_context_times_out(self) -> None:
        with BlockingRateGate(1, 10_000) as gate:
            with gate.admitted():
                pass
            with pytest.raises(AdmissionTimeoutError):
                with gate.admitted(timeout=0.05):
                    pass
