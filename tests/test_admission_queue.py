from __future__ import annotations

import pytest
from conftest import RecordingAdmission

from windowgate.services.admission_queue import AdmissionQueue, AdmissionRequest


def _requests(n: int, log: list) -> list[RecordingAdmission]:
    return [RecordingAdmission(f"r{i}", log) for i in range(n)]


def test_queue_is_fifo() -> None:
    queue = AdmissionQueue()
    first, second, third = _requests(3, [])
    for req in (first, second, third):
        queue.enqueue(req)

    assert queue.size() == 3
    assert queue.dequeue_front() is first
    assert queue.dequeue_front() is second
    assert queue.dequeue_front() is third
    assert queue.dequeue_front() is None


def test_remove_targets_one_entry() -> None:
    queue = AdmissionQueue()
    first, second, third = _requests(3, [])
    for req in (first, second, third):
        queue.enqueue(req)

    assert queue.remove(second) is True
    assert queue.remove(second) is False
    assert len(queue) == 2
    assert queue.clear() == [first, third]
    assert queue.size() == 0


def test_request_settles_only_once() -> None:
    log: list = []
    req = RecordingAdmission("only", log)

    assert req.admit() is True
    assert req.admit() is False
    assert req.reject(RuntimeError("late")) is False
    assert req.cancel() is False
    assert log == ["only"]
    assert req.error is None


def test_cancelled_request_cannot_be_admitted() -> None:
    log: list = []
    req = RecordingAdmission("gone", log)

    assert req.cancel() is True
    assert req.admit() is False
    assert log == []


def test_bare_request_cannot_be_built() -> None:
    with pytest.raises(TypeError):
        AdmissionRequest()
