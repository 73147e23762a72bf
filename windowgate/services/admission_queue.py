from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque


class AdmissionRequest(ABC):
    """One caller waiting for permission to proceed.

    The continuation fires at most once: either ``admit()`` or ``reject()``
    settles it, and a cancelled request can no longer be settled at all.
    Subclasses bind the continuation to a concrete waiter.
    """

    def __init__(self) -> None:
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def abandoned(self) -> bool:
        """True when the caller stopped waiting before being admitted."""
        return False

    def admit(self) -> bool:
        if self._settled or self.abandoned:
            return False
        self._settled = True
        self._on_admit()
        return True

    def reject(self, exc: BaseException) -> bool:
        if self._settled or self.abandoned:
            return False
        self._settled = True
        self._on_reject(exc)
        return True

    def cancel(self) -> bool:
        if self._settled:
            return False
        self._settled = True
        return True

    @abstractmethod
    def _on_admit(self) -> None: ...

    @abstractmethod
    def _on_reject(self, exc: BaseException) -> None: ...


class AdmissionQueue:
    """Unbounded FIFO of pending admission requests."""

    def __init__(self) -> None:
        self._items: deque[AdmissionRequest] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def size(self) -> int:
        return len(self._items)

    def enqueue(self, request: AdmissionRequest) -> None:
        self._items.append(request)

    def dequeue_front(self) -> AdmissionRequest | None:
        if not self._items:
            return None
        return self._items.popleft()

    def peek_front(self) -> AdmissionRequest | None:
        return self._items[0] if self._items else None

    def remove(self, request: AdmissionRequest) -> bool:
        try:
            self._items.remove(request)
        except ValueError:
            return False
        return True

    def clear(self) -> list[AdmissionRequest]:
        drained = list(self._items)
        self._items.clear()
        return drained
