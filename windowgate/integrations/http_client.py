from __future__ import annotations

import logging
from typing import Any

import requests

from windowgate.config import Settings, get_settings
from windowgate.services.rate_gate import BlockingRateGate
from windowgate.utils.retry import build_request_retry

logger = logging.getLogger(__name__)


class GatedHTTPClient:
    """``requests`` session whose every attempt passes through a rate gate.

    Admission is requested before each send and completion is reported after
    each attempt whatever its outcome, so retries are throttled as well.
    """

    def __init__(
        self,
        gate: BlockingRateGate,
        session: requests.Session | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._gate = gate
        self._session = session or requests.Session()
        self._timeout = settings.http_timeout_seconds
        self._retrying = build_request_retry(
            attempts=settings.http_retry_attempts,
            min_wait=settings.http_retry_min_wait_seconds,
            max_wait=settings.http_retry_max_wait_seconds,
        )

    @property
    def gate(self) -> BlockingRateGate:
        return self._gate

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self._timeout)
        return self._retrying.copy()(self._send, method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        self._session.close()

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        with self._gate.admitted():
            try:
                response = self._session.request(method, url, **kwargs)
                response.raise_for_status()
            except requests.RequestException as exc:
                logger.warning("%s %s failed: %s", method, url, exc)
                raise
        return response
