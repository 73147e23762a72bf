"""Shared retry policy for gated HTTP calls."""

from __future__ import annotations

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential


def build_request_retry(attempts: int = 3, min_wait: float = 1.0, max_wait: float = 8.0) -> Retrying:
    return Retrying(
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
