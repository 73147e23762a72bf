from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from windowgate.errors import UndefinedRateError


class RateLimitConfig(BaseModel):
    """Quota of ``max_requests`` admissions per ``window_millis`` window.

    Instances are frozen so a drain always reads one consistent pair.
    """

    model_config = ConfigDict(frozen=True)

    max_requests: int = Field(default=1, ge=0)
    window_millis: int = Field(default=1000, ge=0)

    @property
    def requests_per_second(self) -> float:
        if self.window_millis == 0:
            raise UndefinedRateError("Requests per second is undefined for a zero-length window")
        return self.max_requests / (self.window_millis / 1000)
