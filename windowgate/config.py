from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WINDOWGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_requests: int = Field(default=60, ge=0)
    window_millis: int = Field(default=60_000, ge=0)
    requests_per_second: int | None = Field(default=None, ge=0)
    allow_zero_quota: bool = Field(default=False)

    http_timeout_seconds: float = Field(default=20.0, gt=0)
    http_retry_attempts: int = Field(default=3, ge=1, le=10)
    http_retry_min_wait_seconds: float = Field(default=1.0, ge=0)
    http_retry_max_wait_seconds: float = Field(default=8.0, ge=0)

    @model_validator(mode="after")
    def apply_rate_override(self) -> "Settings":
        # A per-second rate replaces the explicit window pair.
        if self.requests_per_second is not None:
            self.max_requests = self.requests_per_second
            self.window_millis = 1000
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
