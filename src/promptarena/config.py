from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from promptarena.client import OPENROUTER_BASE

DEFAULT_CONCURRENCY = 3
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_PRICING_TTL_SECONDS = 600.0
DEFAULT_PRICING_TIMEOUT_SECONDS = 10.0


class Settings(BaseSettings):
    openrouter_api_key: str = ""
    base_url: str = OPENROUTER_BASE
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=1)
    pricing_ttl_seconds: float = Field(default=DEFAULT_PRICING_TTL_SECONDS, ge=0)
    pricing_timeout_seconds: float = Field(default=DEFAULT_PRICING_TIMEOUT_SECONDS, gt=0)
    results_dir: Path = Path(".promptarena/tests")
    http_referer: str | None = None
    app_title: str = "promptarena"

    model_config = {
        "env_prefix": "PROMPTARENA_",
        "env_file": ".env",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()
