from __future__ import annotations

import math
import time
from collections.abc import Awaitable, Callable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from promptarena.logging_config import get_logger
from promptarena.models import ZERO_COST, ModelPricing, TokenUsage

logger = get_logger(__name__)

PRICING_TTL_SECONDS = 10 * 60

# USD per 1K tokens, used whenever the live listing cannot be fetched.
FALLBACK_PRICING: dict[str, ModelPricing] = {
    "openai/gpt-4o": ModelPricing(prompt=0.005, completion=0.015),
    "anthropic/claude-3.5-sonnet": ModelPricing(prompt=0.003, completion=0.015),
    "google/gemini-1.5-pro": ModelPricing(prompt=0.00125, completion=0.005),
    "openai/gpt-4o-mini": ModelPricing(prompt=0.00015, completion=0.0006),
}

PricingTable = Mapping[str, Any]
PricingFetcher = Callable[[], Awaitable[dict[str, ModelPricing]]]


def fallback_pricing() -> dict[str, ModelPricing]:
    return dict(FALLBACK_PRICING)


class PricingCache:
    """Caches the full pricing table for ``ttl`` seconds.

    The table and its timestamp are swapped in a single assignment, so
    concurrent readers see either the old table or the new one. Callers
    get their own copy of the table. Failed fetches return the fallback
    table without touching the cache, which means the next call tries the
    network again.
    """

    def __init__(
        self,
        fetcher: PricingFetcher,
        ttl: float = PRICING_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._ttl = ttl
        self._clock = clock
        self._entry: tuple[dict[str, ModelPricing], float] | None = None

    @property
    def fetched_at(self) -> float | None:
        return None if self._entry is None else self._entry[1]

    def is_fresh(self) -> bool:
        entry = self._entry
        return entry is not None and self._clock() - entry[1] < self._ttl

    def invalidate(self) -> None:
        self._entry = None

    async def get_pricing(self) -> dict[str, ModelPricing]:
        entry = self._entry
        if entry is not None and self._clock() - entry[1] < self._ttl:
            return dict(entry[0])

        try:
            pricing = await self._fetcher()
        except Exception as exc:  # noqa: BLE001
            logger.warning("pricing_fetch_failed", error=str(exc), fallback_models=len(FALLBACK_PRICING))
            return fallback_pricing()

        self._entry = (dict(pricing), self._clock())
        logger.debug("pricing_refreshed", models=len(pricing))
        return dict(pricing)


def compute_cost(model_id: str, usage: TokenUsage | Mapping[str, Any] | None, pricing: PricingTable) -> str:
    """Cost of one call in USD as a 6-place decimal string; "0.00" when it cannot be priced."""
    rates = _rates(pricing.get(model_id))
    if rates is None:
        logger.warning("pricing_missing", model=model_id)
        return ZERO_COST
    prompt_rate, completion_rate = rates

    prompt_tokens = _token_count(_usage_field(usage, "prompt_tokens"))
    completion_tokens = _token_count(_usage_field(usage, "completion_tokens"))

    cost = (prompt_tokens / 1000) * prompt_rate + (completion_tokens / 1000) * completion_rate
    if not math.isfinite(cost) or cost < 0:
        logger.warning("cost_not_finite", model=model_id)
        return ZERO_COST
    return f"{cost:.6f}"


def sum_costs(costs: Iterable[str], places: int = 6) -> str:
    total = Decimal(0)
    for cost in costs:
        try:
            value = Decimal(cost)
        except (InvalidOperation, TypeError, ValueError):
            continue
        if value.is_finite() and value > 0:
            total += value
    return f"{total:.{places}f}"


def _rates(entry: Any) -> tuple[float, float] | None:
    if entry is None:
        return None
    if isinstance(entry, ModelPricing):
        raw_prompt, raw_completion = entry.prompt, entry.completion
    elif isinstance(entry, Mapping):
        raw_prompt, raw_completion = entry.get("prompt"), entry.get("completion")
    else:
        return None
    prompt = _rate(raw_prompt)
    completion = _rate(raw_completion)
    if prompt is None or completion is None:
        return None
    return prompt, completion


def _rate(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    rate = float(value)
    if not math.isfinite(rate) or rate < 0:
        return None
    return rate


def _usage_field(usage: TokenUsage | Mapping[str, Any] | None, name: str) -> Any:
    if usage is None:
        return None
    if isinstance(usage, Mapping):
        return usage.get(name)
    return getattr(usage, name, None)


def _token_count(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    count = float(value)
    if not math.isfinite(count) or count < 0:
        return 0.0
    return count
