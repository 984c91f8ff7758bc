from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, TypeVar

from promptarena.config import DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT_MS
from promptarena.exceptions import PromptArenaError
from promptarena.logging_config import get_logger
from promptarena.models import (
    ZERO_COST,
    ChatCompletion,
    GenerationParameters,
    ModelResult,
    TestOutcome,
    TestRequest,
    TestSummary,
)
from promptarena.pricing import PricingCache, PricingTable, compute_cost, sum_costs
from promptarena.resolver import ModelResolver

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ModelInvoker(Protocol):
    async def complete(
        self,
        model_id: str,
        prompt_text: str,
        parameters: GenerationParameters,
    ) -> ChatCompletion: ...


async def test_model(
    client: ModelInvoker,
    resolver: ModelResolver,
    model_name: str,
    prompt_text: str,
    parameters: GenerationParameters,
    pricing: PricingTable,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> ModelResult:
    """Run one model and describe the outcome; failures come back as data."""
    start = time.perf_counter()
    try:
        model_id = resolver.resolve(model_name)
        completion = await asyncio.wait_for(
            client.complete(model_id, prompt_text, parameters),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError:
        elapsed = _elapsed_ms(start)
        logger.info("model_call_timed_out", model=model_name, timeout_ms=timeout_ms, elapsed_ms=elapsed)
        return ModelResult.failure(model_name, f"Model {model_name} timed out after {timeout_ms}ms", elapsed)
    except PromptArenaError as exc:
        elapsed = _elapsed_ms(start)
        logger.info("model_call_failed", model=model_name, error=str(exc), elapsed_ms=elapsed)
        return ModelResult.failure(model_name, str(exc), elapsed)
    except Exception as exc:  # noqa: BLE001
        elapsed = _elapsed_ms(start)
        logger.warning("model_call_crashed", model=model_name, error=repr(exc), elapsed_ms=elapsed)
        return ModelResult.failure(model_name, str(exc) or "Unknown error occurred", elapsed)

    return ModelResult(
        model_name=model_name,
        success=True,
        response=completion.content,
        token_count=completion.usage.total_tokens,
        cost=compute_cost(model_id, completion.usage, pricing),
        response_time=_elapsed_ms(start),
    )


async def run_batch(
    client: ModelInvoker,
    models: Sequence[str],
    prompt_text: str,
    parameters: GenerationParameters,
    *,
    pricing_cache: PricingCache,
    resolver: ModelResolver | None = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> TestOutcome:
    """Test every model in ``models`` at most ``concurrency`` at a time.

    Results keep the input order. This coroutine does not raise: if setup
    fails, each model gets a synthetic error result instead.
    """
    resolver = resolver or ModelResolver()
    models = list(models)
    start = time.perf_counter()

    try:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        pricing = await pricing_cache.get_pricing()
        results = await run_with_concurrency(
            models,
            lambda name: test_model(client, resolver, name, prompt_text, parameters, pricing, timeout_ms),
            concurrency,
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("batch_failed", models=models)
        message = str(exc) or "Critical system error"
        return TestOutcome(
            results=[ModelResult.failure(name, message) for name in models],
            total_cost=ZERO_COST,
            summary=TestSummary(successful=0, failed=len(models), duration_ms=_elapsed_ms(start)),
        )

    successful = sum(1 for r in results if r.success)
    outcome = TestOutcome(
        results=results,
        total_cost=sum_costs(r.cost for r in results),
        summary=TestSummary(
            successful=successful,
            failed=len(results) - successful,
            duration_ms=_elapsed_ms(start),
        ),
    )
    logger.info(
        "batch_completed",
        models=len(models),
        successful=outcome.summary.successful,
        failed=outcome.summary.failed,
        duration_ms=outcome.summary.duration_ms,
        total_cost=outcome.total_cost,
    )
    return outcome


async def run_request(
    client: ModelInvoker,
    request: TestRequest,
    *,
    pricing_cache: PricingCache,
    resolver: ModelResolver | None = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> TestOutcome:
    return await run_batch(
        client,
        request.models,
        request.prompt_text,
        request.parameters,
        pricing_cache=pricing_cache,
        resolver=resolver,
        timeout_ms=timeout_ms,
        concurrency=concurrency,
    )


async def run_with_concurrency(
    items: Sequence[T],
    task: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> list[R]:
    """Run ``task`` over ``items`` in sequential chunks of ``concurrency``."""
    results: list[R] = []
    for i in range(0, len(items), concurrency):
        chunk = items[i : i + concurrency]
        results.extend(await asyncio.gather(*(task(item) for item in chunk)))
    return results


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)
