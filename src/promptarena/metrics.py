from __future__ import annotations

from collections.abc import Callable, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from promptarena.models import ComparisonMetrics, ModelResult, ResponseStats, WinnerSet
from promptarena.pricing import sum_costs

# Picks a winner when nothing qualifies: (successful results, cost winner) -> result
FallbackPolicy = Callable[[list[ModelResult], ModelResult], ModelResult]


def first_successful(successful: list[ModelResult], cheapest: ModelResult) -> ModelResult:
    return successful[0]


def cost_winner(successful: list[ModelResult], cheapest: ModelResult) -> ModelResult:
    return cheapest


def compute_metrics(
    results: Sequence[ModelResult],
    *,
    quality_fallback: FallbackPolicy = first_successful,
    efficiency_fallback: FallbackPolicy = cost_winner,
) -> ComparisonMetrics | None:
    """Compare the successful results of one test; ``None`` if there are none.

    Ties go to the later result. Re-run this after every rating change.
    """
    successful = [r for r in results if r.success]
    if not successful:
        return None

    fastest = _best(successful, key=lambda r: r.response_time, lowest=True)
    cheapest = _best(successful, key=_cost, lowest=True)

    rated = [r for r in successful if r.rating is not None]
    if rated:
        highest_rated = _best(rated, key=lambda r: r.rating)
    else:
        highest_rated = quality_fallback(successful, cheapest)

    efficient = [r for r in rated if _cost(r) > 0]
    if efficient:
        most_efficient = _best(efficient, key=lambda r: Decimal(r.rating) / _cost(r))
    else:
        most_efficient = efficiency_fallback(successful, cheapest)

    average_rating = None
    if rated:
        average_rating = float(_half_up(Decimal(sum(r.rating for r in rated)) / len(rated), "0.1"))

    lengths = [len(r.response) for r in successful]
    return ComparisonMetrics(
        winner=WinnerSet(
            speed=fastest.model_name,
            cost=cheapest.model_name,
            quality=highest_rated.model_name,
            efficiency=most_efficient.model_name,
        ),
        average_response_time=int(_half_up(Decimal(sum(r.response_time for r in successful)) / len(successful))),
        total_cost=sum_costs((r.cost for r in successful), places=2),
        average_rating=average_rating,
        response_stats=ResponseStats(
            min_length=min(lengths),
            max_length=max(lengths),
            avg_length=int(_half_up(Decimal(sum(lengths)) / len(lengths))),
        ),
    )


def _best(
    results: Sequence[ModelResult],
    key: Callable[[ModelResult], Any],
    lowest: bool = False,
) -> ModelResult:
    # a later result replaces the current best unless the best is strictly better
    best = results[0]
    for result in results[1:]:
        value, current = key(result), key(best)
        if (value <= current) if lowest else (value >= current):
            best = result
    return best


def _cost(result: ModelResult) -> Decimal:
    try:
        cost = Decimal(result.cost)
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(0)
    return cost if cost.is_finite() else Decimal(0)


def _half_up(value: Decimal, exp: str = "1") -> Decimal:
    return value.quantize(Decimal(exp), rounding=ROUND_HALF_UP)
