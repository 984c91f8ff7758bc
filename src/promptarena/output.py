from __future__ import annotations

import csv
import json
import sys
from typing import Iterable

from rich.console import Console
from rich.table import Table
from rich.text import Text

from promptarena.models import ComparisonMetrics, ModelPricing, ModelResult, PlaygroundTest, TestOutcome, UsageStats

OUTPUT_FORMATS = {"table", "json", "csv"}

CSV_FIELDS = [
    "modelName",
    "success",
    "responseTime",
    "tokenCount",
    "cost",
    "rating",
    "error",
    "response",
]


def render_outcome(
    outcome: TestOutcome,
    metrics: ComparisonMetrics | None,
    output_format: str,
    test_id: str | None = None,
    console: Console | None = None,
) -> None:
    output_format = output_format.lower()
    if output_format == "json":
        _render_json(outcome, metrics, test_id)
    elif output_format == "csv":
        _render_csv(outcome.results)
    else:
        console = console or Console()
        _render_table(outcome, console, test_id)
        render_metrics(metrics, console)


def _render_table(outcome: TestOutcome, console: Console, test_id: str | None) -> None:
    title = "Playground Results" if test_id is None else f"Playground Results ({test_id})"
    table = Table(title=title)
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Rating", justify="right")

    for r in outcome.results:
        table.add_row(
            r.model_name,
            _format_status(r),
            f"{r.response_time}ms",
            str(r.token_count),
            f"${r.cost}",
            f"{r.rating}/5" if r.rating is not None else "—",
        )
    console.print(table)

    summary = outcome.summary
    console.print(
        f"[green]{summary.successful} succeeded[/green], "
        f"[red]{summary.failed} failed[/red] in {summary.duration_ms}ms, "
        f"total cost ${outcome.total_cost}"
    )
    for r in outcome.results:
        if r.success:
            console.print(f"\n[bold cyan]{r.model_name}[/bold cyan]")
            console.print(r.response, markup=False)


def render_metrics(metrics: ComparisonMetrics | None, console: Console | None = None) -> None:
    console = console or Console()
    if metrics is None:
        console.print("[yellow]No successful responses to compare.[/yellow]")
        return
    table = Table(title="Comparison")
    table.add_column("Dimension")
    table.add_column("Winner")
    table.add_row("Fastest", metrics.winner.speed)
    table.add_row("Cheapest", metrics.winner.cost)
    table.add_row("Highest rated", metrics.winner.quality)
    table.add_row("Most efficient", metrics.winner.efficiency)
    console.print(table)

    stats = metrics.response_stats
    rating = f"{metrics.average_rating}/5" if metrics.average_rating is not None else "n/a"
    console.print(
        f"avg time {metrics.average_response_time}ms | total ${metrics.total_cost} | "
        f"avg rating {rating} | length min/avg/max "
        f"{stats.min_length}/{stats.avg_length}/{stats.max_length}"
    )


def render_models(
    aliases: dict[str, str],
    pricing: dict[str, ModelPricing],
    console: Console | None = None,
) -> None:
    console = console or Console()
    table = Table(title="Supported Models (USD per 1K tokens)")
    table.add_column("Alias")
    table.add_column("Model")
    table.add_column("Prompt $/1K", justify="right")
    table.add_column("Completion $/1K", justify="right")

    for alias, model_id in aliases.items():
        model_pricing = pricing.get(model_id)
        table.add_row(
            alias,
            model_id,
            _format_rate(model_pricing.prompt if model_pricing else None),
            _format_rate(model_pricing.completion if model_pricing else None),
        )
    console.print(table)


def render_history(tests: Iterable[PlaygroundTest], console: Console | None = None) -> None:
    console = console or Console()
    table = Table(title="Playground History")
    table.add_column("Test ID")
    table.add_column("Created")
    table.add_column("Models")
    table.add_column("OK/Failed", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Prompt")

    for t in tests:
        prompt = t.prompt_text if len(t.prompt_text) <= 40 else t.prompt_text[:39] + "…"
        table.add_row(
            t.id,
            f"{t.created_at:%Y-%m-%d %H:%M}",
            ", ".join(t.models),
            f"{t.summary.successful}/{t.summary.failed}",
            f"${t.total_cost}",
            prompt,
        )
    console.print(table)


def render_usage(stats: UsageStats, console: Console | None = None) -> None:
    console = console or Console()
    last = f"{stats.last_active:%Y-%m-%d %H:%M}" if stats.last_active else "never"
    console.print(f"Tests run: {stats.tests_run}")
    console.print(f"This month: {stats.monthly_tests} (since {stats.monthly_reset:%Y-%m-%d})")
    console.print(f"Total cost: ${stats.total_cost}")
    console.print(f"Last active: {last}")


def _render_json(outcome: TestOutcome, metrics: ComparisonMetrics | None, test_id: str | None) -> None:
    payload = outcome.model_dump(mode="json", by_alias=True)
    payload["metrics"] = metrics.model_dump(mode="json", by_alias=True) if metrics else None
    if test_id is not None:
        payload["testId"] = test_id
    sys.stdout.write(json.dumps(payload, indent=2))
    sys.stdout.write("\n")


def _render_csv(results: Iterable[ModelResult]) -> None:
    writer = csv.DictWriter(sys.stdout, fieldnames=CSV_FIELDS, extrasaction="ignore")
    writer.writeheader()
    for r in results:
        writer.writerow(r.model_dump(mode="json", by_alias=True))


def _format_status(result: ModelResult) -> Text:
    if result.success:
        return Text("ok", style="green")
    return Text(result.error or "failed", style="red")


def _format_rate(rate: float | None) -> str:
    if rate is None:
        return "n/a"
    return f"{rate:.6f}"
