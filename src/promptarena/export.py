"""Shareable renderings of a stored playground test."""

from __future__ import annotations

import csv
import io
import json
from typing import Any

from promptarena.metrics import compute_metrics
from promptarena.models import PlaygroundTest

EXPORT_FORMATS = ("json", "csv", "text", "clipboard")

CSV_HEADERS = [
    "Model Name",
    "Response Length (chars)",
    "Token Count",
    "Cost (USD)",
    "Response Time (ms)",
    "Rating (1-5)",
    "Rated At",
    "Error",
]


def export_test(test: PlaygroundTest, fmt: str) -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return json.dumps(export_json(test), indent=2)
    if fmt == "csv":
        return export_csv(test)
    if fmt == "text":
        return export_text(test)
    if fmt == "clipboard":
        return export_clipboard(test)
    raise ValueError(f"Unknown export format {fmt!r}; expected one of {', '.join(EXPORT_FORMATS)}")


def export_json(test: PlaygroundTest) -> dict[str, Any]:
    metrics = compute_metrics(test.results)
    return {
        "testId": test.id,
        "prompt": test.prompt_text,
        "parameters": test.parameters.model_dump(mode="json", by_alias=True),
        "results": [r.model_dump(mode="json", by_alias=True) for r in test.results],
        "totalCost": test.total_cost,
        "summary": test.summary.model_dump(mode="json", by_alias=True),
        "metrics": metrics.model_dump(mode="json", by_alias=True) if metrics else None,
        "timestamp": test.created_at.isoformat(),
    }


def export_csv(test: PlaygroundTest) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    params = test.parameters
    writer.writerow(["Test ID", test.id])
    writer.writerow(["Prompt", test.prompt_text])
    writer.writerow(["Temperature", params.temperature])
    writer.writerow(["Max Tokens", params.max_tokens])
    writer.writerow(["Top P", params.top_p])
    writer.writerow(["Total Cost", test.total_cost])
    writer.writerow(["Created At", test.created_at.isoformat()])
    writer.writerow([])
    writer.writerow(CSV_HEADERS)
    for r in test.results:
        writer.writerow(
            [
                r.model_name,
                len(r.response),
                r.token_count,
                r.cost,
                r.response_time,
                r.rating if r.rating is not None else "",
                r.rated_at.isoformat() if r.rated_at else "",
                r.error or "",
            ]
        )
    return buffer.getvalue()


def export_text(test: PlaygroundTest) -> str:
    metrics = compute_metrics(test.results)
    params = test.parameters
    lines = [
        "PLAYGROUND TEST RESULTS",
        "=" * 50,
        "",
        f"Test ID: {test.id}",
        f"Date: {test.created_at:%Y-%m-%d %H:%M:%S %Z}".rstrip(),
        f"Total Cost: ${test.total_cost}",
        "",
        "PROMPT:",
        "-" * 20,
        test.prompt_text,
        "",
        "PARAMETERS:",
        "-" * 20,
        f"Temperature: {params.temperature}",
        f"Max Tokens: {params.max_tokens}",
        f"Top P: {params.top_p}",
        "",
        "COMPARISON SUMMARY:",
        "-" * 20,
    ]
    if metrics is None:
        lines.append("No successful responses to compare.")
    else:
        lines += [
            f"Fastest: {metrics.winner.speed}",
            f"Cheapest: {metrics.winner.cost}",
            f"Highest Rated: {metrics.winner.quality}",
            f"Most Efficient: {metrics.winner.efficiency}",
        ]
        if metrics.average_rating is not None:
            lines.append(f"Average Rating: {metrics.average_rating}/5 stars")
    lines += ["", "MODEL RESPONSES:", "=" * 50, ""]

    for idx, r in enumerate(test.results, start=1):
        lines += [
            f"{idx}. {r.model_name.upper()}",
            "-" * 30,
            f"Cost: ${r.cost}",
            f"Tokens: {r.token_count}",
            f"Response Time: {r.response_time}ms",
        ]
        if r.rating is not None:
            lines.append(f"Rating: {_stars(r.rating)} ({r.rating}/5)")
        if r.error:
            lines.append(f"Error: {r.error}")
        else:
            lines += ["", "Response:", r.response]
        lines += ["", "-" * 50, ""]
    return "\n".join(lines)


def export_clipboard(test: PlaygroundTest) -> str:
    metrics = compute_metrics(test.results)
    lines = [
        "Playground Test Results",
        "",
        f"Prompt: {test.prompt_text}",
        f"Total Cost: ${test.total_cost}",
    ]
    if metrics is not None:
        if metrics.average_rating is not None:
            lines.append(f"Average Rating: {metrics.average_rating}/5")
        lines += [
            "",
            "Winners:",
            f"  Fastest: {metrics.winner.speed}",
            f"  Cheapest: {metrics.winner.cost}",
            f"  Highest Rated: {metrics.winner.quality}",
            f"  Most Efficient: {metrics.winner.efficiency}",
        ]
    lines.append("")
    for r in test.results:
        lines.append(r.model_name)
        lines.append(f"   Cost: ${r.cost} | Time: {r.response_time}ms | Tokens: {r.token_count}")
        if r.rating is not None:
            lines.append(f"   Rating: {_stars(r.rating)} ({r.rating}/5)")
        if r.error:
            lines.append(f"   Error: {r.error}")
        lines.append("")
    return "\n".join(lines)


def _stars(rating: int) -> str:
    return "★" * rating + "☆" * (5 - rating)
