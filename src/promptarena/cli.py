from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from promptarena.client import OpenRouterClient
from promptarena.config import Settings, get_settings
from promptarena.exceptions import PromptArenaError
from promptarena.export import EXPORT_FORMATS, export_test
from promptarena.logging_config import configure_logging
from promptarena.metrics import compute_metrics
from promptarena.models import GenerationParameters, ModelPricing, TestOutcome, TestRequest
from promptarena.output import (
    OUTPUT_FORMATS,
    render_history,
    render_metrics,
    render_models,
    render_outcome,
    render_usage,
)
from promptarena.pricing import PricingCache
from promptarena.resolver import ModelResolver
from promptarena.runner import run_request
from promptarena.storage import TestStore
from promptarena.template import load_prompt, parse_variables, render_prompt

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
    log_json: bool = typer.Option(False, "--log-json", help="Emit logs as JSON"),
) -> None:
    """Compare one prompt across several LLMs via OpenRouter."""
    configure_logging(verbose=verbose, json_output=log_json)


@app.command()
def run(
    prompt: str | None = typer.Argument(None, help="Prompt text (or use --prompt-file)"),
    models: list[str] = typer.Option(..., "--model", "-m", help="Model alias or provider/model id"),
    prompt_file: Path | None = typer.Option(None, "--prompt-file", "-f", help="Prompt or Jinja2 template file"),
    variables: list[str] = typer.Option([], "--var", help="Template variable as key=value"),
    temperature: float = typer.Option(0.7, "--temperature", "-t"),
    max_tokens: int = typer.Option(1000, "--max-tokens"),
    top_p: float = typer.Option(1.0, "--top-p"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c"),
    timeout_ms: int | None = typer.Option(None, "--timeout-ms"),
    output_format: str = typer.Option("table", "--output", "-o", help="table|json|csv"),
    save: bool = typer.Option(True, "--save/--no-save", help="Store the test for rating and export"),
) -> None:
    """Run one prompt against every model and compare the answers."""
    settings = get_settings()
    if output_format.lower() not in OUTPUT_FORMATS:
        raise typer.BadParameter("Output must be one of: table, json, csv.")
    if concurrency is not None and concurrency < 1:
        raise typer.BadParameter("Concurrency must be at least 1.")
    if timeout_ms is not None and timeout_ms < 1:
        raise typer.BadParameter("Timeout must be at least 1 ms.")

    # Dedupe models, keeping the order they were given
    seen = set()
    unique_models = []
    for m in models:
        if m not in seen:
            seen.add(m)
            unique_models.append(m)

    prompt_text = _prompt_text(prompt, prompt_file, variables)
    try:
        request = TestRequest(
            prompt_text=prompt_text,
            models=unique_models,
            parameters=GenerationParameters(temperature=temperature, max_tokens=max_tokens, top_p=top_p),
        )
    except ValidationError as exc:
        raise typer.BadParameter(_first_error(exc)) from exc

    resolver = ModelResolver()
    unknown = [m for m in request.models if not resolver.is_supported(m)]
    if unknown:
        Console(stderr=True).print(f"[yellow]Unsupported model(s) will be reported as errors: {', '.join(unknown)}[/yellow]")

    async def _run():
        async with _client(settings) as client:
            cache = PricingCache(client.fetch_models, ttl=settings.pricing_ttl_seconds)
            return await run_request(
                client,
                request,
                pricing_cache=cache,
                resolver=resolver,
                timeout_ms=settings.timeout_ms if timeout_ms is None else timeout_ms,
                concurrency=settings.concurrency if concurrency is None else concurrency,
            )

    outcome = _run_async(_run())
    test_id = None
    if save:
        test_id = TestStore(settings.results_dir).save(request, outcome).id
    render_outcome(outcome, compute_metrics(outcome.results), output_format, test_id=test_id)


@app.command()
def models() -> None:
    """List model aliases with their current pricing."""
    settings = get_settings()
    resolver = ModelResolver()

    async def _run() -> dict[str, ModelPricing]:
        async with _client(settings) as client:
            return await PricingCache(client.fetch_models).get_pricing()

    render_models(resolver.aliases(), _run_async(_run()))


@app.command()
def rate(
    test_id: str = typer.Argument(..., help="Stored test id"),
    model: str = typer.Argument(..., help="Model name as given to 'run'"),
    rating: int = typer.Argument(..., min=1, max=5, help="Rating from 1 to 5"),
) -> None:
    """Rate one model's answer and recompute the comparison."""
    store = TestStore(get_settings().results_dir)
    test = _guard(lambda: store.rate(test_id, model, rating))
    Console().print(f"Rated [cyan]{model}[/cyan] {rating}/5")
    render_metrics(compute_metrics(test.results))


@app.command()
def show(
    test_id: str = typer.Argument(..., help="Stored test id"),
    output_format: str = typer.Option("table", "--output", "-o", help="table|json|csv"),
) -> None:
    """Show a stored test."""
    if output_format.lower() not in OUTPUT_FORMATS:
        raise typer.BadParameter("Output must be one of: table, json, csv.")
    store = TestStore(get_settings().results_dir)
    test = _guard(lambda: store.get(test_id))
    outcome = TestOutcome(results=test.results, total_cost=test.total_cost, summary=test.summary)
    render_outcome(outcome, compute_metrics(test.results), output_format, test_id=test.id)


@app.command()
def export(
    test_id: str = typer.Argument(..., help="Stored test id"),
    fmt: str = typer.Option("json", "--format", "-f", help="json|csv|text|clipboard"),
    out: Path | None = typer.Option(None, "--out", help="Write to a file instead of stdout"),
) -> None:
    """Export a stored test."""
    if fmt.lower() not in EXPORT_FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(EXPORT_FORMATS)}.")
    store = TestStore(get_settings().results_dir)
    content = export_test(_guard(lambda: store.get(test_id)), fmt)
    if out is None:
        typer.echo(content)
    else:
        out.write_text(content, encoding="utf-8")
        Console(stderr=True).print(f"[dim]Wrote {out}[/dim]")


@app.command()
def history(limit: int = typer.Option(50, "--limit", "-n", min=1)) -> None:
    """List stored tests, newest first."""
    render_history(TestStore(get_settings().results_dir).list(limit=limit))


@app.command()
def usage() -> None:
    """Summarise stored playground usage."""
    render_usage(TestStore(get_settings().results_dir).usage())


def _client(settings: Settings) -> OpenRouterClient:
    return OpenRouterClient(
        api_key=settings.openrouter_api_key,
        base_url=settings.base_url,
        pricing_timeout=settings.pricing_timeout_seconds,
        http_referer=settings.http_referer,
        app_title=settings.app_title,
    )


def _run_async(coro):
    try:
        return asyncio.run(coro)
    except PromptArenaError as exc:
        Console(stderr=True).print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def _prompt_text(prompt: str | None, prompt_file: Path | None, pairs: list[str]) -> str:
    if (prompt is None) == (prompt_file is None):
        raise typer.BadParameter("Give either a PROMPT argument or --prompt-file.")
    try:
        variables = parse_variables(pairs)
        if prompt_file is not None:
            if not prompt_file.exists():
                raise typer.BadParameter(f"Prompt file not found: {prompt_file}")
            return load_prompt(prompt_file, variables)
        return render_prompt(prompt, variables)
    except (ValueError, KeyError) as exc:
        raise typer.BadParameter(f"Could not render prompt: {exc}") from exc


def _guard(fn):
    try:
        return fn()
    except PromptArenaError as exc:
        Console(stderr=True).print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]
