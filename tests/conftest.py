"""Shared fixtures: a scripted model invoker and result builders."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from promptarena.models import ChatCompletion, GenerationParameters, ModelPricing, ModelResult, TokenUsage


@dataclass
class Script:
    delay: float = 0.0
    content: str = "ok"
    prompt_tokens: int = 10
    completion_tokens: int = 20
    error: Exception | None = None


@dataclass
class FakeInvoker:
    """Stands in for OpenRouterClient.complete, keyed by backend model id."""

    scripts: dict[str, Script] = field(default_factory=dict)
    default: Script = field(default_factory=Script)
    calls: list[tuple[str, str, GenerationParameters]] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def complete(self, model_id: str, prompt_text: str, parameters: GenerationParameters) -> ChatCompletion:
        self.calls.append((model_id, prompt_text, parameters))
        script = self.scripts.get(model_id, self.default)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if script.delay:
                await asyncio.sleep(script.delay)
            if script.error is not None:
                raise script.error
            return ChatCompletion(
                model=model_id,
                content=script.content,
                usage=TokenUsage(
                    prompt_tokens=script.prompt_tokens,
                    completion_tokens=script.completion_tokens,
                    total_tokens=script.prompt_tokens + script.completion_tokens,
                ),
            )
        finally:
            self.in_flight -= 1


class StaticPricing:
    """PricingCache stand-in that counts how often it is asked."""

    def __init__(self, table: dict[str, ModelPricing] | None = None, error: Exception | None = None) -> None:
        self.table = table or {}
        self.error = error
        self.calls = 0

    async def get_pricing(self) -> dict[str, ModelPricing]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.table


def make_result(model_name: str, **overrides: Any) -> ModelResult:
    values: dict[str, Any] = {
        "model_name": model_name,
        "success": True,
        "response": "answer",
        "token_count": 30,
        "cost": "0.001000",
        "response_time": 500,
    }
    values.update(overrides)
    if values.get("error"):
        values["success"] = False
    return ModelResult(**values)


@pytest.fixture
def parameters() -> GenerationParameters:
    return GenerationParameters(temperature=0.5, max_tokens=256, top_p=0.9)


@pytest.fixture
def pricing_table() -> dict[str, ModelPricing]:
    return {
        "openai/gpt-4o-mini": ModelPricing(prompt=0.00015, completion=0.0006),
        "anthropic/claude-3.5-sonnet": ModelPricing(prompt=0.003, completion=0.015),
        "openai/gpt-4o": ModelPricing(prompt=0.005, completion=0.015),
    }


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def invoker_factory():
    def _factory(scripts: dict[str, Script] | None = None, **default: Any) -> FakeInvoker:
        return FakeInvoker(scripts=scripts or {}, default=Script(**default))

    return _factory


@pytest.fixture
def script():
    return Script


@pytest.fixture
def static_pricing():
    return StaticPricing
