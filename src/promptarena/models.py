from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ZERO_COST = "0.00"


class Schema(BaseModel):
    """camelCase on the wire, snake_case in Python; either is accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class GenerationParameters(Schema):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    max_tokens: int = Field(default=1000, ge=1)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)


class TestRequest(Schema):
    __test__ = False
    model_config = ConfigDict(frozen=True)

    prompt_text: str = Field(min_length=1)
    models: list[str] = Field(min_length=1, max_length=10)
    parameters: GenerationParameters = Field(default_factory=GenerationParameters)

    @field_validator("prompt_text")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt text must not be blank")
        return value

    @field_validator("models")
    @classmethod
    def models_not_blank(cls, value: list[str]) -> list[str]:
        if any(not m.strip() for m in value):
            raise ValueError("model names must not be blank")
        return value


class ModelPricing(BaseModel):
    """Pricing per 1K tokens."""

    prompt: float
    completion: float


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    model: str
    content: str
    usage: TokenUsage


class ModelResult(Schema):
    model_name: str
    success: bool
    response: str = ""
    token_count: int = 0
    cost: str = ZERO_COST
    response_time: int = 0  # ms
    error: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    rated_at: datetime | None = None

    @model_validator(mode="after")
    def error_matches_success(self) -> "ModelResult":
        if self.success and self.error is not None:
            raise ValueError("successful result cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("failed result must carry an error message")
        return self

    @classmethod
    def failure(cls, model_name: str, error: str, response_time: int = 0) -> "ModelResult":
        return cls(
            model_name=model_name,
            success=False,
            response="",
            token_count=0,
            cost=ZERO_COST,
            response_time=response_time,
            error=error,
        )

    def with_rating(self, rating: int, rated_at: datetime) -> "ModelResult":
        return self.model_validate(
            {**self.model_dump(), "rating": rating, "rated_at": rated_at}
        )


class TestSummary(Schema):
    __test__ = False

    successful: int
    failed: int
    duration_ms: int


class TestOutcome(Schema):
    __test__ = False

    results: list[ModelResult]
    total_cost: str
    summary: TestSummary


class WinnerSet(Schema):
    speed: str
    cost: str
    quality: str
    efficiency: str


class ResponseStats(Schema):
    min_length: int
    max_length: int
    avg_length: int


class ComparisonMetrics(Schema):
    winner: WinnerSet
    average_response_time: int
    total_cost: str
    average_rating: float | None = None
    response_stats: ResponseStats


class PlaygroundTest(Schema):
    id: str
    prompt_text: str
    parameters: GenerationParameters
    models: list[str]
    results: list[ModelResult]
    total_cost: str
    summary: TestSummary
    created_at: datetime

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UsageStats(Schema):
    tests_run: int
    total_cost: str
    monthly_tests: int
    last_active: datetime | None
    monthly_reset: datetime
