from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from promptarena.exceptions import ConfigurationError, ModelInvocationError, PricingFetchError
from promptarena.logging_config import get_logger
from promptarena.models import ChatCompletion, GenerationParameters, ModelPricing, TokenUsage

OPENROUTER_BASE = "https://openrouter.ai/api/v1"

logger = get_logger(__name__)


@dataclass
class OpenRouterClient:
    api_key: str
    base_url: str = OPENROUTER_BASE
    timeout: float | None = None
    pricing_timeout: float = 10.0
    http_referer: str | None = None
    app_title: str | None = None
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)
    _client: httpx.AsyncClient | None = field(default=None, repr=False)

    async def __aenter__(self) -> "OpenRouterClient":
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("An OpenRouter API key is required (set PROMPTARENA_OPENROUTER_API_KEY).")
            headers = {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            }
            if self.http_referer:
                headers["HTTP-Referer"] = self.http_referer
            if self.app_title:
                headers["X-Title"] = self.app_title
            # Per-call deadlines are enforced by the caller via asyncio.wait_for.
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self.transport,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("OpenRouterClient is not initialized. Use 'async with'.")
        return self._client

    async def complete(
        self,
        model_id: str,
        prompt_text: str,
        parameters: GenerationParameters,
    ) -> ChatCompletion:
        payload = {
            "model": model_id,
            "messages": [{"role": "user", "content": prompt_text}],
            "temperature": parameters.temperature,
            "max_tokens": parameters.max_tokens,
            "top_p": parameters.top_p,
        }
        try:
            response = await self._http().post("/chat/completions", json=payload)
        except httpx.HTTPError as exc:
            raise ModelInvocationError(model_id, str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            message = _error_message(response)
            logger.debug("model_call_rejected", model=model_id, status=response.status_code, message=message)
            raise ModelInvocationError(model_id, message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise ModelInvocationError(model_id, "response body is not valid JSON") from exc
        return _parse_completion(model_id, data)

    async def fetch_models(self) -> dict[str, ModelPricing]:
        """Return pricing per 1K tokens keyed by model id.

        OpenRouter reports USD per token as strings; entries that are missing
        or non-numeric are skipped. A payload with no usable entries is an error.
        """
        try:
            response = await self._http().get("/models", timeout=self.pricing_timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PricingFetchError(f"Could not fetch model pricing: {exc}") from exc

        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise PricingFetchError("Model listing payload has no 'data' list.")

        models: dict[str, ModelPricing] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            model_id = item.get("id")
            pricing = item.get("pricing")
            if not isinstance(pricing, dict):
                continue
            prompt = pricing.get("prompt")
            completion = pricing.get("completion")
            if model_id and prompt is not None and completion is not None:
                try:
                    prompt_per_token = float(prompt)
                    completion_per_token = float(completion)
                except (TypeError, ValueError):
                    continue
                models[model_id] = ModelPricing(
                    prompt=prompt_per_token * 1000,
                    completion=completion_per_token * 1000,
                )
        if not models:
            raise PricingFetchError("Model listing payload contained no usable pricing.")
        return models


def _error_message(response: httpx.Response) -> str:
    fallback = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return fallback


def _parse_completion(model_id: str, data: Any) -> ChatCompletion:
    if not isinstance(data, dict):
        raise ModelInvocationError(model_id, "unexpected response payload")
    if isinstance(data.get("error"), dict):
        raise ModelInvocationError(model_id, str(data["error"].get("message") or "unknown error"))

    choices = data.get("choices") or []
    content = ""
    if choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            content = ""

    usage = data.get("usage")
    if not isinstance(usage, dict):
        usage = {}
    prompt_tokens = _as_int(usage.get("prompt_tokens"))
    completion_tokens = _as_int(usage.get("completion_tokens"))
    total_tokens = _as_int(usage.get("total_tokens")) or prompt_tokens + completion_tokens
    try:
        return ChatCompletion(
            model=data.get("model") or model_id,
            content=content,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total_tokens,
            ),
        )
    except ValidationError as exc:
        raise ModelInvocationError(model_id, "unexpected response payload") from exc


def _as_int(value: Any) -> int:
    try:
        number = int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(number, 0)
