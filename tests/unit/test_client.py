"""Tests for the OpenRouter HTTP client, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from promptarena.client import OpenRouterClient
from promptarena.exceptions import ConfigurationError, ModelInvocationError, PricingFetchError
from promptarena.models import GenerationParameters

COMPLETION = {
    "id": "gen-1",
    "model": "openai/gpt-4o-mini",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": "Hi there"}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12},
}


def make_client(handler) -> OpenRouterClient:
    return OpenRouterClient(
        api_key="sk-test",
        base_url="https://openrouter.test/api/v1",
        http_referer="https://example.com",
        app_title="promptarena-tests",
        transport=httpx.MockTransport(handler),
    )


class TestComplete:
    @pytest.mark.asyncio
    async def test_sends_single_user_message_with_parameters(self, parameters: GenerationParameters) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=COMPLETION)

        async with make_client(handler) as client:
            await client.complete("openai/gpt-4o-mini", "Hello", parameters)

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["HTTP-Referer"] == "https://example.com"
        assert request.headers["X-Title"] == "promptarena-tests"
        assert json.loads(request.content) == {
            "model": "openai/gpt-4o-mini",
            "messages": [{"role": "user", "content": "Hello"}],
            "temperature": 0.5,
            "max_tokens": 256,
            "top_p": 0.9,
        }

    @pytest.mark.asyncio
    async def test_parses_completion(self, parameters: GenerationParameters) -> None:
        async with make_client(lambda r: httpx.Response(200, json=COMPLETION)) as client:
            completion = await client.complete("openai/gpt-4o-mini", "Hello", parameters)

        assert completion.content == "Hi there"
        assert completion.usage.prompt_tokens == 5
        assert completion.usage.completion_tokens == 7
        assert completion.usage.total_tokens == 12

    @pytest.mark.asyncio
    async def test_missing_choice_gives_empty_content(self, parameters: GenerationParameters) -> None:
        body = {"choices": [], "usage": {"prompt_tokens": 3, "completion_tokens": 0}}
        async with make_client(lambda r: httpx.Response(200, json=body)) as client:
            completion = await client.complete("m/x", "Hello", parameters)

        assert completion.content == ""
        assert completion.usage.total_tokens == 3

    @pytest.mark.asyncio
    async def test_structured_error_message(self, parameters: GenerationParameters) -> None:
        body = {"error": {"message": "Rate limit exceeded", "type": "rate_limit"}}
        async with make_client(lambda r: httpx.Response(429, json=body)) as client:
            with pytest.raises(ModelInvocationError) as info:
                await client.complete("openai/gpt-4o", "Hello", parameters)

        assert str(info.value) == "Model openai/gpt-4o failed: Rate limit exceeded"
        assert info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_unparseable_error_falls_back_to_status_text(self, parameters: GenerationParameters) -> None:
        async with make_client(lambda r: httpx.Response(502, text="<html>bad gateway</html>")) as client:
            with pytest.raises(ModelInvocationError, match="Model m/x failed: Bad Gateway"):
                await client.complete("m/x", "Hello", parameters)

    @pytest.mark.asyncio
    async def test_error_in_success_body_raises(self, parameters: GenerationParameters) -> None:
        body = {"error": {"message": "Provider returned error"}}
        async with make_client(lambda r: httpx.Response(200, json=body)) as client:
            with pytest.raises(ModelInvocationError, match="Provider returned error"):
                await client.complete("m/x", "Hello", parameters)

    @pytest.mark.asyncio
    async def test_non_json_success_body_raises(self, parameters: GenerationParameters) -> None:
        async with make_client(lambda r: httpx.Response(200, text="not json")) as client:
            with pytest.raises(ModelInvocationError, match="not valid JSON"):
                await client.complete("m/x", "Hello", parameters)

    @pytest.mark.asyncio
    async def test_network_error_raises_invocation_error(self, parameters: GenerationParameters) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(ModelInvocationError, match="connection refused"):
                await client.complete("m/x", "Hello", parameters)

    @pytest.mark.asyncio
    async def test_no_retry_on_server_error(self, parameters: GenerationParameters) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, json={"error": {"message": "overloaded"}})

        async with make_client(handler) as client:
            with pytest.raises(ModelInvocationError):
                await client.complete("m/x", "Hello", parameters)

        assert len(calls) == 1


class TestFetchModels:
    @pytest.mark.asyncio
    async def test_converts_per_token_prices_to_per_thousand(self) -> None:
        body = {
            "data": [
                {"id": "openai/gpt-4o", "pricing": {"prompt": "0.000005", "completion": "0.000015"}},
                {"id": "broken/model", "pricing": {"prompt": "n/a", "completion": "0.1"}},
                {"id": "no/pricing"},
                "garbage",
            ]
        }
        async with make_client(lambda r: httpx.Response(200, json=body)) as client:
            pricing = await client.fetch_models()

        assert list(pricing) == ["openai/gpt-4o"]
        assert pricing["openai/gpt-4o"].prompt == pytest.approx(0.005)
        assert pricing["openai/gpt-4o"].completion == pytest.approx(0.015)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_pricing", ["free", ["0.1", "0.2"], None, 0])
    async def test_non_mapping_pricing_entry_is_skipped(self, bad_pricing) -> None:
        body = {
            "data": [
                {"id": "openai/gpt-4o", "pricing": {"prompt": "0.000005", "completion": "0.000015"}},
                {"id": "weird/model", "pricing": bad_pricing},
            ]
        }
        async with make_client(lambda r: httpx.Response(200, json=body)) as client:
            pricing = await client.fetch_models()

        assert list(pricing) == ["openai/gpt-4o"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"models": []}, [], {"data": "nope"}, {"data": [{"id": "x/y"}]}])
    async def test_malformed_payload_raises(self, body) -> None:
        async with make_client(lambda r: httpx.Response(200, json=body)) as client:
            with pytest.raises(PricingFetchError):
                await client.fetch_models()

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        async with make_client(lambda r: httpx.Response(500)) as client:
            with pytest.raises(PricingFetchError):
                await client.fetch_models()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        with pytest.raises(ConfigurationError):
            async with OpenRouterClient(api_key=""):
                pass

    @pytest.mark.asyncio
    async def test_requires_context_manager(self, parameters: GenerationParameters) -> None:
        client = OpenRouterClient(api_key="sk-test")

        with pytest.raises(RuntimeError, match="async with"):
            await client.complete("m/x", "Hello", parameters)
