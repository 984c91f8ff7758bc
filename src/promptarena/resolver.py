from __future__ import annotations

from collections.abc import Mapping

from promptarena.exceptions import UnsupportedModelError

SUPPORTED_MODELS: dict[str, str] = {
    "gpt-4o": "openai/gpt-4o",
    "claude-3.5-sonnet": "anthropic/claude-3.5-sonnet",
    "gemini-1.5-pro": "google/gemini-1.5-pro",
    "gpt-4o-mini": "openai/gpt-4o-mini",
}

NAMESPACE_SEPARATOR = "/"


class ModelResolver:
    def __init__(self, aliases: Mapping[str, str] | None = None) -> None:
        self._aliases = dict(SUPPORTED_MODELS)
        if aliases:
            self._aliases.update(aliases)

    def resolve(self, model_name: str) -> str:
        if NAMESPACE_SEPARATOR in model_name:
            return model_name
        try:
            return self._aliases[model_name]
        except KeyError:
            raise UnsupportedModelError(model_name) from None

    def is_supported(self, model_name: str) -> bool:
        return NAMESPACE_SEPARATOR in model_name or model_name in self._aliases

    def supported_models(self) -> list[str]:
        return list(self._aliases)

    def aliases(self) -> dict[str, str]:
        return dict(self._aliases)
