from __future__ import annotations


class PromptArenaError(Exception):
    """Base exception for promptarena."""


class UnsupportedModelError(PromptArenaError):
    def __init__(self, model_name: str) -> None:
        super().__init__(f"Unsupported model: {model_name}")
        self.model_name = model_name


class ModelInvocationError(PromptArenaError):
    """A chat completion call failed or returned an unusable body."""

    def __init__(self, model_id: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"Model {model_id} failed: {message}")
        self.model_id = model_id
        self.status_code = status_code


class PricingFetchError(PromptArenaError):
    pass


class TestNotFoundError(PromptArenaError):
    __test__ = False

    def __init__(self, test_id: str) -> None:
        super().__init__(f"Test not found: {test_id}")
        self.test_id = test_id


class ModelNotInTestError(PromptArenaError):
    def __init__(self, test_id: str, model_name: str) -> None:
        super().__init__(f"Model {model_name} is not part of test {test_id}")
        self.test_id = test_id
        self.model_name = model_name


class InvalidRatingError(PromptArenaError):
    pass


class ConfigurationError(PromptArenaError):
    pass
