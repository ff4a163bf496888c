"""Shared fixtures: settings without credentials, scripted model clients and fake HTTP."""

from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Sequence,
)

import httpx
import pytest

from aulaai.config import Settings
from aulaai.core.errors import ConfigurationError
from aulaai.core.schema import (
    ChatOptions,
    Message,
)
from aulaai.tools import ToolContext

_UNSET: Dict[str, Any] = {
    "OPENAI_API_KEY": None,
    "ANTHROPIC_API_KEY": None,
    "TGI_ENDPOINT": None,
    "GOOGLE_SEARCH_API_KEY": None,
    "GOOGLE_SEARCH_ENGINE_ID": None,
    "AULA_USERNAME": None,
    "AULA_PASSWORD": None,
    "AUDIT_LOG_PATH": None,
}


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment: every credential unset unless overridden."""
    values = {**_UNSET, **overrides}
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected HTTP request to {request.url}")


class ScriptedModel:
    """Model client returning canned replies in order; the last one repeats if *repeat*."""

    def __init__(self, replies: Iterable[str], repeat: bool = False) -> None:
        self.replies: List[str] = list(replies)
        self.repeat = repeat
        self.calls: List[List[Message]] = []

    def chat(self, messages: Sequence[Message], options: ChatOptions | None = None) -> str:
        self.calls.append(list(messages))
        if not self.replies:
            raise AssertionError("model called more often than scripted")
        if self.repeat and len(self.replies) == 1:
            return self.replies[0]
        return self.replies.pop(0)


class FakeModelFactory:
    """Stands in for ModelClientFactory; hands out one shared ScriptedModel."""

    def __init__(self, model: Any = None, configured: bool = True) -> None:
        self.model = model or ScriptedModel(["Hello!"], repeat=True)
        self.configured = configured
        self.created: List[str] = []

    def create(self, model: str) -> Any:
        if not self.configured:
            raise ConfigurationError(f"No provider found for model: {model}")
        self.created.append(model)
        return self.model

    def available_models(self) -> List[Dict[str, str]]:
        if not self.configured:
            return []
        return [{"model": "gpt-4o", "provider": "openai", "display_name": "GPT-4o"}]


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def tool_context(settings: Settings) -> ToolContext:
    return ToolContext(settings=settings, http=mock_http(no_network))
