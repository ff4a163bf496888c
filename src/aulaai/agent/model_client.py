"""
Model client interface for aula-ai.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
conversation store) stays model-agnostic and only sees ``chat(messages, options) -> str``.

We support three back-ends out of the box:

1. **OpenAI** via the ``openai`` SDK (requires ``OPENAI_API_KEY``).
2. **Anthropic** via the ``anthropic`` SDK (requires ``ANTHROPIC_API_KEY``).
3. **Hugging Face Text-Generation-Inference (TGI)** for self-hosted models (requires
   ``TGI_ENDPOINT``), selected with a ``tgi:`` model prefix.

Additional providers can be added by subclassing :class:`BaseModelClient` and registering via
:func:`register_provider`.  :class:`ModelClientFactory` picks the provider from the model
identifier.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Sequence,
    Tuple,
    Type,
)

import httpx

from aulaai.config import Settings
from aulaai.core.errors import (
    ConfigurationError,
    ProviderUnavailable,
    UpstreamError,
)
from aulaai.core.schema import (
    ChatOptions,
    Message,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: dict[str, Type["BaseModelClient"]] = {}


def register_provider(name: str) -> Callable:
    """Decorator to register a model client class under *name*."""

    def wrapper(cls: Type["BaseModelClient"]) -> Type["BaseModelClient"]:
        cls.provider = name
        _PROVIDER_REGISTRY[name] = cls
        return cls

    return wrapper


# ---------------------------------------------------------------------------
# Message translation helpers
# ---------------------------------------------------------------------------
def split_system(messages: Sequence[Message]) -> Tuple[str, List[Message]]:
    """Separate system content from the conversational turns."""
    system = "\n\n".join(m.content for m in messages if m.role == "system")
    rest = [m for m in messages if m.role != "system"]
    return system, rest


def merge_consecutive(messages: Sequence[Message]) -> List[Message]:
    """Join adjacent turns that share a role (APIs that require strict alternation)."""
    merged: List[Message] = []
    for message in messages:
        if merged and merged[-1].role == message.role:
            merged[-1] = Message(
                role=message.role, content=f"{merged[-1].content}\n\n{message.content}"
            )
        else:
            merged.append(message)
    return merged


def fold_system_into_first_user(messages: Sequence[Message]) -> List[Message]:
    """
    Move system content into the first user turn for providers without a system role.

    The system text is prepended to the first user message, or becomes a user message of its own
    when the transcript has none.
    """
    system, rest = split_system(messages)
    if not system:
        return list(rest)
    for idx, message in enumerate(rest):
        if message.role == "user":
            folded = Message.user(f"{system}\n\n{message.content}")
            return rest[:idx] + [folded] + rest[idx + 1 :]
    return [Message.user(system)] + rest


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelClient(ABC):
    """Abstract model client exposing the uniform ``chat`` capability."""

    provider: ClassVar[str] = ""
    # Models served by this provider, with their display names
    MODELS: ClassVar[Dict[str, str]] = {}
    # Model identifiers starting with this prefix route to the provider
    PREFIX: ClassVar[str | None] = None

    def __init__(
        self,
        settings: Settings,
        model: str | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings
        self.http_client = http_client
        self.model = self.default_model()
        if model is not None:
            self.set_model(model)

    @classmethod
    def serves(cls, model: str) -> bool:
        """Return *True* if *model* routes to this provider."""
        if cls.PREFIX and model.startswith(cls.PREFIX):
            return True
        return model in cls.MODELS

    def default_model(self) -> str:
        return next(iter(self.MODELS), "")

    def set_model(self, model: str) -> "BaseModelClient":
        if self.PREFIX and model.startswith(self.PREFIX):
            model = model[len(self.PREFIX) :]
        elif model not in self.MODELS:
            raise ConfigurationError(
                f"Model {model} is not available for {self.provider} provider"
            )
        self.model = model
        return self

    @abstractmethod
    def is_available(self) -> bool:
        """Return *True* when the provider has the credential it needs."""

    def chat(self, messages: Sequence[Message], options: ChatOptions | None = None) -> str:
        """Send *messages* to the provider and return the reply text."""
        if not self.is_available():
            raise ProviderUnavailable(f"{self.provider} is not configured (check API keys)")
        return self._chat(list(messages), options or ChatOptions())

    @abstractmethod
    def _chat(self, messages: List[Message], options: ChatOptions) -> str:
        """Provider-specific request; must raise :class:`UpstreamError` on failure."""


# ---------------------------------------------------------------------------
# Concrete providers
# ---------------------------------------------------------------------------
@register_provider("openai")
class OpenAIClient(BaseModelClient):
    """OpenAI chat completions; the system role is sent natively."""

    MODELS = {
        "gpt-4o": "GPT-4o",
        "gpt-4o-mini": "GPT-4o Mini",
        "gpt-4-turbo": "GPT-4 Turbo",
        "gpt-3.5-turbo": "GPT-3.5 Turbo",
    }

    def is_available(self) -> bool:
        return bool(self.settings.OPENAI_API_KEY)

    def _chat(self, messages: List[Message], options: ChatOptions) -> str:
        import openai  # pylint: disable=import-outside-toplevel

        client = openai.OpenAI(
            api_key=self.settings.OPENAI_API_KEY,
            base_url=self.settings.OPENAI_BASE_URL,
            timeout=self.settings.LLM_TIMEOUT,
            max_retries=self.settings.LLM_MAX_RETRIES,
            http_client=self.http_client,
        )
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=[m.model_dump() for m in messages],  # type: ignore[misc]
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                stream=False,
            )
        except openai.OpenAIError as exc:
            logger.error("OpenAI API error: %s", exc)
            raise UpstreamError(f"OpenAI API request failed: {exc}") from exc

        content = resp.choices[0].message.content if resp.choices else None
        logger.debug("OpenAI response: %s", content)
        return content or ""


@register_provider("anthropic")
class AnthropicClient(BaseModelClient):
    """
    Anthropic messages API.

    The messages endpoint does not accept a system-role entry in ``messages``; system content is
    moved to the top-level ``system`` field instead, and adjacent same-role turns are merged because
    the API requires alternating roles.
    """

    MODELS = {
        "claude-3-5-sonnet-20241022": "Claude 3.5 Sonnet",
        "claude-3-5-haiku-20241022": "Claude 3.5 Haiku",
        "claude-3-opus-20240229": "Claude 3 Opus",
        "claude-3-sonnet-20240229": "Claude 3 Sonnet",
        "claude-3-haiku-20240307": "Claude 3 Haiku",
    }
    PREFIX = "anthropic:"

    def is_available(self) -> bool:
        return bool(self.settings.ANTHROPIC_API_KEY)

    @staticmethod
    def build_payload(messages: Sequence[Message], options: ChatOptions) -> Dict[str, Any]:
        """Translate a transcript into keyword arguments for ``messages.create``."""
        system, rest = split_system(messages)
        payload: Dict[str, Any] = {
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [m.model_dump() for m in merge_consecutive(rest)],
        }
        if system:
            payload["system"] = system
        return payload

    def _chat(self, messages: List[Message], options: ChatOptions) -> str:
        import anthropic  # pylint: disable=import-outside-toplevel

        client = anthropic.Anthropic(
            api_key=self.settings.ANTHROPIC_API_KEY,
            base_url=self.settings.ANTHROPIC_BASE_URL,
            timeout=self.settings.LLM_TIMEOUT,
            max_retries=self.settings.LLM_MAX_RETRIES,
            http_client=self.http_client,
        )
        try:
            response = client.messages.create(
                model=self.model, **self.build_payload(messages, options)
            )
        except anthropic.AnthropicError as exc:
            logger.error("Anthropic API error: %s", exc)
            raise UpstreamError(f"Anthropic API request failed: {exc}") from exc

        # Only text blocks carry the reply
        content = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        logger.debug("Anthropic response: %s", content)
        return content


@register_provider("tgi")
class TGIClient(BaseModelClient):
    """TGI-based client over plain httpx; TGI has no system role, so it is folded into user text."""

    PREFIX = "tgi:"

    def default_model(self) -> str:
        return "default"

    def is_available(self) -> bool:
        return bool(self.settings.TGI_ENDPOINT)

    @staticmethod
    def render_prompt(messages: Sequence[Message]) -> str:
        """Render the transcript as a plain-text dialogue ending on the assistant's turn."""
        lines = []
        for message in fold_system_into_first_user(messages):
            speaker = "User" if message.role == "user" else "Assistant"
            lines.append(f"{speaker}: {message.content}")
        lines.append("Assistant:")
        return "\n\n".join(lines)

    def _chat(self, messages: List[Message], options: ChatOptions) -> str:
        payload = {
            "inputs": self.render_prompt(messages),
            "parameters": {
                "max_new_tokens": options.max_tokens,
                "temperature": options.temperature,
                "stop": ["User:", "</s>"],
            },
        }
        client = self.http_client or httpx.Client(timeout=self.settings.LLM_TIMEOUT)
        try:
            resp = client.post(
                str(self.settings.TGI_ENDPOINT), json=payload, timeout=self.settings.LLM_TIMEOUT
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            logger.error("TGI request error: %s", exc)
            raise UpstreamError(f"TGI request failed: {exc}") from exc
        finally:
            if self.http_client is None:
                client.close()

        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            logger.error("Unexpected TGI response: %r", data)
            raise UpstreamError(f"TGI returned an unexpected payload: {data!r}")
        content = str(data.get("generated_text", "")).strip()
        logger.debug("TGI response: %s", content)
        return content


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
class ModelClientFactory:
    """Builds model clients from an explicit :class:`Settings` instance."""

    def __init__(self, settings: Settings, http_client: httpx.Client | None = None) -> None:
        self.settings = settings
        self.http_client = http_client

    def provider_for(self, model: str) -> str | None:
        """Return the provider name that serves *model*, prefix rules first."""
        for name, cls in _PROVIDER_REGISTRY.items():
            if cls.PREFIX and model.startswith(cls.PREFIX):
                return name
        for name, cls in _PROVIDER_REGISTRY.items():
            if cls.serves(model):
                return name
        return None

    def create(self, model: str) -> BaseModelClient:
        """
        Return a client for *model*.

        Raises
        ------
        ConfigurationError
            If no provider serves *model*.
        ProviderUnavailable
            If the provider has no credential.  Raised before any network call.
        """
        provider = self.provider_for(model)
        if provider is None:
            raise ConfigurationError(f"No provider found for model: {model}")

        client = _PROVIDER_REGISTRY[provider](self.settings, model, http_client=self.http_client)
        if not client.is_available():
            raise ProviderUnavailable(f"Provider {provider} is not configured (check API keys)")
        return client

    def available_models(self) -> List[Dict[str, str]]:
        """List the models of every configured provider."""
        models: List[Dict[str, str]] = []
        for name, cls in _PROVIDER_REGISTRY.items():
            client = cls(self.settings, http_client=self.http_client)
            if not client.is_available():
                continue
            catalogue = cls.MODELS or {
                f"{cls.PREFIX}{client.model}": f"{name.upper()}: {client.model}"
            }
            for model, display in catalogue.items():
                models.append({"model": model, "provider": name, "display_name": display})
        return models
