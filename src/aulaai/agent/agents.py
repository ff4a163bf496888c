"""
Agents: a system prompt plus a tool set, used to answer one user query at a time.

Agents are registered by type with :func:`register_agent` and built by :class:`AgentFactory`,
which receives every collaborator (settings, model client factory, conversation store, portal
client) explicitly.
"""

import logging
from abc import ABC
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Callable,
    ClassVar,
    Dict,
    List,
    Sequence,
    Type,
)

import httpx

from aulaai.agent.agent_loop import run_agent_loop
from aulaai.agent.model_client import (
    BaseModelClient,
    ModelClientFactory,
)
from aulaai.aula.client import AulaClient
from aulaai.config import Settings
from aulaai.core.errors import ConfigurationError
from aulaai.core.schema import (
    AgentResult,
    Message,
)
from aulaai.memory.conversation_store import (
    Conversation,
    ConversationStore,
)
from aulaai.tools import (
    ToolContext,
    ToolRegistry,
)
from aulaai.tools.aula import (
    AULA_RULES,
    AULA_TOOLS,
)
from aulaai.tools.research import (
    RESEARCH_RULES,
    RESEARCH_TOOLS,
)
from aulaai.tools.tool_call_parser import (
    ResponseParser,
    ToolRule,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_AGENT_REGISTRY: dict[str, Type["BaseAgent"]] = {}


def register_agent(agent_type: str) -> Callable:
    """Decorator to register an agent class under *agent_type*."""

    def wrapper(cls: Type["BaseAgent"]) -> Type["BaseAgent"]:
        cls.agent_type = agent_type
        _AGENT_REGISTRY[agent_type] = cls
        return cls

    return wrapper


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseAgent(ABC):
    """Builds the transcript, runs the tool loop and persists the exchange."""

    agent_type: ClassVar[str] = ""
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    PROMPT: ClassVar[str] = ""
    TOOLS: ClassVar[ToolRegistry | None] = None
    RULES: ClassVar[Sequence[ToolRule]] = ()

    def __init__(
        self,
        settings: Settings,
        model_clients: ModelClientFactory,
        store: ConversationStore,
        aula_client: AulaClient | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings
        self.model_clients = model_clients
        self.store = store
        self.aula_client = aula_client
        self.http_client = http_client
        self.parser = ResponseParser(self.RULES)

    def system_prompt(self) -> str:
        current_time = datetime.now(timezone.utc).isoformat()
        prompt = f"current_time: {current_time}\n{self.PROMPT.rstrip()}"
        if self.TOOLS:
            prompt += f"\n\nAvailable tools:\n{self.TOOLS.describe()}"
        return prompt

    def preflight(self) -> None:
        """Raise :class:`ConfigurationError` if a capability this agent needs is missing."""

    def build_messages(self, conversation_id: int, query: str) -> List[Message]:
        """System prompt, the most recent stored turns, then the new query."""
        messages = [Message.system(self.system_prompt())]
        for stored in self.store.history(conversation_id, limit=self.settings.HISTORY_LIMIT):
            if stored.role != "system":
                messages.append(Message(role=stored.role, content=stored.content))
        messages.append(Message.user(query))
        return messages

    def run(self, client: BaseModelClient, messages: List[Message]) -> AgentResult:
        """Answer from *messages*, using tools when this agent has any."""
        if not self.TOOLS:
            answer = client.chat(messages)
            return AgentResult(
                answer=answer,
                transcript=messages + [Message.assistant(answer)],
                model_calls=1,
            )

        http = self.http_client or httpx.Client(
            timeout=self.settings.TOOL_TIMEOUT, follow_redirects=True
        )
        context = ToolContext(settings=self.settings, http=http, aula=self.aula_client)
        try:
            return run_agent_loop(
                client,
                messages,
                self.parser,
                self.TOOLS,
                context,
                max_iterations=self.settings.MAX_ITERATIONS,
            )
        finally:
            if self.http_client is None:
                http.close()

    def process_query(self, query: str, conversation: Conversation) -> AgentResult:
        """
        Answer *query* within *conversation* and persist the exchange.

        Raises
        ------
        ConfigurationError
            If the model provider or a capability of this agent is not configured.  Raised before
            any network call.
        UpstreamError
            If a model call fails.
        """
        client = self.model_clients.create(conversation.model)
        self.preflight()

        messages = self.build_messages(conversation.id, query)
        logger.info(
            "Agent '%s' handling query in conversation %d with %s (%d messages)",
            self.agent_type,
            conversation.id,
            conversation.model,
            len(messages),
        )
        result = self.run(client, messages)
        self.store.save_exchange(conversation.id, query, result.answer)
        return result


# ---------------------------------------------------------------------------
# Concrete agents
# ---------------------------------------------------------------------------
@register_agent("research_agent")
class ResearchAgent(BaseAgent):
    """Multi-step web research."""

    name = "Research Agent"
    description = "Performs multi-step Google searches and fetches page content for research queries"
    PROMPT = """\
You're a helpful research assistant, you are an expert in research.
If you are given a question you write strong keywords to do 3-5 searches in total
(each with a query_number) and then combine the results. If some of the results seem relevant,
use the fetch_url tool to get the full content of the page.
To search, write: google_search query: "<keywords>" query_number: <n>
To fetch a page, write: fetch_url url: "<url>"
"""
    TOOLS = RESEARCH_TOOLS
    RULES = RESEARCH_RULES

    def preflight(self) -> None:
        if not self.settings.GOOGLE_SEARCH_API_KEY or not self.settings.GOOGLE_SEARCH_ENGINE_ID:
            raise ConfigurationError("Google Search API is not configured")


@register_agent("aula_agent")
class AulaAgent(BaseAgent):
    """Answers questions about the family's children using the Aula school portal."""

    name = "Aula Agent"
    description = (
        "Integrates with the Danish Aula school system to fetch profiles, messages, calendar "
        "events, etc."
    )
    PROMPT = """\
You're a helpful research assistant. You're an expert in navigating the Danish school communication \
system, Aula.
Only use the tools if the user is talking about the school, institution or about their kids.
Make sure to set the active child before using any of the tools (except for fetch_basic_data).
To select a child, write: set_active_child "<first name>"
To read the calendar, write: fetch_calendar <days>
"""
    TOOLS = AULA_TOOLS
    RULES = AULA_RULES

    def preflight(self) -> None:
        if self.aula_client is None or not self.aula_client.is_configured():
            raise ConfigurationError(
                "Aula integration is not configured. Please check your Aula credentials in the "
                "settings."
            )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
class AgentFactory:
    """Creates agents by type, wiring in the shared collaborators."""

    def __init__(
        self,
        settings: Settings,
        model_clients: ModelClientFactory,
        store: ConversationStore,
        aula_client: AulaClient | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings
        self.model_clients = model_clients
        self.store = store
        self.aula_client = aula_client
        self.http_client = http_client

    def create(self, agent_type: str) -> BaseAgent:
        cls = _AGENT_REGISTRY.get(agent_type)
        if cls is None:
            raise ConfigurationError(f"Unknown agent type: {agent_type}")
        return cls(
            self.settings,
            self.model_clients,
            self.store,
            aula_client=self.aula_client,
            http_client=self.http_client,
        )

    @staticmethod
    def agent_types() -> List[str]:
        return list(_AGENT_REGISTRY)

    def available_agents(self) -> List[Dict[str, str]]:
        return [
            {"type": agent_type, "name": cls.name, "description": cls.description}
            for agent_type, cls in _AGENT_REGISTRY.items()
        ]
