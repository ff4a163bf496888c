"""Configuration self-check: providers, agents, Aula, and an optional sample query."""

import logging

from aulaai.agent.agents import AgentFactory
from aulaai.agent.model_client import ModelClientFactory
from aulaai.aula.client import AulaClient
from aulaai.common import (
    Style,
    emit,
    report,
)
from aulaai.config import Settings
from aulaai.core.errors import (
    ConfigurationError,
    UpstreamError,
)
from aulaai.memory.conversation_store import InMemoryConversationStore

logger = logging.getLogger(__name__)


def run_check(
    settings: Settings,
    query: str | None = None,
    agent_type: str = "research_agent",
    model: str | None = None,
) -> bool:
    """
    Print the configuration status and, when *query* is given, answer it once.

    Returns *False* if the sample query failed, *True* otherwise.
    """
    model_clients = ModelClientFactory(settings)
    aula_client = AulaClient(settings)
    store = InMemoryConversationStore()
    agents = AgentFactory(settings, model_clients, store, aula_client=aula_client)

    emit("LLM providers", Style.HEADING)
    models = model_clients.available_models()
    report("Model providers", bool(models), "add OPENAI_API_KEY, ANTHROPIC_API_KEY or TGI_ENDPOINT")
    for info in models:
        emit(f"      {info['display_name']} ({info['provider']})", Style.OK)

    emit("Agents", Style.HEADING)
    for info in agents.available_agents():
        hint = ""
        try:
            agents.create(info["type"]).preflight()
        except ConfigurationError as exc:
            hint = str(exc)
        report(info["name"], not hint, hint)

    emit("Aula", Style.HEADING)
    report("Aula credentials", aula_client.is_configured(), "AULA_USERNAME / AULA_PASSWORD")

    if not query:
        return True

    model = model or settings.DEFAULT_MODEL
    emit(f"Sample chat with {agent_type} on {model}: {query}", Style.HEADING)
    try:
        agent = agents.create(agent_type)
        conversation = store.create(agent_type=agent_type, model=model)
        result = agent.process_query(query, conversation)
    except (ConfigurationError, UpstreamError) as exc:
        emit(f"  Sample chat failed: {exc}", Style.ERROR)
        return False

    emit(result.answer, Style.ANSWER)
    emit(
        f"  {result.model_calls} model calls, {result.tool_batches} tool batches", Style.OK
    )
    return True
