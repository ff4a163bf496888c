"""End-to-end agent tests: prompt assembly, history, persistence and configuration checks."""

import json
from pathlib import Path

import httpx
import pytest
from conftest import (
    FakeModelFactory,
    ScriptedModel,
    make_settings,
    mock_http,
    no_network,
)

from aulaai.agent.agents import (
    AgentFactory,
    AulaAgent,
    ResearchAgent,
)
from aulaai.agent.model_client import ModelClientFactory
from aulaai.aula.client import AulaClient
from aulaai.core.errors import (
    ConfigurationError,
    ProviderUnavailable,
)
from aulaai.memory.conversation_store import (
    InMemoryConversationStore,
    make_title,
)

SEARCH_SETTINGS = {"GOOGLE_SEARCH_API_KEY": "g-key", "GOOGLE_SEARCH_ENGINE_ID": "engine"}


def _search_backend(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"items": [{"title": "DMI", "link": "https://dmi.dk", "snippet": "Sol og 21 grader"}]},
    )


def test_research_agent_end_to_end() -> None:
    """One search round, then an answer that is stored in the conversation."""

    model = ScriptedModel(['google_search query: "vejret i dag" query_number: 1', "Solrigt."])
    store = InMemoryConversationStore()
    agents = AgentFactory(
        make_settings(**SEARCH_SETTINGS),
        FakeModelFactory(model),
        store,
        http_client=mock_http(_search_backend),
    )
    conversation = store.create("research_agent", "gpt-4o")

    result = agents.create("research_agent").process_query("Hvordan er vejret?", conversation)

    assert result.answer == "Solrigt."
    assert result.model_calls == 2 and result.tool_batches == 1
    tool_result = model.calls[1][-1].content
    assert tool_result.startswith("Tool result: Search query 1: vejret i dag")
    assert "https://dmi.dk" in tool_result

    stored = store.get(conversation.id)
    assert [(m.role, m.content) for m in stored.messages] == [
        ("user", "Hvordan er vejret?"),
        ("assistant", "Solrigt."),
    ]
    assert stored.title == "Hvordan er vejret?"


def test_research_agent_requires_search_credentials() -> None:
    """Without a search key the research agent fails before any model call; nothing is stored."""

    model = ScriptedModel([])
    store = InMemoryConversationStore()
    conversation = store.create("research_agent", "gpt-4o")
    agent = AgentFactory(
        make_settings(), FakeModelFactory(model), store, http_client=mock_http(no_network)
    ).create("research_agent")

    with pytest.raises(ConfigurationError, match="Google Search API is not configured"):
        agent.process_query("Søg", conversation)
    assert model.calls == []
    assert store.get(conversation.id).messages == []


def test_system_prompt_lists_tools() -> None:
    agent = ResearchAgent(make_settings(), FakeModelFactory(), InMemoryConversationStore())
    prompt = agent.system_prompt()

    assert prompt.startswith("current_time: ")
    assert "Available tools:\n- google_search: " in prompt
    assert "- fetch_url: " in prompt


def test_history_is_limited_to_recent_turns() -> None:
    """Only the last HISTORY_LIMIT stored messages precede the new query."""

    store = InMemoryConversationStore()
    conversation = store.create("research_agent", "gpt-4o")
    for i in range(6):
        store.save_exchange(conversation.id, f"q{i}", f"a{i}")

    model = ScriptedModel(["ok"])
    agent = AgentFactory(
        make_settings(HISTORY_LIMIT=4, **SEARCH_SETTINGS), FakeModelFactory(model), store
    ).create("research_agent")
    agent.process_query("q6", conversation)

    sent = model.calls[0]
    assert sent[0].role == "system"
    assert [m.content for m in sent[1:]] == ["q4", "a4", "q5", "a5", "q6"]


def test_aula_agent_requires_credentials() -> None:
    """The Aula agent refuses to run unconfigured: no model call, nothing stored."""

    model = ScriptedModel([])
    store = InMemoryConversationStore()
    conversation = store.create("aula_agent", "gpt-4o")
    agent = AgentFactory(
        make_settings(),
        FakeModelFactory(model),
        store,
        aula_client=AulaClient(make_settings(), http_client=mock_http(no_network)),
    ).create("aula_agent")

    with pytest.raises(ConfigurationError, match="Aula integration is not configured"):
        agent.process_query("Hvad skal Emma i morgen?", conversation)
    assert model.calls == []
    assert store.get(conversation.id).messages == []


def test_unconfigured_provider_rejected_before_any_call() -> None:
    """With the real factory and no API key, the agent fails before the network."""

    store = InMemoryConversationStore()
    agent = ResearchAgent(
        make_settings(),
        ModelClientFactory(make_settings(), http_client=mock_http(no_network)),
        store,
    )
    with pytest.raises(ProviderUnavailable):
        agent.process_query("hi", store.create("research_agent", "gpt-4o"))


def test_unknown_agent_type() -> None:
    agents = AgentFactory(make_settings(), FakeModelFactory(), InMemoryConversationStore())
    with pytest.raises(ConfigurationError, match="Unknown agent type"):
        agents.create("poetry_agent")
    assert set(agents.agent_types()) >= {"research_agent", "aula_agent"}
    assert {a["type"] for a in agents.available_agents()} >= {"research_agent", "aula_agent"}


def test_aula_agent_registered_with_description() -> None:
    assert AulaAgent.agent_type == "aula_agent"
    assert "Aula" in AulaAgent.description


# ---------------------------------------------------------------------------
# Conversation store
# ---------------------------------------------------------------------------
def test_make_title_truncates() -> None:
    assert make_title("kort") == "kort"
    assert make_title("x" * 60) == "x" * 50 + "..."


def test_title_set_only_on_first_exchange() -> None:
    store = InMemoryConversationStore()
    conversation = store.create("research_agent", "gpt-4o")
    store.save_exchange(conversation.id, "first question", "answer")
    store.save_exchange(conversation.id, "second question", "answer")
    assert store.get(conversation.id).title == "first question"


def test_store_returns_copies() -> None:
    """Mutating a returned conversation does not change the stored one."""

    store = InMemoryConversationStore()
    conversation = store.create("research_agent", "gpt-4o")
    conversation.title = "changed"
    assert store.get(conversation.id).title is None
    with pytest.raises(KeyError):
        store.save_exchange(999, "q", "a")


def test_audit_log_appends_json_lines(tmp_path: Path) -> None:
    audit = tmp_path / "audit" / "chat.jsonl"
    store = InMemoryConversationStore(audit_path=audit)
    conversation = store.create("research_agent", "gpt-4o")
    store.save_exchange(conversation.id, "hej", "hej selv")

    [line] = audit.read_text(encoding="utf-8").splitlines()
    record = json.loads(line)
    assert record["conversation_id"] == conversation.id
    assert record["query"] == "hej" and record["reply"] == "hej selv"
