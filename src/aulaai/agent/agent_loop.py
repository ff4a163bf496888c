"""
Main orchestration loop for aula-ai.

One call to :func:`run_agent_loop` is one agent session:

    AwaitingModel -> ParsingResponse -> Done                       (no tool requests)
                                     -> ExecutingTools -> AwaitingModel

Every visit to ``AwaitingModel`` is exactly one model call.  After ``max_iterations`` tool batches
the loop makes one last model call and returns its text without parsing it, so a session costs at
most ``max_iterations + 1`` model calls.

Tool output goes back to the model in-band: for each request an ``assistant`` message announcing
the tool is appended, followed by a ``user`` message with ``"Tool result: ..."``.  There is no
separate tool role.
"""

from __future__ import annotations

import logging
from typing import (
    List,
    Protocol,
    Sequence,
)

from aulaai.agent.tool_executor import run_tool
from aulaai.core.schema import (
    AgentResult,
    ChatOptions,
    Message,
    ToolRequest,
)
from aulaai.tools import (
    ToolContext,
    ToolRegistry,
)
from aulaai.tools.tool_call_parser import ResponseParser

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5


class ChatModel(Protocol):
    """The single capability the loop needs from a model client."""

    def chat(self, messages: Sequence[Message], options: ChatOptions | None = None) -> str: ...


class AgentSession:
    """Working state of one loop run.  Never shared between queries."""

    def __init__(self, messages: Sequence[Message], context: ToolContext) -> None:
        system_count = sum(1 for m in messages if m.role == "system")
        if not messages or messages[0].role != "system" or system_count != 1:
            raise ValueError("Transcript must start with exactly one system message")
        self.transcript: List[Message] = list(messages)
        self.context = context
        self.model_calls = 0
        self.tool_batches = 0

    def append(self, message: Message) -> None:
        self.transcript.append(message)

    def record_tool_use(self, request: ToolRequest, result: str) -> None:
        self.append(Message.assistant(f"I'll use the {request.name} tool: {request.description}"))
        self.append(Message.user(f"Tool result: {result}"))


def _call_model(client: ChatModel, session: AgentSession, options: ChatOptions) -> str:
    session.model_calls += 1
    logger.debug("Model call %d with %d messages", session.model_calls, len(session.transcript))
    return client.chat(list(session.transcript), options)


def run_agent_loop(
    client: ChatModel,
    messages: Sequence[Message],
    parser: ResponseParser,
    registry: ToolRegistry,
    context: ToolContext,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    options: ChatOptions | None = None,
) -> AgentResult:
    """
    Drive the call-parse-execute cycle until the model stops asking for tools.

    Parameters
    ----------
    client:
        Model client; its errors (``UpstreamError``, ``ProviderUnavailable``) propagate.
    messages:
        Initial transcript: one system message, prior history, then the new user query.
    parser:
        Extracts tool requests from each model reply.
    registry:
        Tools available to this session.
    context:
        Session-scoped tool context (HTTP client, portal client, active child).
    max_iterations:
        Maximum number of tool batches before the forced final answer.
    options:
        Sampling options forwarded to every model call.

    Returns
    -------
    AgentResult
        Final answer, full transcript and call counters.
    """
    if max_iterations < 0:
        raise ValueError("max_iterations must be >= 0")

    options = options or ChatOptions()
    session = AgentSession(messages, context)

    while session.tool_batches < max_iterations:
        response = _call_model(client, session, options)

        requests = parser.parse(response)
        if not requests:
            session.append(Message.assistant(response))
            logger.info(
                "Agent finished after %d model calls and %d tool batches",
                session.model_calls,
                session.tool_batches,
            )
            return AgentResult(
                answer=response,
                transcript=session.transcript,
                model_calls=session.model_calls,
                tool_batches=session.tool_batches,
            )

        logger.info(
            "Model requested %d tools: %s", len(requests), [request.name for request in requests]
        )
        for request in requests:
            result = run_tool(registry, request, context)
            logger.debug("Tool '%s' returned: %s", request.name, result)
            session.record_tool_use(request, result)
        session.tool_batches += 1

    logger.warning("Iteration budget of %d exhausted, requesting final answer", max_iterations)
    response = _call_model(client, session, options)
    session.append(Message.assistant(response))
    return AgentResult(
        answer=response,
        transcript=session.transcript,
        model_calls=session.model_calls,
        tool_batches=session.tool_batches,
        budget_exhausted=True,
    )
