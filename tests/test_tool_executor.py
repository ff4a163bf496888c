"""
Basic sanity tests for the tool registry and executor.

Run with:
$ pytest -q
"""

import pytest

from aulaai.agent.tool_executor import (
    execute_tool,
    run_tool,
)
from aulaai.core.errors import (
    ToolExecutionError,
    UnknownToolError,
)
from aulaai.core.schema import ToolRequest
from aulaai.tools import (
    ToolContext,
    ToolRegistry,
)

TOOLS = ToolRegistry()


# This is a stub tool for testing purposes.
@TOOLS.register("add", "Add two integers")
def _add(ctx: ToolContext, a: int, b: int) -> str:
    """Return the sum of two integers (used only for tests)."""

    return str(a + b)


@TOOLS.register("explode")
def _explode(ctx: ToolContext) -> str:
    """Always fails."""

    raise RuntimeError("boom")


def test_execute_tool_success(tool_context: ToolContext) -> None:
    """Executor should return the correct value when the tool is valid."""

    request = ToolRequest(name="add", parameters={"a": 2, "b": 3})
    assert execute_tool(TOOLS, request, tool_context) == "5"


def test_execute_tool_missing(tool_context: ToolContext) -> None:
    """Executor should raise *UnknownToolError* for an unknown tool."""

    try:
        execute_tool(TOOLS, ToolRequest(name="not_a_tool"), tool_context)
    except UnknownToolError as exc:
        assert "not_a_tool" in str(exc)
    else:  # pragma: no cover
        raise AssertionError("UnknownToolError was not raised")


def test_execute_tool_bad_args(tool_context: ToolContext) -> None:
    """Executor should raise *ToolExecutionError* for wrong arguments."""

    try:
        execute_tool(TOOLS, ToolRequest(name="add", parameters={"a": 2}), tool_context)
    except ToolExecutionError as exc:
        assert "Invalid arguments" in str(exc)
    else:  # pragma: no cover
        raise AssertionError("ToolExecutionError was not raised")


def test_run_tool_unknown_is_text(tool_context: ToolContext) -> None:
    """The fail-soft wrapper reports an unknown tool as text."""

    assert run_tool(TOOLS, ToolRequest(name="ghost"), tool_context) == "Unknown tool: ghost"


def test_run_tool_failure_is_text(tool_context: ToolContext) -> None:
    """A tool exception becomes an error string instead of propagating."""

    result = run_tool(TOOLS, ToolRequest(name="explode"), tool_context)
    assert result == "Error executing tool: boom"


def test_registry_rejects_duplicates() -> None:
    """Registering the same name twice is a programming error."""

    registry = ToolRegistry()
    registry.register("once")(lambda ctx: "")
    with pytest.raises(ValueError):
        registry.register("once")


def test_registry_describe() -> None:
    """Descriptions feed the system prompt, falling back to the docstring."""

    assert TOOLS.describe().splitlines() == ["- add: Add two integers", "- explode: Always fails."]
    assert TOOLS.names() == ["add", "explode"] and len(TOOLS) == 2
    assert "add" in TOOLS and "nope" not in TOOLS
