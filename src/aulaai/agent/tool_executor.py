"""Dispatches tool requests to a :class:`ToolRegistry` and wraps errors."""

import logging

from aulaai.core.errors import (
    ToolExecutionError,
    UnknownToolError,
)
from aulaai.core.schema import ToolRequest
from aulaai.tools import (
    ToolContext,
    ToolRegistry,
)

logger = logging.getLogger(__name__)


def execute_tool(registry: ToolRegistry, request: ToolRequest, ctx: ToolContext) -> str:
    """
    Look up *request.name* in *registry* and invoke it with *request.parameters*.

    Parameters
    ----------
    registry:
        The tool set of the running agent.
    request:
        The parsed tool request.
    ctx:
        Session-scoped context handed to the tool as its first argument.

    Returns
    -------
    str
        Whatever text the tool function returns.

    Raises
    ------
    UnknownToolError
        If the tool is not registered.
    ToolExecutionError
        If the tool rejects its arguments or raises.
    """
    tool_fn = registry.get(request.name)
    if tool_fn is None:
        raise UnknownToolError(request.name)

    try:
        logger.debug("Executing tool '%s' with args=%s", request.name, request.parameters)
        return str(tool_fn(ctx, **request.parameters))
    except ToolExecutionError:
        raise
    except TypeError as exc:
        # Argument mismatch: give the caller a clean exception.
        logger.exception("Argument error while executing tool '%s'", request.name)
        raise ToolExecutionError(f"Invalid arguments for tool '{request.name}': {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", request.name)
        raise ToolExecutionError(str(exc)) from exc


def run_tool(registry: ToolRegistry, request: ToolRequest, ctx: ToolContext) -> str:
    """
    Fail-soft variant of :func:`execute_tool` used by the agent loop.

    Never raises: an unknown tool yields ``"Unknown tool: <name>"`` and any other failure yields
    ``"Error executing tool: <reason>"``, so the model can see and react to it.
    """
    try:
        return execute_tool(registry, request, ctx)
    except UnknownToolError as exc:
        logger.warning("Model requested unknown tool '%s'", exc.name)
        return str(exc)
    except ToolExecutionError as exc:
        logger.warning("Tool '%s' failed: %s", request.name, exc)
        return f"Error executing tool: {exc}"
