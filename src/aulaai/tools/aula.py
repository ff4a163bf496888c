"""
Aula tools.  All of them need :attr:`ToolContext.aula`; all but ``set_active_child`` and
``fetch_basic_data`` also need a child selected earlier in the same session.
"""

import json
import logging
import re
from typing import Any

from aulaai.core.errors import (
    ConfigurationError,
    ToolExecutionError,
)
from aulaai.tools import (
    ToolContext,
    ToolRegistry,
)
from aulaai.tools.tool_call_parser import ToolRule

logger = logging.getLogger(__name__)

AULA_TOOLS = ToolRegistry()

DEFAULT_CALENDAR_DAYS = 14

AULA_RULES = (
    ToolRule(
        name="set_active_child",
        describe="Set active child to: {name}",
        pattern=re.compile(r"set_active_child.*?[\"']([^\"']+)[\"']"),
        convert=lambda m: {"name": m.group(1)},
    ),
    ToolRule(name="fetch_basic_data", describe="Fetch basic data for all children"),
    ToolRule(name="fetch_daily_overview", describe="Fetch daily overview for active child"),
    ToolRule(name="fetch_messages", describe="Fetch messages for active child"),
    ToolRule(
        name="fetch_calendar",
        describe="Fetch calendar for next {days} days",
        pattern=re.compile(r"fetch_calendar.*?(\d+)"),
        convert=lambda m: {"days": int(m.group(1))},
        defaults={"days": DEFAULT_CALENDAR_DAYS},
    ),
)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=4, ensure_ascii=False)


def _portal(ctx: ToolContext):
    if ctx.aula is None or not ctx.aula.is_configured():
        raise ConfigurationError("Aula integration is not configured")
    return ctx.aula


def _active_child_id(ctx: ToolContext) -> Any:
    if not ctx.state.active_child:
        raise ToolExecutionError("No active child set. Use set_active_child first.")
    return _portal(ctx).child_id(ctx.state.active_child)


@AULA_TOOLS.register(
    "set_active_child",
    "Set which child profile we're operating on. Expects a single string argument: the child's "
    "name.",
)
def set_active_child(ctx: ToolContext, name: str) -> str:
    _portal(ctx).child_id(name)  # raises if the child does not exist
    ctx.state.active_child = name
    logger.info("Active child set to '%s'", name)
    return f"Active child set to: {name}"


@AULA_TOOLS.register(
    "fetch_basic_data", "Return some basic info on all children's {name: institution}."
)
def fetch_basic_data(ctx: ToolContext) -> str:
    return "Children data: " + _dump(_portal(ctx).fetch_basic_data())


@AULA_TOOLS.register(
    "fetch_daily_overview",
    "Return today's presence overview for the active child. Requires active child to be set.",
)
def fetch_daily_overview(ctx: ToolContext) -> str:
    child_id = _active_child_id(ctx)
    return "Daily overview: " + _dump(_portal(ctx).fetch_daily_overview(child_id))


@AULA_TOOLS.register(
    "fetch_messages",
    "Fetch the latest unread message for the active child. Requires active child to be set.",
)
def fetch_messages(ctx: ToolContext) -> str:
    _active_child_id(ctx)
    return "Messages: " + _dump(_portal(ctx).fetch_messages())


@AULA_TOOLS.register(
    "fetch_calendar",
    "Fetch upcoming calendar events for the next N days. Expects an integer argument. Requires "
    "active child to be set.",
)
def fetch_calendar(ctx: ToolContext, days: int = DEFAULT_CALENDAR_DAYS) -> str:
    child_id = _active_child_id(ctx)
    events = _portal(ctx).fetch_calendar(child_id, days)
    return f"Calendar events for next {days} days: " + _dump(events)
