"""
Tool registries for aula-ai.

Each agent owns a :class:`ToolRegistry`.  Tools are registered with a decorator and looked up by
name.  Every tool function takes a :class:`ToolContext` as its first argument followed by keyword
parameters, and returns text:

    RESEARCH_TOOLS = ToolRegistry()

    @RESEARCH_TOOLS.register("fetch_url", "Fetch and return the plain-text of any URL")
    def fetch_url(ctx: ToolContext, url: str) -> str:
        ...
"""

import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Callable,
    Dict,
    List,
)

import httpx

from aulaai.aula.client import AulaClient
from aulaai.config import Settings

logger = logging.getLogger(__name__)

ToolFn = Callable[..., str]


@dataclass
class SessionState:
    """Mutable state owned by a single agent session."""

    active_child: str | None = None


@dataclass
class ToolContext:
    """Everything a tool may touch while one agent session runs."""

    settings: Settings
    http: httpx.Client
    aula: AulaClient | None = None
    state: SessionState = field(default_factory=SessionState)


class ToolRegistry:
    """Name -> tool function mapping with descriptions for the system prompt."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolFn] = {}
        self._descriptions: Dict[str, str] = {}

    def register(self, name: str, description: str = "") -> Callable[[ToolFn], ToolFn]:
        """
        Register a tool function with the given name.

        Parameters
        ----------
        name: str
            The name of the tool.  This must be unique within the registry and is the marker the
            model writes to request the tool.
        description: str
            One-line description shown to the model.  Falls back to the function docstring.
        Returns
        -------
        Callable
            A decorator that registers the function with the given name.
        Raises
        ------
        ValueError
            If a function with the same name is already registered.
        """
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered.")
        logger.debug("Registering tool '%s'", name)

        def wrapper(fn: ToolFn) -> ToolFn:
            self._tools[name] = fn
            self._descriptions[name] = description or (fn.__doc__ or "").strip()
            return fn

        return wrapper

    def get(self, name: str) -> ToolFn | None:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def describe(self) -> str:
        """Render the ``Available tools`` block used in system prompts."""
        return "\n".join(f"- {name}: {desc}" for name, desc in self._descriptions.items())
