"""
Schema definitions for model <-> agent <-> tool messages.

These data models serve as the contract between the model client, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from typing import (
    Any,
    Dict,
    List,
    Literal,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """One entry of a transcript.  Frozen: the loop only ever appends."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role="assistant", content=content)


class ChatOptions(BaseModel):
    """Sampling options forwarded to the model provider."""

    temperature: float = 0.7
    max_tokens: int = 2000


class ToolRequest(BaseModel):
    """A tool invocation extracted from model text."""

    name: str = Field(..., description="Registered tool name")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Keyword arguments for the tool"
    )
    description: str = Field("", description="Human-readable trace of why the tool is invoked")


class AgentResult(BaseModel):
    """Outcome of one run of the agent loop."""

    answer: str
    transcript: List[Message]
    model_calls: int = 0
    tool_batches: int = 0
    budget_exhausted: bool = False
