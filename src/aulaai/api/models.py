"""
Pydantic models for aula-ai API requests and responses.
This module defines the request and response schemas used by the aula-ai API.
"""

from datetime import datetime
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from aulaai.core.schema import Role


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ChatRequest(BaseModel):
    """Incoming user query."""

    query: str = Field(..., min_length=1, max_length=2000, description="User query")
    model: str = Field(..., description="Model identifier, e.g. gpt-4o or anthropic:claude-...")
    agent: str = Field(..., description="Agent type, e.g. research_agent")
    conversation_id: Optional[int] = Field(None, description="Existing conversation to continue")


class ChatResponse(BaseModel):
    """API response returned to the caller."""

    success: bool = True
    response: str
    conversation_id: int
    model_calls: int
    tool_batches: int
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error payload for every failed request."""

    success: bool = False
    error: str


class ModelInfo(BaseModel):
    model: str
    provider: str
    display_name: str


class AgentInfo(BaseModel):
    type: str
    name: str
    description: str


class MessageOut(BaseModel):
    role: Role
    content: str
    is_user: bool
    sent_at: datetime


class ConversationSummary(BaseModel):
    id: int
    title: str
    agent_type: str
    model: str
    last_message: Optional[str] = None
    updated_at: datetime


class ConversationDetail(BaseModel):
    id: int
    title: Optional[str] = None
    agent_type: str
    model: str
    messages: List[MessageOut]


class AulaStatus(BaseModel):
    configured: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    services: Dict[str, Any]
