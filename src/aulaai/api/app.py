"""
HTTP API for aula-ai.

It exposes the following endpoints:
- **GET /health**                    - liveness probe with provider / agent / Aula status.
- **POST /api/chat**                 - run an agent: {"query", "model", "agent", "conversation_id"}
- **GET /api/models**                - models of every configured provider.
- **GET /api/agents**                - registered agent types.
- **GET /api/conversations**         - most recent conversations.
- **GET /api/conversations/{id}**    - one conversation with its messages.
- **GET /api/aula/status**           - whether Aula credentials are configured.
- **GET /api/aula/children**         - basic data for all children on the Aula account.

The endpoints are plain ``def`` functions, so FastAPI runs each request in its worker thread pool;
concurrent queries therefore run concurrent agent sessions.
"""

import logging
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
    List,
)

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.responses import JSONResponse

from aulaai.agent.agents import AgentFactory
from aulaai.agent.model_client import ModelClientFactory
from aulaai.api.models import (
    AgentInfo,
    AulaStatus,
    ChatRequest,
    ChatResponse,
    ConversationDetail,
    ConversationSummary,
    ErrorResponse,
    HealthResponse,
    MessageOut,
    ModelInfo,
)
from aulaai.aula.client import AulaClient
from aulaai.common import (
    Style,
    emit,
)
from aulaai.config import (
    Settings,
    settings as default_settings,
)
from aulaai.core.errors import (
    ConfigurationError,
    UpstreamError,
)
from aulaai.memory.conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: ConversationStore | None = None,
    model_clients: ModelClientFactory | None = None,
    aula_client: AulaClient | None = None,
) -> FastAPI:
    """Build the FastAPI application around explicitly constructed collaborators."""
    settings = settings or default_settings
    store = store or InMemoryConversationStore(audit_path=settings.AUDIT_LOG_PATH)
    model_clients = model_clients or ModelClientFactory(settings)
    aula_client = aula_client or AulaClient(settings)
    agents = AgentFactory(settings, model_clients, store, aula_client=aula_client)

    app = FastAPI(title="Aula AI API", version="0.1.0", description="Agent chat backend")

    # ---------------------------------------------------------------------------
    # Error mapping
    # ---------------------------------------------------------------------------
    @app.exception_handler(ConfigurationError)
    async def configuration_error(_: Request, exc: ConfigurationError) -> JSONResponse:
        logger.warning("Configuration error: %s", exc)
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.exception_handler(UpstreamError)
    async def upstream_error(_: Request, exc: UpstreamError) -> JSONResponse:
        logger.error("Upstream error: %s", exc)
        return JSONResponse(
            status_code=502,
            content={
                "success": False,
                "error": f"An error occurred while processing your request: {exc}",
            },
        )

    # ---------------------------------------------------------------------------
    # Routes
    # ---------------------------------------------------------------------------
    @app.get("/health", response_model=HealthResponse, summary="Health check")
    def health() -> HealthResponse:
        """Report which providers, agents and integrations are usable."""
        models = model_clients.available_models()
        services: Dict[str, Any] = {
            "llm": {
                "status": "healthy" if models else "degraded",
                "available_models": len(models),
                "models": [m["display_name"] for m in models],
            },
            "agents": {
                "status": "healthy",
                "available_agents": [a["name"] for a in agents.available_agents()],
            },
            "aula": {
                "status": "configured" if aula_client.is_configured() else "not_configured",
                "configured": aula_client.is_configured(),
            },
        }
        return HealthResponse(
            status="healthy" if models else "degraded",
            timestamp=datetime.now(timezone.utc),
            services=services,
        )

    @app.post(
        "/api/chat",
        response_model=ChatResponse,
        responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
        summary="Send a query to an agent",
    )
    def chat(req: ChatRequest) -> ChatResponse:
        """Run *req.agent* on *req.query*, continuing or starting a conversation."""
        agent = agents.create(req.agent)

        if req.conversation_id is not None:
            conversation = store.get(req.conversation_id)
            if conversation is None:
                raise HTTPException(status_code=404, detail="Conversation not found")
        else:
            # Fail on an unconfigured model or agent before creating an empty conversation
            model_clients.create(req.model)
            agent.preflight()
            conversation = store.create(agent_type=req.agent, model=req.model)

        result = agent.process_query(req.query, conversation)
        return ChatResponse(
            response=result.answer,
            conversation_id=conversation.id,
            model_calls=result.model_calls,
            tool_batches=result.tool_batches,
            timestamp=datetime.now(timezone.utc),
        )

    @app.get("/api/models", response_model=List[ModelInfo], summary="List available models")
    def list_models() -> List[ModelInfo]:
        return [ModelInfo(**m) for m in model_clients.available_models()]

    @app.get("/api/agents", response_model=List[AgentInfo], summary="List agents")
    def list_agents() -> List[AgentInfo]:
        return [AgentInfo(**a) for a in agents.available_agents()]

    @app.get(
        "/api/conversations", response_model=List[ConversationSummary], summary="Conversations"
    )
    def list_conversations() -> List[ConversationSummary]:
        return [
            ConversationSummary(
                id=c.id,
                title=c.title or "New Conversation",
                agent_type=c.agent_type,
                model=c.model,
                last_message=c.messages[-1].content if c.messages else None,
                updated_at=c.updated_at,
            )
            for c in store.list_recent()
        ]

    @app.get(
        "/api/conversations/{conversation_id}",
        response_model=ConversationDetail,
        summary="Conversation history",
    )
    def get_conversation(conversation_id: int) -> ConversationDetail:
        conversation = store.get(conversation_id)
        if conversation is None:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return ConversationDetail(
            id=conversation.id,
            title=conversation.title,
            agent_type=conversation.agent_type,
            model=conversation.model,
            messages=[
                MessageOut(
                    role=m.role, content=m.content, is_user=m.role == "user", sent_at=m.sent_at
                )
                for m in conversation.messages
            ],
        )

    @app.get("/api/aula/status", response_model=AulaStatus, summary="Aula configuration")
    def aula_status() -> AulaStatus:
        if aula_client.is_configured():
            return AulaStatus(configured=True, message="Aula credentials are configured")
        return AulaStatus(
            configured=False,
            message="Aula credentials not configured. Please add AULA_USERNAME and AULA_PASSWORD "
            "to your .env file.",
        )

    @app.get("/api/aula/children", summary="Children on the Aula account")
    def aula_children() -> Dict[str, Any]:
        if not aula_client.is_configured():
            raise ConfigurationError("Aula credentials not configured")
        return {"success": True, "children": aula_client.fetch_basic_data()}

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in dev docker-compose).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = default_settings.LOG_LEVEL

    logger.info(
        "Starting Aula AI API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    emit(f"Aula AI API is running at http://localhost:{port}.", Style.OK)
    emit(f"Visit http://localhost:{port}/docs for API documentation.", Style.HEADING)
    uvicorn.run(
        "aulaai.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m aulaai.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
