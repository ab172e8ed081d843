"""API endpoints for the agent service."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request

from agentloop import __version__
from agentloop.config import AgentSettings
from agentloop.errors import AgentError, TransportError
from agentloop.models.conversation import (
    ConversationRequest,
    ConversationResponse,
    HealthResponse,
    ResetResponse,
    ToolInfo,
    ToolListResponse,
)
from agentloop.models.llm import ChatOptions
from agentloop.services.session_manager import InMemorySessionManager
from agentloop.tools.registry import ToolRegistry
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_session_manager(request: Request) -> InMemorySessionManager:
    return request.app.state.session_manager


def get_registry(request: Request) -> ToolRegistry:
    return request.app.state.registry


def get_app_settings(request: Request) -> AgentSettings:
    return request.app.state.settings


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(
    request: ConversationRequest,
    sessions: InMemorySessionManager = Depends(get_session_manager),
    registry: ToolRegistry = Depends(get_registry),
    settings: AgentSettings = Depends(get_app_settings),
) -> ConversationResponse:
    """Send a message to the session's agent and return its final answer."""
    if request.session_id:
        session = sessions.get_session(request.session_id)
        if not session:
            logger.warning(f"Invalid session ID provided: {request.session_id}")
            raise HTTPException(status_code=404, detail=f"Session not found: {request.session_id}")
    else:
        logger.info("Creating new session")
        session = sessions.get_or_create_session()

    session_id = session.session_id
    model = request.model or settings.model
    logger.info(f"Processing message for session {session_id}: {request.message[:50]}...")

    try:
        async with session.lock:
            result = await session.engine.run(
                model,
                request.message,
                tools=registry,
                max_iterations=settings.max_iterations,
                options=ChatOptions(temperature=settings.temperature),
            )
    except TransportError as e:
        logger.error(f"Backend unavailable for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=str(e)) from e
    except AgentError as e:
        logger.error(f"Agent run failed for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=str(e)) from e

    logger.info(f"Generated response for session {session_id}: {result.value[:50]}...")
    return ConversationResponse(response=result.value, session_id=session_id, iteration=result.iteration)


@router.post("/conversation/{session_id}/reset", response_model=ResetResponse, tags=["Conversation"])
async def reset_conversation(
    session_id: str,
    sessions: InMemorySessionManager = Depends(get_session_manager),
) -> ResetResponse:
    """Clear a session's history, keeping its system prompt."""
    session = sessions.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    async with session.lock:
        session.engine.clear_history()
    logger.info(f"Cleared history for session {session_id}")
    return ResetResponse(session_id=session_id, status="reset")


@router.delete("/conversation/{session_id}", status_code=204, tags=["Conversation"])
async def delete_conversation(
    session_id: str,
    sessions: InMemorySessionManager = Depends(get_session_manager),
) -> None:
    if not sessions.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    logger.info(f"Deleted session {session_id}")


@router.get("/tools", response_model=ToolListResponse, tags=["Tools"])
async def list_tools(registry: ToolRegistry = Depends(get_registry)) -> ToolListResponse:
    """List the tools offered to the model."""
    return ToolListResponse(
        tools=[
            ToolInfo(name=tool.name, description=tool.description, parameters=tool.parameters)
            for tool in registry.list_tools()
        ]
    )


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(sessions: InMemorySessionManager = Depends(get_session_manager)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        active_sessions=sessions.get_session_count(),
    )
