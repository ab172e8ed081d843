"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agentloop import __version__
from agentloop.api.endpoints import router
from agentloop.clients.factory import create_transport
from agentloop.config import AgentSettings, get_settings
from agentloop.services.agent import ConversationEngine
from agentloop.services.session_manager import InMemorySessionManager
from agentloop.services.toolset import build_tool_registry
from agentloop.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(settings: AgentSettings | None = None) -> FastAPI:
    """Create the application; tools and the chat transport are set up on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        app_settings = settings or get_settings()

        async with AsyncExitStack() as stack:
            transport = create_transport(app_settings)
            registry = await build_tool_registry(app_settings, stack)

            app.state.settings = app_settings
            app.state.registry = registry
            app.state.session_manager = InMemorySessionManager(
                lambda: ConversationEngine(transport, app_settings.system_prompt),
                session_timeout_minutes=app_settings.session_timeout_minutes,
            )
            logger.info(
                f"Agent service ready: provider={app_settings.provider}, model={app_settings.model}, "
                f"tools={len(registry.list_tools())}"
            )
            yield

        logger.info("Agent service stopped")

    app = FastAPI(
        title="agentloop",
        description="A conversational agent service that lets a chat model call local and remote tools.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Conversation",
                "description": "Talk to the agent. Each session keeps its own history.",
            },
            {
                "name": "Tools",
                "description": "Tools available to the model, under their public names.",
            },
            {
                "name": "Health",
                "description": "Service health monitoring and status checks.",
            },
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("agentloop.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
