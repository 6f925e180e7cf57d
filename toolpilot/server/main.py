"""
Main Application Entry Point.

This module builds the FastAPI application that exposes a
``ConfirmationChannel`` to human operators: CORS middleware, exception
handlers, Logfire instrumentation and the API routers.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolpilot.agent_core.approvals import ConfirmationChannel
from toolpilot.core.config import settings
from toolpilot.core.logging_config import get_logger, setup_logging
from toolpilot.core.monitoring import initialize_logfire

from .api.v1 import confirmations, health
from .core import constant
from .exception_handlers import setup_exception_handlers

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    On shutdown every pending confirmation is dropped so that waiting agent
    loops resolve as not approved instead of hanging until their timeout.
    """
    logger.info("Starting up toolpilot confirmation server...")

    yield

    dropped = app.state.confirmation_channel.clear()
    logger.info(f"Shutting down toolpilot confirmation server ({dropped} pending confirmation(s) dropped)")


def create_app(channel: Optional[ConfirmationChannel] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        channel: The channel to expose. Agent loops that should be confirmed
            through this server must be wired to the same channel. A new
            channel is created when omitted.
    """
    application = FastAPI(
        title=constant.PROJECT_NAME,
        description="""
        toolpilot Confirmation API

        Lists tool calls waiting for human confirmation, resolves them, and
        streams confirmation events to connected observers over WebSocket.
        """,
        version="0.1.0",
        openapi_url=f"{constant.API_V1_STR}/openapi.json",
        docs_url=f"{constant.API_V1_STR}/docs",
        redoc_url=f"{constant.API_V1_STR}/redoc",
        lifespan=lifespan,
    )
    application.state.confirmation_channel = channel or ConfirmationChannel()

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors.origins,
        allow_credentials=settings.server.cors.allow_credentials,
        allow_methods=settings.server.cors.allow_methods,
        allow_headers=settings.server.cors.allow_headers,
    )
    setup_exception_handlers(application)
    initialize_logfire(application)

    application.include_router(health.router, tags=["health"])
    application.include_router(
        confirmations.router,
        prefix=f"{constant.API_V1_STR}/confirmations",
        tags=["confirmations"],
    )
    return application


app = create_app()


def run() -> None:
    """Serve ``app`` with uvicorn on the configured host and port."""
    import uvicorn

    logger.info(f"Serving toolpilot confirmation API on {settings.server.host}:{settings.server.port}")
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    run()
