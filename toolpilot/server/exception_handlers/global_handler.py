"""
Global Exception Handler for the confirmation server.

Unhandled exceptions are logged with their request context and turned into a
JSON 500 response carrying an error id the client can quote when reporting.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from toolpilot.agent_core.errors import ToolpilotError
from toolpilot.core.logging_config import get_logger

logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Log an unhandled exception and answer with a generic 500.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    error_id = id(exc)
    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {exc}",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


async def toolpilot_error_handler(request: Request, exc: ToolpilotError) -> JSONResponse:
    """Domain errors that reach the HTTP layer are client-visible conflicts."""
    logger.warning(f"{type(exc).__name__} in {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc), "error_type": type(exc).__name__})


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI application."""
    app.add_exception_handler(ToolpilotError, toolpilot_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
