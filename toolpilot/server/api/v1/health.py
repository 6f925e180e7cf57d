"""
Health Check Endpoints.

This module provides basic system status endpoints (health, version)
used for monitoring and deployment verification.
"""

from fastapi import APIRouter

from toolpilot.server.services.deps import ChannelDep

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the API server.",
    response_description="Status object.",
)
async def health_check(channel: ChannelDep):
    """
    Health check endpoint.

    Reports the server status along with the number of pending confirmations
    and connected observers.
    """
    return {
        "status": "ok",
        "pending_confirmations": len(channel.get_pending()),
        "observers": channel.observer_count,
    }


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the API server.",
    response_description="Version object.",
)
async def version():
    """Get API version."""
    return {"version": "0.1.0", "schema_version": "v1"}
