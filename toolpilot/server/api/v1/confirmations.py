"""
Confirmations API Endpoints.

This module exposes the confirmation channel to human operators:

- ``GET /`` lists pending confirmations (string parameters truncated).
- ``POST /{id}/approve`` and ``POST /{id}/deny`` resolve one.
- ``WS /ws`` streams every channel broadcast and accepts decisions as
  ``{"type": "approve" | "deny", "id": ...}``, acknowledged with
  ``{"type": "ack", "id": ..., "ok": bool}``.
"""

import asyncio
import contextlib
import json
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from toolpilot.agent_core.approvals import ConfirmationChannel, ConfirmationMessage
from toolpilot.agent_core.schemas.domain import ApprovalStatus
from toolpilot.core.logging_config import get_logger
from toolpilot.server.schemas import ConfirmationDecision, InboundDecision
from toolpilot.server.services.deps import ChannelDep

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "",
    summary="List Pending Confirmations",
    description="Retrieve every confirmation that is still waiting for a decision.",
    response_description="A list of pending confirmations in wire form.",
)
async def list_confirmations(channel: ChannelDep) -> List[Dict[str, Any]]:
    return [channel.to_display(item) for item in channel.get_pending()]


def _decide(channel: ConfirmationChannel, approval_id: str, status: ApprovalStatus) -> ConfirmationDecision:
    if channel.get(approval_id) is None:
        raise HTTPException(status_code=404, detail="Confirmation not found")
    decided = channel.approve(approval_id) if status == ApprovalStatus.approved else channel.deny(approval_id)
    if not decided:
        raise HTTPException(status_code=409, detail="Confirmation already resolved")
    return ConfirmationDecision(id=approval_id, status=status)


@router.post(
    "/{approval_id}/approve",
    response_model=ConfirmationDecision,
    summary="Approve Confirmation",
    description="Approve a pending confirmation so the waiting tool call runs.",
    responses={
        404: {"description": "Confirmation not found"},
        409: {"description": "Confirmation already resolved"},
    },
)
async def approve_confirmation(approval_id: str, channel: ChannelDep):
    return _decide(channel, approval_id, ApprovalStatus.approved)


@router.post(
    "/{approval_id}/deny",
    response_model=ConfirmationDecision,
    summary="Deny Confirmation",
    description="Deny a pending confirmation; the tool call is reported to the agent as denied.",
    responses={
        404: {"description": "Confirmation not found"},
        409: {"description": "Confirmation already resolved"},
    },
)
async def deny_confirmation(approval_id: str, channel: ChannelDep):
    return _decide(channel, approval_id, ApprovalStatus.denied)


def _handle_inbound(channel: ConfirmationChannel, raw: str) -> ConfirmationMessage:
    try:
        decision = InboundDecision.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        return {"type": "error", "message": f"Invalid message: {e}"}
    ok = channel.approve(decision.id) if decision.type == "approve" else channel.deny(decision.id)
    return {"type": "ack", "id": decision.id, "ok": ok}


async def _pump(websocket: WebSocket, outbox: "asyncio.Queue[ConfirmationMessage]") -> None:
    while True:
        message = await outbox.get()
        await websocket.send_json(message)


async def _stop_sender(sender: "asyncio.Task[None]") -> None:
    """Cancel the sender task and collect its outcome, including a failed send on a closed socket."""
    sender.cancel()
    with contextlib.suppress(Exception, asyncio.CancelledError):
        await sender


@router.websocket("/ws")
async def confirmations_websocket(websocket: WebSocket, channel: ChannelDep):
    """
    Observer connection.

    Broadcasts may be produced on any thread, so the observer only hands them
    to this connection's event loop; a single sender task writes to the socket.
    """
    loop = asyncio.get_running_loop()
    outbox: "asyncio.Queue[ConfirmationMessage]" = asyncio.Queue()

    def observer(message: ConfirmationMessage) -> None:
        loop.call_soon_threadsafe(outbox.put_nowait, message)

    channel.attach(observer)
    sender = None
    try:
        await websocket.accept()
        logger.info("Confirmation observer connected")
        sender = asyncio.create_task(_pump(websocket, outbox))
        while True:
            raw = await websocket.receive_text()
            outbox.put_nowait(_handle_inbound(channel, raw))
    except WebSocketDisconnect:
        logger.info("Confirmation observer disconnected")
    finally:
        channel.detach(observer)
        if sender is not None:
            await _stop_sender(sender)
