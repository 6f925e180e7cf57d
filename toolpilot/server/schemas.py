"""
API Schemas.

Response and inbound message models of the confirmation server. Pending
confirmations themselves are sent in the channel's wire form
(``ConfirmationChannel.to_display``), shared with the broadcast protocol.
"""

from typing import Literal

from pydantic import BaseModel, Field

from toolpilot.agent_core.schemas.domain import ApprovalStatus


class ConfirmationDecision(BaseModel):
    """Outcome of an approve/deny request."""

    id: str = Field(..., description="Confirmation id")
    status: ApprovalStatus = Field(..., description="Status after the decision")


class InboundDecision(BaseModel):
    """A decision sent by a WebSocket observer."""

    type: Literal["approve", "deny"]
    id: str
