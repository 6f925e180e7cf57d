"""Schemas and DTOs for the agent core."""

from .domain import (
    AgentEvent,
    AgentEventType,
    AgentState,
    ApprovalStatus,
    ConfirmationRequest,
    DangerLevel,
    ModelReply,
    ParameterSpec,
    ParameterType,
    PendingApproval,
    Role,
    SecurityRule,
    ToolDefinition,
    ToolExecutionResult,
    ToolInvocationRequest,
    Turn,
)

__all__ = [
    "AgentEvent",
    "AgentEventType",
    "AgentState",
    "ApprovalStatus",
    "ConfirmationRequest",
    "DangerLevel",
    "ModelReply",
    "ParameterSpec",
    "ParameterType",
    "PendingApproval",
    "Role",
    "SecurityRule",
    "ToolDefinition",
    "ToolExecutionResult",
    "ToolInvocationRequest",
    "Turn",
]
