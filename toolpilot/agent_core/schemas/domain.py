from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import ConfigDict, Field

from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Role(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"


class DangerLevel(str, Enum):
    none = "none"
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"
    expired = "expired"


class AgentState(str, Enum):
    idle = "idle"
    thinking = "thinking"
    acting = "acting"
    done = "done"
    error = "error"


class AgentEventType(str, Enum):
    state_change = "state_change"
    thought = "thought"
    tool_call = "tool_call"
    tool_result = "tool_result"
    message = "message"
    error = "error"


class ParameterType(str, Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    object = "object"
    array = "array"


class Turn(BaseSchema):
    role: Role
    text: str


class ParameterSpec(BaseSchema):
    name: str
    description: str = ""
    type: ParameterType
    required: bool = False
    default: Any = None
    enum: Optional[List[str]] = None


class ToolDefinition(BaseSchema):
    name: str
    description: str
    parameters: List[ParameterSpec] = Field(default_factory=list)


class ToolInvocationRequest(BaseSchema):
    name: str
    id: str = Field(default_factory=new_id)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolExecutionResult(BaseSchema):
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, output: str, **metadata: Any) -> "ToolExecutionResult":
        return cls(success=True, output=output, metadata=metadata or None)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> "ToolExecutionResult":
        return cls(success=False, error=error, metadata=metadata or None)


class SecurityRule(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    tool_name: str
    danger_level: DangerLevel
    description: str
    requires_confirmation: bool


class ConfirmationRequest(BaseSchema):
    tool_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    danger_level: DangerLevel = DangerLevel.none
    description: str = ""
    task_id: str


class PendingApproval(BaseSchema):
    id: str = Field(default_factory=new_id)
    tool_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    danger_level: DangerLevel
    description: str = ""
    task_id: str
    created_at: datetime = Field(default_factory=_utc_now)
    status: ApprovalStatus = ApprovalStatus.pending


class ModelReply(BaseSchema):
    content: str
    model: Optional[str] = None


class AgentEvent(BaseSchema):
    type: AgentEventType
    task_id: str
    created_at: datetime = Field(default_factory=_utc_now)

    state: Optional[AgentState] = None
    thought: Optional[str] = None
    tool_call: Optional[ToolInvocationRequest] = None
    tool_result: Optional[ToolExecutionResult] = None
    message: Optional[str] = None
    error: Optional[str] = None
