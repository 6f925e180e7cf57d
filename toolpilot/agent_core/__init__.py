"""Agent core.

 This package contains the execution engine of toolpilot:

 - ``tools``: the tool contract and the ``ToolRegistry``.
 - ``policy``: the static ``SecurityPolicy`` (danger level and confirmation
   requirement per tool).
 - ``approvals``: the ``ConfirmationChannel`` that brokers human approval.
 - ``runtime``: the LangGraph ``AgentLoop`` and its collaborators.
 - ``factory``: wiring helpers.
 """

from .approvals import ChannelConfirmationHandler, ConfirmationChannel
from .errors import (
    AgentBusyError,
    ModelCallFailure,
    ToolAlreadyRegisteredError,
    ToolCallSyntaxError,
    ToolpilotError,
)
from .factory import build_registry, create_agent_loop
from .policy import SecurityPolicy, default_security_policy
from .runtime import AgentLoop, LoopDeps, ModelClient, PydanticAIModelClient
from .tools import BaseTool, FunctionTool, Tool, ToolRegistry

__all__ = [
    "AgentBusyError",
    "AgentLoop",
    "BaseTool",
    "ChannelConfirmationHandler",
    "ConfirmationChannel",
    "FunctionTool",
    "LoopDeps",
    "ModelCallFailure",
    "ModelClient",
    "PydanticAIModelClient",
    "SecurityPolicy",
    "Tool",
    "ToolAlreadyRegisteredError",
    "ToolCallSyntaxError",
    "ToolRegistry",
    "ToolpilotError",
    "build_registry",
    "create_agent_loop",
    "default_security_policy",
]
