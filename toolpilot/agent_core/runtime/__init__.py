"""Agent loop runtime.

 The runtime drives a bounded conversation with a generative model:

 - ``AgentLoop`` runs the think/act cycle as a LangGraph state machine.
 - ``extract_tool_calls`` finds tool invocations in model output.
 - ``ModelClient`` / ``PydanticAIModelClient`` talk to the model.
 - ``EventEmitter`` publishes ``AgentEvent`` values to listeners.

 Collaborators are injected through ``LoopDeps``.
 """

from .engine import AgentLoop
from .events import AgentEventListener, EventEmitter
from .extraction import extract_tool_calls
from .model_client import ModelClient, PydanticAIModelClient, to_pydantic_ai_messages
from .models import ConfirmationHandler, LoopDeps

__all__ = [
    "AgentLoop",
    "AgentEventListener",
    "ConfirmationHandler",
    "EventEmitter",
    "LoopDeps",
    "ModelClient",
    "PydanticAIModelClient",
    "extract_tool_calls",
    "to_pydantic_ai_messages",
]
