from __future__ import annotations

"""Model client used by the agent loop.

The loop talks to the generative model through the small ``ModelClient``
protocol: hand over the whole conversation, get one text reply back.

``PydanticAIModelClient`` implements it on top of ``pydantic_ai.Agent``. The
conversation is converted into pydantic-ai message history:

- the system turn becomes a ``SystemPromptPart`` in the first request,
- assistant turns become ``ModelResponse`` text parts,
- user turns between two assistant turns are grouped into one request,
- the trailing user turns (the newest input) become the run's user prompt.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from pydantic_ai import Agent as PydanticAIAgent
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelRequestPart,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model

from ...core.config import settings
from ..schemas.domain import ModelReply, Role, Turn

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """Protocol for the generative model behind the agent loop."""

    async def complete(self, turns: Sequence[Turn], *, model: Optional[str] = None) -> ModelReply: ...


def to_pydantic_ai_messages(turns: Sequence[Turn]) -> Tuple[str, List[ModelMessage], Optional[str]]:
    """
    Split a conversation into pydantic-ai inputs.

    Returns:
        ``(system_prompt, message_history, user_prompt)``. ``message_history``
        is empty until the first assistant turn; the system prompt is then
        carried inside it.
    """
    system_prompt = "\n\n".join(t.text for t in turns if t.role == Role.system)
    rest = [t for t in turns if t.role != Role.system]

    split = len(rest)
    while split > 0 and rest[split - 1].role == Role.user:
        split -= 1
    earlier, trailing = rest[:split], rest[split:]
    user_prompt = "\n\n".join(t.text for t in trailing) if trailing else None

    history: List[ModelMessage] = []
    pending_user: List[str] = []
    for turn in earlier:
        if turn.role == Role.user:
            pending_user.append(turn.text)
            continue
        parts: List[ModelRequestPart] = []
        if not history and system_prompt:
            parts.append(SystemPromptPart(content=system_prompt))
        parts.extend(UserPromptPart(content=text) for text in pending_user)
        pending_user = []
        if parts:
            history.append(ModelRequest(parts=parts))
        history.append(ModelResponse(parts=[TextPart(content=turn.text)]))
    return system_prompt, history, user_prompt


class PydanticAIModelClient:
    """``ModelClient`` backed by a pydantic-ai model.

    Args:
        model: A pydantic-ai model instance or a ``"<provider>:<model>"``
            identifier. Defaults to ``settings.agent.model``.
        model_settings: Optional pydantic-ai model settings (temperature,
            max_tokens, ...) applied to every call.
    """

    def __init__(
        self,
        model: Union[str, Model, None] = None,
        *,
        model_settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._model: Union[str, Model] = model if model is not None else settings.agent.model
        self._model_settings = model_settings

    @staticmethod
    def _model_name(model: Union[str, Model]) -> Optional[str]:
        if isinstance(model, str):
            return model
        return getattr(model, "model_name", None)

    async def complete(self, turns: Sequence[Turn], *, model: Optional[str] = None) -> ModelReply:
        target: Union[str, Model] = model or self._model
        system_prompt, history, user_prompt = to_pydantic_ai_messages(turns)

        if history or not system_prompt:
            agent = PydanticAIAgent(target, output_type=str)
        else:
            agent = PydanticAIAgent(target, output_type=str, system_prompt=system_prompt)

        logger.debug(f"Calling model {self._model_name(target)} with {len(history)} history message(s)")
        result = await agent.run(
            user_prompt,
            message_history=history or None,
            model_settings=self._model_settings,
        )
        return ModelReply(content=str(result.output), model=self._model_name(target))
