from __future__ import annotations

"""Adapter from ``ConfirmationChannel`` to the agent loop's handler contract.

The agent loop only knows an async predicate ``(tool_name, params) -> bool``.
``ChannelConfirmationHandler`` fills in what the channel needs on top of
that (danger level, warning text, task id) from a ``SecurityPolicy`` and the
owning loop.
"""

from typing import Any, Callable, Dict, Optional

from ..policy.security_policy import SecurityPolicy
from ..schemas.domain import ConfirmationRequest, new_id
from .channel import ConfirmationChannel


class ChannelConfirmationHandler:
    """Ask a ``ConfirmationChannel`` to confirm a tool call.

    Args:
        channel: The shared confirmation channel.
        policy: Supplies danger level and warning text per tool.
        task_id_provider: Returns the id of the task the call belongs to,
            typically ``lambda: loop.task_id``. Defaults to a fixed id.
    """

    def __init__(
        self,
        channel: ConfirmationChannel,
        policy: SecurityPolicy,
        task_id_provider: Optional[Callable[[], str]] = None,
    ) -> None:
        self._channel = channel
        self._policy = policy
        fallback = new_id()
        self._task_id = task_id_provider or (lambda: fallback)

    @property
    def channel(self) -> ConfirmationChannel:
        return self._channel

    def bind_task(self, task_id_provider: Callable[[], str]) -> None:
        self._task_id = task_id_provider

    async def __call__(self, tool_name: str, params: Dict[str, Any]) -> bool:
        request = ConfirmationRequest(
            tool_name=tool_name,
            parameters=params,
            danger_level=self._policy.danger_level(tool_name),
            description=self._policy.security_warning(tool_name) or "",
            task_id=self._task_id(),
        )
        return await self._channel.request_confirmation(request)
