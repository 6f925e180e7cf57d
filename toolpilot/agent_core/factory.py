from __future__ import annotations

"""Convenience factories for wiring the agent core.

``create_agent_loop`` assembles an ``AgentLoop`` from its collaborators and
fills in everything left out from ``settings``:

- a ``PydanticAIModelClient`` for ``settings.agent.model``,
- the default ``SecurityPolicy`` table,
- a ``ChannelConfirmationHandler`` when a ``ConfirmationChannel`` is given,
  bound to the loop's current task id.
"""

from typing import Iterable, Literal, Optional

from .approvals import ChannelConfirmationHandler, ConfirmationChannel
from .policy import SecurityPolicy, default_security_policy
from .runtime import AgentLoop, LoopDeps, ModelClient, PydanticAIModelClient
from .runtime.models import ConfirmationHandler
from .tools import Tool, ToolRegistry


def build_registry(tools: Iterable[Tool]) -> ToolRegistry:
    """Build a ``ToolRegistry`` holding ``tools``."""
    reg = ToolRegistry()
    for tool in tools:
        reg.register(tool)
    return reg


def create_agent_loop(
    *,
    tools: ToolRegistry,
    model_client: Optional[ModelClient] = None,
    policy: Optional[SecurityPolicy] = None,
    channel: Optional[ConfirmationChannel] = None,
    confirmation_handler: Optional[ConfirmationHandler] = None,
    max_turns: Optional[int] = None,
    system_prompt: Optional[str] = None,
    skill_prompt: Optional[str] = None,
    working_directory: Optional[str] = None,
    unconfirmed_gate: Optional[Literal["allow", "deny"]] = None,
) -> AgentLoop:
    """
    Construct an ``AgentLoop``.

    Args:
        tools: The registry the loop may dispatch to.
        model_client: Defaults to a ``PydanticAIModelClient`` for the configured model.
        policy: Defaults to ``default_security_policy()``.
        channel: When given, gated calls are confirmed through it.
        confirmation_handler: An explicit handler; takes precedence over ``channel``.

    Remaining arguments are passed to ``AgentLoop`` unchanged.
    """
    policy = policy or default_security_policy()
    channel_handler: Optional[ChannelConfirmationHandler] = None
    handler = confirmation_handler
    if handler is None and channel is not None:
        channel_handler = ChannelConfirmationHandler(channel, policy)
        handler = channel_handler

    deps = LoopDeps(
        model_client=model_client or PydanticAIModelClient(),
        tools=tools,
        policy=policy,
        confirmation_handler=handler,
    )
    loop = AgentLoop(
        deps=deps,
        max_turns=max_turns,
        system_prompt=system_prompt,
        skill_prompt=skill_prompt,
        working_directory=working_directory,
        unconfirmed_gate=unconfirmed_gate,
    )
    if channel_handler is not None:
        channel_handler.bind_task(lambda: loop.task_id)
    return loop
