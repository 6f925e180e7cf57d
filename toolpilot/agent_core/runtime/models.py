from __future__ import annotations

"""Runtime dependency bundle and LangGraph state types.

- ``LoopDeps`` collects the collaborators an ``AgentLoop`` needs.
- ``_LoopState`` is the mutable state passed between LangGraph nodes.

The conversation itself is not part of the graph state; it is owned by the
loop so it stays readable through ``get_messages()`` at any time.
"""

from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    NotRequired,
    Optional,
    Required,
    TypedDict,
)

from ..policy.security_policy import SecurityPolicy
from ..schemas.domain import ToolInvocationRequest
from ..tools.registry import ToolRegistry
from .model_client import ModelClient

ConfirmationHandler = Callable[[str, Dict[str, Any]], Awaitable[bool]]

TOOL_INSTRUCTIONS = """## Tools

You can call the tools below. To call a tool, write a directive on its own:

[TOOL_CALL]tool_name: {{"param": "value"}}[/TOOL_CALL]

or a fenced JSON block listing one or more calls:

```json
[{{"name": "tool_name", "parameters": {{"param": "value"}}}}]
```

Each result is sent back to you as a message. When the task is complete,
answer in plain text without any tool call.

{catalogue}"""


@dataclass(frozen=True)
class LoopDeps:
    """Dependency bundle for ``AgentLoop``.

    - ``model_client``: the generative model.
    - ``tools``: the registry used for extraction filtering and dispatch.
    - ``policy``: the security classification consulted before dispatch.
    - ``confirmation_handler``: optional async predicate asked to confirm
      gated tool calls.
    """

    model_client: ModelClient
    tools: ToolRegistry
    policy: SecurityPolicy
    confirmation_handler: Optional[ConfirmationHandler] = None


class _LoopState(TypedDict):
    """Mutable LangGraph state for a single run.

    Required keys:

    - ``turn``: number of model calls issued so far.
    - ``calls``: invocations extracted from the latest reply.
    - ``final_text``: the final answer once a reply carries no invocation.

    Optional keys:

    - ``model``: per-run model override.
    - ``_failure``: the exception raised by the model client, if any.
    """

    turn: Required[int]
    calls: Required[List[ToolInvocationRequest]]
    final_text: Required[Optional[str]]
    model: NotRequired[Optional[str]]
    _failure: NotRequired[Optional[BaseException]]
