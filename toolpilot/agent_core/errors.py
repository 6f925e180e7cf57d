"""Exception types raised by the agent core.

Only ``ModelCallFailure`` crosses the agent loop boundary during a run. Tool
level problems (unknown tool, invalid parameters, tool faults, denied or
expired confirmations) are reported as ``ToolExecutionResult`` values and
folded back into the conversation instead.
"""

from __future__ import annotations


class ToolpilotError(Exception):
    """Base class for all toolpilot errors."""


class ModelCallFailure(ToolpilotError):
    """The generative model call failed; the run is aborted."""


class AgentBusyError(ToolpilotError):
    """``run()`` was called on a loop that already has a run in flight."""


class ToolAlreadyRegisteredError(ToolpilotError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool {name} is already registered")
        self.name = name


class ToolCallSyntaxError(ToolpilotError):
    """A tool-call directive in model output could not be parsed."""

    def __init__(self, message: str, position: int) -> None:
        super().__init__(f"{message} (at offset {position})")
        self.position = position
