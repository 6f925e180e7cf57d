from __future__ import annotations

"""Tool protocol and helper base classes.

A tool is the concrete execution unit behind a model-requested invocation.

The agent loop never calls a tool directly: it hands a
``ToolInvocationRequest`` to the ``ToolRegistry`` which resolves the tool by
name, validates the parameter bag against ``ToolDefinition.parameters`` and
then awaits ``Tool.execute``.

Tools should:

- declare every parameter they read in their ``ToolDefinition``,
- return a ``ToolExecutionResult`` rather than raising for expected failures,
- avoid performing policy decisions themselves (policy is enforced by the
  loop before dispatch).
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable

from ..schemas.domain import ParameterSpec, ToolDefinition, ToolExecutionResult

ToolFunction = Callable[[Dict[str, Any]], Awaitable[Any]]


@runtime_checkable
class Tool(Protocol):
    """Protocol for tool implementations."""

    definition: ToolDefinition

    async def execute(self, params: Dict[str, Any]) -> ToolExecutionResult: ...


class BaseTool(ABC):
    """Abstract base class for tools with a static definition.

    Subclasses set ``name``, ``description`` and ``parameters`` as class
    attributes and implement ``execute``.
    """

    name: str = ""
    description: str = ""
    parameters: List[ParameterSpec] = []

    def __init__(self) -> None:
        self.definition = ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=list(self.parameters),
        )

    @abstractmethod
    async def execute(self, params: Dict[str, Any]) -> ToolExecutionResult:
        """Execute the tool with an already validated parameter bag."""

    async def __call__(self, params: Dict[str, Any]) -> ToolExecutionResult:
        return await self.execute(params)


class FunctionTool:
    """Adapt an async function into a ``Tool``.

    The function receives the validated parameter bag. A returned
    ``ToolExecutionResult`` is passed through unchanged; any other value is
    converted to text and wrapped in a successful result.
    """

    def __init__(
        self,
        fn: ToolFunction,
        *,
        name: str,
        description: str,
        parameters: Optional[List[ParameterSpec]] = None,
    ) -> None:
        self._fn = fn
        self.definition = ToolDefinition(name=name, description=description, parameters=list(parameters or []))

    async def execute(self, params: Dict[str, Any]) -> ToolExecutionResult:
        out = await self._fn(params)
        if isinstance(out, ToolExecutionResult):
            return out
        return ToolExecutionResult.ok("" if out is None else str(out))
