from __future__ import annotations

"""Tool registry.

The registry maps a tool name to an executable ``Tool`` implementation and is
the single source of truth for what the model may call.

The agent loop uses this registry to:

- filter extracted invocations down to registered names,
- render the tool catalogue into the system prompt,
- validate and dispatch each invocation.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from ..errors import ToolAlreadyRegisteredError
from ..schemas.domain import ToolDefinition, ToolExecutionResult, ToolInvocationRequest
from .base import Tool
from .validation import ParameterValidation, build_params_model, validate_params

logger = logging.getLogger(__name__)


def tool_to_markdown(definition: ToolDefinition) -> str:
    """Render a tool definition as a markdown section for prompts."""
    lines = [f"### {definition.name}", "", definition.description, "", "**Parameters:**"]
    for param in definition.parameters:
        required = "(required)" if param.required else "(optional)"
        lines.append(f"- `{param.name}` ({param.type.value}) {required}: {param.description}")
    return "\n".join(lines) + "\n"


class ToolRegistry:
    """
    In-memory mapping of tool names to implementations.

    The registry is read-mostly after start-up and may be shared by several
    agent loops; dispatch does not mutate it.

    Notes:
        - ``register`` refuses to overwrite an existing name.
        - ``execute`` never raises for tool-level problems; it returns a failed
          ``ToolExecutionResult`` instead.
    """

    def __init__(self) -> None:
        """Initialize an empty tool registry."""
        self._tools: Dict[str, Tool] = {}
        self._schemas: Dict[str, Type[BaseModel]] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool implementation.

        Args:
            tool: The tool instance to register. Its ``definition.name`` is the key.

        Raises:
            ToolAlreadyRegisteredError: If a tool with the same name exists. The
                existing registration is left untouched.
        """
        name = tool.definition.name
        if name in self._tools:
            raise ToolAlreadyRegisteredError(name)
        schema = build_params_model(tool.definition)
        self._tools[name] = tool
        self._schemas[name] = schema
        logger.debug(f"Registered tool '{name}' with {len(tool.definition.parameters)} parameter(s)")

    def unregister(self, name: str) -> None:
        """Remove a tool; unknown names are ignored."""
        self._tools.pop(name, None)
        self._schemas.pop(name, None)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_all(self) -> List[Tool]:
        return list(self._tools.values())

    def get_definitions(self) -> List[ToolDefinition]:
        """Return the full catalogue, in registration order."""
        return [t.definition for t in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools)

    def describe(self) -> str:
        """Render every registered tool as markdown, for the system prompt."""
        return "\n".join(tool_to_markdown(d) for d in self.get_definitions())

    def validate_parameters(self, name: str, params: Dict[str, Any]) -> ParameterValidation:
        """
        Validate a parameter bag against a registered tool's declared schema.

        Args:
            name: The tool name.
            params: The raw parameter bag.

        Returns:
            A ``ParameterValidation``; ``error`` names every violated field.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ParameterValidation(valid=False, error=f"Tool {name} not found")
        return validate_params(tool.definition, self._schemas[name], params)

    async def execute(self, request: ToolInvocationRequest) -> ToolExecutionResult:
        """
        Resolve, validate and run a tool invocation.

        Args:
            request: The invocation extracted from model output.

        Returns:
            The tool's result, or a failed result when the tool is unknown, the
            parameters are invalid, or the tool raised.
        """
        tool = self._tools.get(request.name)
        if tool is None:
            return ToolExecutionResult.fail(f"Tool {request.name} not found")

        validation = self.validate_parameters(request.name, request.parameters)
        if not validation.valid:
            logger.info(f"Rejected call to '{request.name}': {validation.error}")
            return ToolExecutionResult.fail(validation.error or "Invalid parameters")

        try:
            result = await tool.execute(validation.params)
        except Exception as e:
            logger.warning(f"Tool '{request.name}' raised: {e}", exc_info=True)
            return ToolExecutionResult.fail(str(e) or e.__class__.__name__)

        if not isinstance(result, ToolExecutionResult):
            return ToolExecutionResult.fail(f"Tool {request.name} returned an invalid result")
        return result
