"""Tool contract, parameter validation and the tool registry.

 A *tool* is the execution unit behind a model-requested invocation.

 - The model asks for a tool by name with a JSON parameter bag.
 - The runtime resolves the name through ``ToolRegistry``.
 - The registry validates the bag against the tool's declared
   ``ParameterSpec`` list and awaits ``Tool.execute``.

 This package exports:

 - ``Tool``: protocol for async tool execution.
 - ``BaseTool`` / ``FunctionTool``: helpers for writing tools.
 - ``ToolRegistry``: name -> tool mapping with validation and dispatch.
 - ``ParameterValidation``: outcome of parameter validation.
 """

from .base import BaseTool, FunctionTool, Tool
from .registry import ToolRegistry, tool_to_markdown
from .validation import ParameterValidation

__all__ = [
    "Tool",
    "BaseTool",
    "FunctionTool",
    "ToolRegistry",
    "ParameterValidation",
    "tool_to_markdown",
]
