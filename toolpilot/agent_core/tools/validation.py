"""Parameter validation for tool calls.

Each ``ToolDefinition`` is compiled once into a pydantic model whose fields
mirror the declared ``ParameterSpec`` list:

- ``string``  -> ``StrictStr``
- ``number``  -> ``StrictInt | StrictFloat`` (booleans are rejected)
- ``boolean`` -> ``StrictBool``
- ``object``  -> ``Dict[str, Any]``
- ``array``   -> ``List[Any]``

An ``enum`` on a parameter narrows it to a ``Literal`` of the allowed values.
Optional parameters accept ``None`` and fall back to their declared default.
Undeclared keys are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError, create_model

from ..schemas.domain import ParameterSpec, ParameterType, ToolDefinition

_KIND_TYPES: Dict[ParameterType, Any] = {
    ParameterType.string: StrictStr,
    ParameterType.number: Union[StrictInt, StrictFloat],
    ParameterType.boolean: StrictBool,
    ParameterType.object: Dict[str, Any],
    ParameterType.array: List[Any],
}


class _ParamsBase(BaseModel):
    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class ParameterValidation:
    """Outcome of validating a parameter bag.

    Attributes:
        valid: Whether every declared constraint holds.
        params: The normalized parameter bag (defaults applied) when valid.
        error: ``Invalid parameters: <field>: <message>, ...`` when invalid.
    """

    valid: bool
    params: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


def _field_for(spec: ParameterSpec) -> Tuple[Any, Any]:
    annotation: Any = _KIND_TYPES[spec.type]
    if spec.enum:
        annotation = Literal[tuple(spec.enum)]
    if spec.required:
        return annotation, Field(..., alias=spec.name)
    return Optional[annotation], Field(None, alias=spec.name)


def build_params_model(definition: ToolDefinition) -> Type[BaseModel]:
    """Compile a tool definition into a pydantic model for its parameters."""
    # Parameter names are arbitrary strings; fields are positional and bound
    # to the declared name through an alias.
    fields = {f"p{i}": _field_for(spec) for i, spec in enumerate(definition.parameters)}
    return create_model(f"{definition.name}_params", __base__=_ParamsBase, **fields)


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "Invalid parameters: " + ", ".join(parts)


def validate_params(
    definition: ToolDefinition,
    model: Type[BaseModel],
    params: Dict[str, Any],
) -> ParameterValidation:
    """Validate ``params`` against a compiled parameters model.

    Args:
        definition: The tool definition the model was compiled from.
        model: The model returned by ``build_params_model``.
        params: The raw parameter bag extracted from model output.

    Returns:
        A ``ParameterValidation`` listing every violated field on failure.
    """
    if not isinstance(params, dict):
        return ParameterValidation(valid=False, error="Invalid parameters: <root>: Input should be an object")
    try:
        parsed = model.model_validate(params)
    except ValidationError as exc:
        return ParameterValidation(valid=False, error=_describe_errors(exc))

    data = {k: v for k, v in parsed.model_dump(by_alias=True, exclude_unset=True).items() if v is not None}
    for spec in definition.parameters:
        if spec.name not in data and spec.default is not None:
            data[spec.name] = spec.default
    return ParameterValidation(valid=True, params=data)
