"""Tool registry: declared operations, argument validation, dispatch."""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import UnknownOperation, ValidationError

M = TypeVar("M", bound=BaseModel)
Row = Dict[str, Any]


@dataclass(frozen=True)
class InvocationResult:
    summary: str
    rows: List[Row] = field(default_factory=list)

    def to_result(self) -> Dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.summary}],
            "structuredContent": {"rows": self.rows},
        }


def validate_arguments(model: Type[M], raw: Any) -> M:
    """Apply ``model`` to caller input, raising ValidationError with field detail."""
    if not isinstance(raw, Mapping):
        raise ValidationError([{
            "field": "",
            "message": "arguments must be an object",
            "type": "model_type",
        }])
    try:
        return model.model_validate(dict(raw))
    except PydanticValidationError as exc:
        raise ValidationError([
            {
                "field": ".".join(str(p) for p in err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]) from None


def _inline_refs(node: Any, defs: Mapping[str, Any]) -> Any:
    # published schemas carry no $ref/$defs
    if isinstance(node, list):
        return [_inline_refs(n, defs) for n in node]
    if not isinstance(node, dict):
        return node
    out: Dict[str, Any] = {}
    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/$defs/"):
        out.update(_inline_refs(defs[ref.split("/")[-1]], defs))
    for k, v in node.items():
        if k in ("$ref", "$defs"):
            continue
        out[k] = _inline_refs(v, defs)
    all_of = out.get("allOf")
    if isinstance(all_of, list) and len(all_of) == 1 and isinstance(all_of[0], dict):
        del out["allOf"]
        out = {**all_of[0], **out}
    return out


def json_schema_for(model: Type[BaseModel]) -> Dict[str, Any]:
    raw = model.model_json_schema(by_alias=True)
    schema = _inline_refs(raw, raw.get("$defs", {}))
    schema.setdefault("required", [])
    schema["additionalProperties"] = False
    return schema


@dataclass(frozen=True)
class Tool:
    name: str
    title: str
    description: str
    arguments: Type[BaseModel]
    handler: Callable[[Any], InvocationResult]
    input_schema: Dict[str, Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "input_schema", json_schema_for(self.arguments))

    def describe(self) -> Dict[str, Any]:
        schema = self.input_schema
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "inputSchema": copy.deepcopy(schema),
            "input_schema": copy.deepcopy(schema),
            "parameters": {
                "type": "object",
                "properties": copy.deepcopy(schema.get("properties", {})),
                "required": list(schema.get("required", [])),
                "additionalProperties": False,
            },
        }

    def invoke(self, raw_arguments: Any) -> InvocationResult:
        args = validate_arguments(self.arguments, raw_arguments)
        return self.handler(args)


class ToolRegistry:
    """Immutable name -> Tool table, built once at startup."""

    def __init__(self, tools: Iterable[Tool]):
        table: Dict[str, Tool] = {}
        for tool in tools:
            if tool.name in table:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            table[tool.name] = tool
        self._tools = MappingProxyType(table)

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name) if isinstance(name, str) else None

    def list(self) -> List[Dict[str, Any]]:
        return [t.describe() for t in self._tools.values()]

    def call(self, name: str, arguments: Any) -> InvocationResult:
        tool = self.get(name)
        if tool is None:
            raise UnknownOperation(name)
        return tool.invoke(arguments)
