# mcp_widget_runtime/common/mcp_tool_decorator.py
"""
Tool declaration for the MCP widget runtime.

``@mcp_tool`` turns a plain (sync or async) function into a
``ToolDescriptor``: the function signature becomes a pydantic input model,
whose JSON schema is advertised in ``tools/list`` and which validates the raw
arguments of every ``tools/call`` before the function runs.

    @mcp_tool(name="echo", description="Echo a message", widget=ECHO_WIDGET,
              summary='Echoing: "{message}"')
    def echo(message: Annotated[str, Field(min_length=1)]) -> dict:
        ...
"""
from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from mcp import types
from pydantic import BaseModel, ValidationError, create_model

from mcp_widget_runtime.common.errors import ConfigurationError, InvalidInput
from mcp_widget_runtime.resources.widgets import WidgetDescriptor
from mcp_widget_runtime.server.logging_config import get_logger

logger = get_logger("mcp_widget_runtime.tools")

OUTPUT_TEMPLATE_META = "openai/outputTemplate"


def _model_name(tool_name: str) -> str:
    parts = tool_name.replace(".", "_").replace("-", "_").split("_")
    return "".join(p[:1].upper() + p[1:] for p in parts if p) + "Input"


def build_input_model(func: Callable[..., Any], tool_name: str) -> Type[BaseModel]:
    """Create a pydantic model whose fields mirror *func*'s keyword parameters."""
    hints = typing.get_type_hints(func, include_extras=True)
    fields: Dict[str, Any] = {}
    for pname, param in inspect.signature(func).parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(pname, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[pname] = (annotation, default)
    return create_model(_model_name(tool_name), **fields)


def _field_errors(exc: ValidationError) -> List[Dict[str, str]]:
    return [
        {
            "field": ".".join(str(p) for p in err["loc"]) or "<root>",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_model: Type[BaseModel]
    func: Callable[..., Any]
    widget: Optional[WidgetDescriptor] = None
    summary: Optional[str] = None

    @property
    def input_schema(self) -> Dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def to_mcp_tool(self) -> types.Tool:
        meta = {OUTPUT_TEMPLATE_META: self.widget.uri} if self.widget else None
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
            _meta=meta,
        )

    def validate(self, arguments: Any) -> BaseModel:
        """Validate raw call arguments; raises ``InvalidInput`` with per-field detail."""
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidInput(self.name, [{"field": "<root>", "message": "arguments must be an object"}])
        try:
            return self.input_model.model_validate(arguments)
        except ValidationError as exc:
            raise InvalidInput(self.name, _field_errors(exc)) from exc

    async def execute(self, validated: BaseModel) -> Any:
        kwargs = {name: getattr(validated, name) for name in type(validated).model_fields}
        result = self.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseModel):
            result = result.model_dump(mode="json")
        return result

    def render_summary(self, validated: BaseModel) -> str:
        if not self.summary:
            return f"{self.name} completed"
        return self.summary.format(**validated.model_dump())


class ToolRegistry:
    """Homogeneous name → ``ToolDescriptor`` map, read-only once serving starts."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        if descriptor.name in self._tools:
            raise ConfigurationError(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = descriptor
        logger.debug("Registered tool: %s", descriptor.name)
        return descriptor

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def list(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def clear(self) -> None:
        self._tools.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


# default registry populated by ``@mcp_tool`` at import time
TOOLS_REGISTRY = ToolRegistry()


def mcp_tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    *,
    widget: Optional[WidgetDescriptor] = None,
    summary: Optional[str] = None,
    registry: Optional[ToolRegistry] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Register the decorated function as an MCP tool.

    Args:
        name: Tool name; defaults to the function name.
        description: Tool description; defaults to the first docstring line.
        widget: Widget that renders this tool's structured output.
        summary: ``str.format`` template over the validated arguments used as
            the human-readable text of the result.
        registry: Target registry, ``TOOLS_REGISTRY`` when omitted.

    The function itself is returned unchanged, with the descriptor attached as
    ``func._mcp_tool``.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        tool_name = name or func.__name__
        doc = inspect.getdoc(func) or ""
        descriptor = ToolDescriptor(
            name=tool_name,
            description=description or (doc.splitlines()[0] if doc else tool_name),
            input_model=build_input_model(func, tool_name),
            func=func,
            widget=widget,
            summary=summary,
        )
        (registry if registry is not None else TOOLS_REGISTRY).register(descriptor)
        func._mcp_tool = descriptor  # type: ignore[attr-defined]
        return func

    return decorator
