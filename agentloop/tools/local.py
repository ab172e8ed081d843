"""Local tool provider built from plain functions and decorated methods."""

import inspect
import json
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError, create_model

from agentloop.errors import ToolExecutionError, ToolNotFoundError
from agentloop.models.tool import ToolDescriptor
from agentloop.tools.base import ToolHandler, parse_arguments
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_TOOL_MARKER = "__agentloop_tool__"


@dataclass
class ToolDefinition:
    """Definition of a tool available to the model.

    When ``input_model`` is set, arguments are validated through it and the
    handler receives the model instance; otherwise it receives the raw dict.
    """

    name: str
    handler: ToolHandler
    description: str | None = None
    schema: dict[str, Any] | None = None
    input_model: type[BaseModel] | None = None

    def get_json_schema(self) -> dict[str, Any] | None:
        """Get JSON schema for this tool's input."""
        if self.schema is not None:
            return self.schema
        if self.input_model is not None:
            schema = self.input_model.model_json_schema()
            schema.pop("title", None)
            return schema
        return None

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(name=self.name, description=self.description, schema=self.get_json_schema())

    def parse_input(self, raw_input: dict[str, Any]) -> Any:
        """Parse and validate tool input."""
        if self.input_model is None:
            return raw_input
        return self.input_model.model_validate(raw_input)


@dataclass
class _ToolMarker:
    name: str | None
    description: str | None


def tool(fn: F | None = None, *, name: str | None = None, description: str | None = None) -> Any:
    """Mark a method as a tool.

    The tool name defaults to the function name, the description to its
    docstring, and the argument schema is derived from the signature. Usable
    bare (``@tool``) or with overrides (``@tool(name="fetch")``).
    """

    def mark(func: F) -> F:
        setattr(func, _TOOL_MARKER, _ToolMarker(name=name, description=description))
        return func

    if fn is not None:
        return mark(fn)
    return mark


def _input_model_for(fn: Callable[..., Any], model_name: str) -> type[BaseModel]:
    """Build a pydantic model from a function's parameters."""
    hints = typing.get_type_hints(fn, include_extras=True)
    fields: dict[str, Any] = {}
    for param in inspect.signature(fn).parameters.values():
        if param.name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param.name] = (annotation, default)
    return create_model(model_name, **fields)


def _function_handler(fn: Callable[..., Any], input_model: type[BaseModel]) -> ToolHandler:
    def handler(params: BaseModel) -> Any:
        # Keep nested models as objects rather than dumping them to dicts
        return fn(**{field: getattr(params, field) for field in input_model.model_fields})

    return handler


def _to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, default=str)


class FunctionToolbox:
    """Tool provider backed by Python callables.

    Tools are added with the builder methods, or collected from the
    :func:`tool` methods of an object by :meth:`from_object`.
    """

    def __init__(self, definitions: list[ToolDefinition] | None = None):
        self._tools: dict[str, ToolDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    @classmethod
    def from_object(cls, obj: object) -> "FunctionToolbox":
        """Expose the ``@tool`` methods of an arbitrary object."""
        toolbox = cls()
        toolbox._register_marked_methods(obj)
        return toolbox

    def register(self, definition: ToolDefinition) -> None:
        """Register a new tool in the toolbox."""
        if definition.name in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered")
        # Validates the name grammar up front
        definition.descriptor()
        self._tools[definition.name] = definition

    def add(
        self,
        name: str,
        handler: ToolHandler,
        *,
        description: str | None = None,
        schema: dict[str, Any] | None = None,
        input_model: type[BaseModel] | None = None,
    ) -> "FunctionToolbox":
        """Register a handler under ``name`` and return the toolbox for chaining."""
        self.register(
            ToolDefinition(
                name=name,
                handler=handler,
                description=description,
                schema=schema,
                input_model=input_model,
            )
        )
        return self

    def add_function(
        self, fn: Callable[..., Any], *, name: str | None = None, description: str | None = None
    ) -> "FunctionToolbox":
        """Register a function, deriving its argument schema from the signature."""
        tool_name = name or fn.__name__
        input_model = _input_model_for(fn, f"{tool_name}_input")
        return self.add(
            tool_name,
            _function_handler(fn, input_model),
            description=description or inspect.getdoc(fn),
            input_model=input_model,
        )

    def _register_marked_methods(self, obj: object) -> None:
        seen: dict[str, _ToolMarker] = {}
        for klass in reversed(type(obj).__mro__):
            for attr, value in vars(klass).items():
                marker = getattr(value, _TOOL_MARKER, None)
                if isinstance(marker, _ToolMarker):
                    seen[attr] = marker
        for attr, marker in seen.items():
            self.add_function(getattr(obj, attr), name=marker.name or attr, description=marker.description)

    def list_tools(self) -> list[ToolDescriptor]:
        return [definition.descriptor() for definition in self._tools.values()]

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    async def invoke(self, name: str, arguments: str) -> str:
        definition = self._tools.get(name)
        if definition is None:
            raise ToolNotFoundError(name)

        raw_input = parse_arguments(arguments, tool_name=name)
        try:
            result = definition.handler(definition.parse_input(raw_input))
            if inspect.isawaitable(result):
                result = await result
        except ToolExecutionError:
            raise
        except ValidationError as e:
            raise ToolExecutionError(f"Invalid arguments for {name}: {e}", tool_name=name) from e
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}")
            raise ToolExecutionError(f"Error: {e!s}", tool_name=name) from e

        return _to_text(result)
