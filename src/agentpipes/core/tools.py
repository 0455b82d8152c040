"""Agent methods as function tools.

Discovery runs once per class, from ``__init_subclass__``. Every public
method (sync or async) that has a docstring and is not one of the agent's
own entry points is exposed; its signature becomes a JSON schema through a
throwaway pydantic model. The result uses the chat-completions shape the
pipe service forwards to the model::

    {"type": "function",
     "function": {"name": ..., "description": ..., "parameters": {...}}}
"""
from __future__ import annotations

import inspect
import textwrap
import types
from typing import Any, Dict, Tuple, Union, get_args, get_origin, get_type_hints

from pydantic import create_model

from agentpipes.core.exceptions import AgentDefinitionError

__all__ = ["discover_tools", "function_schema", ]

# Public agent methods that belong to the framework, not to the model
_RESERVED = frozenset({"process", "aclose", "ensure_pipe", "get_definition", "pipe_name"})

_REJECTED_KINDS = {
    inspect.Parameter.POSITIONAL_ONLY: "positional-only",
    inspect.Parameter.VAR_POSITIONAL: "*args",
    inspect.Parameter.VAR_KEYWORD: "**kwargs",
}


def _is_optional(annotation: Any) -> bool:
    return get_origin(annotation) in (Union, types.UnionType) and type(None) in get_args(annotation)


def _drop_titles(node: Any) -> None:
    """pydantic titles every schema node; the model does not need them."""
    if isinstance(node, list):
        for item in node:
            _drop_titles(item)
        return
    if not isinstance(node, dict):
        return
    node.pop("title", None)
    for key, value in node.items():
        if key == "properties":
            # Keys here are field names, so a field called "title" must survive
            for field_schema in value.values():
                _drop_titles(field_schema)
        else:
            _drop_titles(value)


def _parameter_fields(name: str, method: Any, owner: str) -> Dict[str, Tuple[Any, Any]]:
    """Map each parameter to a pydantic ``(annotation, default)`` field.

    Unannotated parameters are strings; a ``None`` default makes the field optional.
    """
    try:
        hints = get_type_hints(method, include_extras=True)
    except Exception as exc:
        raise AgentDefinitionError(
            cls_name=owner,
            errors=[f"Tool '{name}': failed to resolve type hints - {type(exc).__name__}: {exc}."]) from exc

    fields: Dict[str, Tuple[Any, Any]] = {}
    problems: list[str] = []
    for param in inspect.signature(method).parameters.values():
        if param.name in ("self", "cls"):
            continue
        if param.kind in _REJECTED_KINDS:
            problems.append(f"Tool '{name}': parameter '{param.name}' uses unsupported "
                            f"{_REJECTED_KINDS[param.kind]} syntax.")
            continue
        annotation = hints.get(param.name, str)
        default = param.default
        if default is inspect.Parameter.empty:
            fields[param.name] = (annotation, ...)
        elif default is None and not _is_optional(annotation):
            fields[param.name] = (Union[annotation, None], None)
        else:
            fields[param.name] = (annotation, default)
    if problems:
        raise AgentDefinitionError(cls_name=owner, errors=problems)
    return fields


def function_schema(name: str, method: Any, description: str, *, owner: str = "") -> Dict[str, Any]:
    """Build the function tool schema of one method."""
    owner = owner or name
    fields = _parameter_fields(name, method, owner)
    try:
        parameters = create_model(f"{name}_params", **fields).model_json_schema()
    except Exception as exc:
        raise AgentDefinitionError(
            cls_name=owner,
            errors=[f"Tool '{name}': schema generation failed - {type(exc).__name__}: {exc}."]) from exc
    _drop_titles(parameters)
    parameters.setdefault("properties", {})
    return {"type": "function",
            "function": {"name": name, "description": description, "parameters": parameters}}


def _exposes_as_tool(name: str, member: Any) -> bool:
    if name.startswith("_") or name in _RESERVED:
        return False
    return inspect.isfunction(member) or inspect.iscoroutinefunction(member)


def _inherited_tools(cls: type) -> Dict[str, Dict[str, Any]]:
    """Tools of the base classes; walking the MRO from the root lets nearer bases win."""
    tools: Dict[str, Dict[str, Any]] = {}
    for base in reversed(cls.__mro__[1:]):
        tools.update(zip(getattr(base, "__tool_names__", ()), getattr(base, "__tool_schemas__", ())))
    return tools


def discover_tools(cls: type) -> Dict[str, Dict[str, Any]]:
    """Return ``{tool name: schema}`` for ``cls``, inherited tools included.

    Raises:
        AgentDefinitionError: A tool lacks a docstring, takes ``*args`` /
            ``**kwargs`` / positional-only parameters, or has a type that
            cannot be turned into a schema.
    """
    declared: Dict[str, Dict[str, Any]] = {}
    missing_docs: list[str] = []
    for name, member in vars(cls).items():
        if not _exposes_as_tool(name, member):
            continue
        description = textwrap.dedent(member.__doc__ or "").strip()
        if description:
            declared[name] = function_schema(name, member, description, owner=cls.__name__)
        else:
            missing_docs.append(f"Tool '{name}' is missing docstring. Its docstring is the tool description.")
    if missing_docs:
        raise AgentDefinitionError(cls_name=cls.__name__, errors=missing_docs)

    tools = _inherited_tools(cls)
    tools.update(declared)
    return tools
