from __future__ import annotations

import inspect
import math
import re
from dataclasses import dataclass, fields
from functools import partial
from typing import Any, Callable, Dict, Tuple, Type, TYPE_CHECKING

from agentpipes.core.config import merge_config
from agentpipes.core.exceptions import AgentDefinitionError
from agentpipes.settings import DEFAULT_MODEL

if TYPE_CHECKING:
    from pydantic import BaseModel

__all__ = ["PipeAgentConfig", "ConfigResolver", "pipe_name_for", ]


@dataclass(frozen=True, slots=True)
class PipeAgentConfig:
    # Remote pipe configuration
    name: str | None = None
    description: str | None = None
    model: str = DEFAULT_MODEL
    temperature: float | None = None
    max_tokens: int | None = None
    json: bool = False
    output_model: Type[BaseModel] | None = None
    memory: Tuple[str, ...] = ()
    upsert: bool = True
    # Runtime configuration
    max_steps: int = 5
    max_parallel_tools: int = 10
    tool_timeout: float = 30.0

    @property
    def json_mode(self) -> bool:
        return self.json or self.output_model is not None


_ALLOWED_FIELDS = {field.name for field in fields(PipeAgentConfig)}
_ALLOWED_FIELDS_STR = ", ".join(sorted(_ALLOWED_FIELDS))
_PIPE_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def pipe_name_for(cls_name: str) -> str:
    """Derive the default pipe name from a class name: ``SummaryAgent`` -> ``summary-agent``."""
    return _CAMEL_BOUNDARY_RE.sub("-", cls_name).replace("_", "-").lower().strip("-")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_positive_int(field: str, value: Any, errors: list[str]) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"Field '{field}' must be an int, got {type(value).__name__}.")
    elif value <= 0:
        errors.append(f"Field '{field}' must be > 0.")


def _check_finite(field: str, value: Any, errors: list[str]) -> bool:
    """Append an error unless ``value`` is a finite real number; report whether it is."""
    if not _is_number(value):
        errors.append(f"Field '{field}' must be a number, got {type(value).__name__}.")
        return False
    if not math.isfinite(value):
        errors.append(f"Field '{field}' must be a finite number, got NaN/Inf.")
        return False
    return True


def _check_bool(field: str, value: Any, errors: list[str]) -> None:
    if not isinstance(value, bool):
        errors.append(f"Field '{field}' must be a bool, got {type(value).__name__}.")


def _check_optional_str(field: str, value: Any, errors: list[str]) -> None:
    if value is not None and not isinstance(value, str):
        errors.append(f"Field '{field}' must be a string or None, got {type(value).__name__}.")


def _check_name(value: Any, errors: list[str]) -> None:
    _check_optional_str("name", value, errors)
    if isinstance(value, str) and not _PIPE_NAME_RE.match(value):
        errors.append(f"Field 'name' must be lowercase letters, digits, '.', '-' or '_' and start "
                      f"with a letter or digit, got '{value}'.")


def _check_model(value: Any, errors: list[str]) -> None:
    if not isinstance(value, str):
        errors.append(f"Field 'model' must be a string, got {type(value).__name__}.")
    elif not value.strip():
        errors.append("Field 'model' cannot be empty.")
    elif value != value.strip():
        errors.append(f"Field 'model' has leading/trailing whitespace: '{value}'. Use '{value.strip()}' instead.")
    elif ":" not in value:
        errors.append(f"Field 'model' must be '<provider>:<model>', e.g. 'openai:gpt-4o-mini', got '{value}'.")


def _check_temperature(value: Any, errors: list[str]) -> None:
    if value is None:
        return
    if not _is_number(value):
        errors.append(f"Field 'temperature' must be a float, int, or None, got {type(value).__name__}.")
    elif _check_finite("temperature", value, errors) and not 0.0 <= value <= 2.0:
        errors.append("Field 'temperature' must be between 0.0 and 2.0.")


def _check_max_tokens(value: Any, errors: list[str]) -> None:
    if value is not None:
        _check_positive_int("max_tokens", value, errors)


def _check_output_model(value: Any, errors: list[str]) -> None:
    if value is None:
        return
    from pydantic import BaseModel
    if not (inspect.isclass(value) and issubclass(value, BaseModel)):
        errors.append(f"Field 'output_model' must be a Pydantic model class or None, got {type(value).__name__}. "
                      f"Hint: Did you pass an instance instead of the class?")


def _check_memory(value: Any, errors: list[str]) -> None:
    if isinstance(value, str) or not isinstance(value, (tuple, list)):
        errors.append(f"Field 'memory' must be a tuple or list of memory names, got {type(value).__name__}.")
    elif not all(isinstance(item, str) and item.strip() for item in value):
        errors.append("Field 'memory' entries must be non-empty strings.")


def _check_tool_timeout(value: Any, errors: list[str]) -> None:
    if _check_finite("tool_timeout", value, errors) and value <= 0:
        errors.append("Field 'tool_timeout' must be > 0.")


_CHECKS: Dict[str, Callable[[Any, list], None]] = {
    "name": _check_name,
    "description": partial(_check_optional_str, "description"),
    "model": _check_model,
    "temperature": _check_temperature,
    "max_tokens": _check_max_tokens,
    "json": partial(_check_bool, "json"),
    "output_model": _check_output_model,
    "memory": _check_memory,
    "upsert": partial(_check_bool, "upsert"),
    "max_steps": partial(_check_positive_int, "max_steps"),
    "max_parallel_tools": partial(_check_positive_int, "max_parallel_tools"),
    "tool_timeout": _check_tool_timeout,
}


class ConfigResolver:
    """Turns the inner ``Config`` of a pipe agent into validated ``PipeAgentConfig`` kwargs.

    All problems of a class are collected and raised together as one
    :class:`AgentDefinitionError`.
    """

    @staticmethod
    def errors_for(config_kwargs: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        for key, value in config_kwargs.items():
            check = _CHECKS.get(key)
            if check is None:
                errors.append(f"Unknown attribute '{key}' for inner 'Config' class. "
                              f"Supported attributes: {_ALLOWED_FIELDS_STR}")
            else:
                check(value, errors)
        return errors

    @staticmethod
    def resolve(agent_cls: Type[Any]) -> dict[str, Any]:
        """Merge, validate and normalise the config of an agent class.

        The pipe ``name`` is pinned per class: a subclass never inherits its
        parent's pipe name, it gets its own unless its ``Config`` sets one.
        """
        inherited = dict(getattr(agent_cls, "__config_kwargs__", None) or {})
        inherited.pop("name", None)

        config_kwargs = merge_config(inner_config_cls=vars(agent_cls).get("Config"),
                                     parent_config_kwargs=inherited)
        if errors := ConfigResolver.errors_for(config_kwargs):
            raise AgentDefinitionError(cls_name=agent_cls.__name__, errors=errors)

        if config_kwargs.get("name") is None:
            config_kwargs["name"] = pipe_name_for(agent_cls.__name__)
        if "memory" in config_kwargs:
            config_kwargs["memory"] = tuple(config_kwargs["memory"])
        return config_kwargs
