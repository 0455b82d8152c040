"""Inner ``Config`` class merging for agent definitions.

:func:`merge_config` reads the optional ``class Config:`` of an agent and
overlays it on the configuration inherited from parent agents. Validation is
left to the provider's resolver.
"""
from __future__ import annotations

import inspect
from typing import Any

__all__ = ["merge_config"]


def _is_config_value(key: str, value: Any) -> bool:
    if key.startswith("_"):
        return False
    # Classes are legitimate values (output_model); functions and descriptors are not.
    if inspect.isroutine(value) or isinstance(value, (property, staticmethod, classmethod)):
        return False
    return True


def merge_config(
    inner_config_cls: type | None,
    parent_config_kwargs: dict[str, Any] | None,
) -> dict[str, Any]:
    """Merge an inner ``Config`` class with inherited parent configuration.

    Args:
        inner_config_cls:     The ``Config`` class defined on the agent, or ``None``.
        parent_config_kwargs: Configuration inherited from base classes, or ``None``.

    Returns:
        A new merged configuration dict.
    """
    config_kwargs: dict[str, Any] = dict(parent_config_kwargs) if parent_config_kwargs else {}

    if inner_config_cls is None:
        return config_kwargs

    for key, value in vars(inner_config_cls).items():
        if _is_config_value(key, value):
            config_kwargs[key] = value

    return config_kwargs
