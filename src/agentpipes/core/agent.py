"""Service-independent half of a declarative agent.

Declaring a subclass does all the static work once, at import time:

* the class docstring is dedented into the pipe's system prompt,
* the inner ``Config`` class is merged with the parent's and validated,
* public documented methods are turned into function tool schemas.

Instances only carry run-time state (provisioning flag, lock, tool
handlers). The pipe-backed subclass,
:class:`~agentpipes.langbase.agent.PipeAgent`, adds provisioning and the
run loop.

Usage::

    from agentpipes import PipeAgent

    class Summarizer(PipeAgent):
        \"\"\"Summarize the text you are given in two sentences.\"\"\"

        class Config:
            model = "openai:gpt-4o-mini"
"""
from __future__ import annotations

import asyncio
import textwrap
from typing import Any

import orjson

from agentpipes.core.config import merge_config
from agentpipes.core.tools import discover_tools
from agentpipes.core.exceptions import AgentDefinitionError, AgentClosedError

__all__ = ["BaseAgent"]


def _system_prompt_from_docstring(cls: type) -> str:
    prompt = textwrap.dedent(cls.__doc__ or "").strip()
    if prompt:
        return prompt
    raise AgentDefinitionError(
        cls_name=cls.__name__,
        errors=["Missing class docstring. The docstring is the pipe's system prompt."])


def _is_declared_abstract(cls: type) -> bool:
    return "_abstract_agent" in vars(cls)


class BaseAgent:
    """Base of every agent class. Subclass ``PipeAgent``, not this.

    Set on each concrete subclass:
        __agent_name__:     the class name, used in errors and results.
        __system_prompt__:  the dedented class docstring.
        __config_kwargs__:  merged, validated ``Config`` attributes.
        __tool_names__:     discovered tool method names.
        __tool_schemas__:   their function schemas, same order.
    """

    # Classes that set this in their own body are bases: skipped by setup and not instantiable.
    _abstract_agent = True

    __slots__ = ("_setup_lock",
                 "_provisioned",
                 "_closed",
                 "_config",
                 "_tool_handlers")

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if _is_declared_abstract(cls):
            return

        cls.__agent_name__ = cls.__name__
        cls.__system_prompt__ = _system_prompt_from_docstring(cls)
        cls.__config_kwargs__ = cls._resolve_config()
        tools = discover_tools(cls=cls)
        cls.__tool_names__ = tuple(tools)
        cls.__tool_schemas__ = tuple(tools.values())

    @classmethod
    def _resolve_config(cls) -> dict[str, Any]:
        """Merge the inner ``Config`` over the inherited one. Subclasses add validation."""
        return merge_config(inner_config_cls=vars(cls).get("Config"),
                            parent_config_kwargs=getattr(cls, "__config_kwargs__", None))

    @classmethod
    def get_definition(cls) -> dict:
        """Everything the class sends to the service: prompt, config and tool schemas."""
        if not hasattr(cls, "__agent_name__"):
            raise TypeError(f"{cls.__name__} is an abstract agent class; "
                            f"call get_definition() on a concrete subclass.")
        return {"agent_name": cls.__agent_name__,
                "system_prompt": cls.__system_prompt__,
                "config": dict(cls.__config_kwargs__),
                "tools": dict(zip(cls.__tool_names__, cls.__tool_schemas__))}

    def __new__(cls, *args, **kwargs):
        # State lives here so subclasses with their own __init__ need not call super().__init__()
        self = super().__new__(cls)
        self._setup_lock = asyncio.Lock()
        self._provisioned = False
        self._closed = False
        self._config = None
        self._tool_handlers = {}
        return self

    def __init__(self):
        if _is_declared_abstract(type(self)):
            raise TypeError(f"{type(self).__name__} is an abstract agent class; subclass it before use.")

    @staticmethod
    def _dump_tool_result(value: Any) -> str:
        """Tool results go back to the model as text: JSON when possible, ``str()`` otherwise."""
        if isinstance(value, str):
            return value
        try:
            return orjson.dumps(value).decode("utf-8")
        except TypeError:
            return str(value)

    async def aclose(self) -> None:
        """Refuse further runs. Safe to call more than once."""
        async with self._setup_lock:
            self._closed = True

    async def __aenter__(self):
        if self._closed:
            raise AgentClosedError(agent_name=self.__agent_name__)
        await self._ensure_provisioned()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def _ensure_provisioned(self) -> None:
        raise NotImplementedError
