"""Config-table agents and parallel pipe provisioning.

A config table maps each role to its model and system prompt::

    TABLE = {
        "summary": {"model": "openai:gpt-4o-mini", "prompt": "Summarize the text."},
        "features": {"prompt": "List the product features.", "temperature": 0.3},
    }

:func:`agents_from_table` turns it into agent classes; :func:`provision`
creates all their pipes concurrently.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Sequence

from agentpipes.core.exceptions import AgentDefinitionError
from agentpipes.langbase.agent import PipeAgent
from agentpipes.langbase.client import Pipe
from agentpipes.langbase.config import pipe_name_for

__all__ = ["define_agent", "agents_from_table", "provision", ]

logger = logging.getLogger(__name__)


def define_agent(role: str, prompt: str, *, model: str | None = None,
                 base_cls: type | None = None, **config: Any) -> type:
    """Build a :class:`PipeAgent` subclass for one role.

    The class is named after the role (``"summary"`` -> ``SummaryAgent``) and
    its pipe defaults to the role name. Extra keyword arguments become inner
    ``Config`` attributes and are validated like any hand-written agent.
    """
    if not isinstance(role, str) or not role.strip():
        raise AgentDefinitionError(cls_name=repr(role), errors=["Role name must be a non-empty string."])
    base_cls = base_cls or PipeAgent

    config_attrs: Dict[str, Any] = dict(config)
    if model is not None:
        config_attrs["model"] = model
    config_attrs.setdefault("name", pipe_name_for(role))

    cls_name = "".join(part.capitalize() for part in role.replace("-", "_").split("_") if part) + "Agent"
    return type(cls_name, (base_cls,), {
        "__doc__": prompt,
        "__module__": __name__,
        "Config": type("Config", (), config_attrs),
    })


def agents_from_table(table: Mapping[str, Mapping[str, Any]], *, default_model: str | None = None) -> Dict[str, type]:
    """Map every ``{role: {"prompt", "model", ...}}`` row to an agent class."""
    agents: Dict[str, type] = {}
    errors: list[str] = []
    for role, row in table.items():
        row = dict(row)
        prompt = row.pop("prompt", None)
        if not isinstance(prompt, str) or not prompt.strip():
            errors.append(f"Role '{role}' is missing a 'prompt'.")
            continue
        model = row.pop("model", None) or default_model
        agents[role] = define_agent(role, prompt, model=model, **row)
    if errors:
        raise AgentDefinitionError(cls_name="config table", errors=errors)
    return agents


async def provision(agents: Sequence[type] | Mapping[str, type]) -> Dict[str, Pipe]:
    """Create (or reuse) the pipe of every agent concurrently.

    Returns:
        A dict mapping pipe names to :class:`Pipe` handles.
    """
    agent_classes = list(agents.values()) if isinstance(agents, Mapping) else list(agents)
    if not agent_classes:
        raise ValueError("provision() requires at least one agent")

    async def _provision(agent_cls: type) -> Pipe:
        agent = agent_cls()
        try:
            return await agent.ensure_pipe()
        finally:
            await agent.aclose()

    pipes = await asyncio.gather(*(_provision(cls) for cls in agent_classes))
    logger.info("Provisioned %d pipe(s): %s", len(pipes), ", ".join(p.name for p in pipes))
    return {pipe.name: pipe for pipe in pipes}
