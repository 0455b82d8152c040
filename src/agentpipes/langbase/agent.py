from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Mapping, Sequence

import orjson
from pydantic import ValidationError

from agentpipes.core.agent import BaseAgent
from agentpipes.core.messages import Message, ToolCall
from agentpipes.core.exceptions import (
    AgentClosedError,
    InvalidInputError,
    InvalidMessagesError,
    InvalidThreadError,
    InvalidVariablesError,
    MaxStepsExceededError,
    OutputParseError,
)
from agentpipes.langbase.client import AsyncPipeClient, Pipe, RunResult
from agentpipes.langbase.config import ConfigResolver, PipeAgentConfig

__all__ = ["PipeAgent"]

logger = logging.getLogger(__name__)


def _strip_code_fence(text: str) -> str:
    """Models sometimes wrap JSON-mode answers in a markdown fence."""
    stripped = text.strip()
    if stripped.startswith("```") and stripped.endswith("```"):
        stripped = stripped[3:-3]
        if stripped.lower().startswith("json"):
            stripped = stripped[4:]
    return stripped.strip()


class PipeAgent(BaseAgent):
    """Agent backed by a named pipe on the hosted service.

    The class docstring becomes the pipe's system prompt; the inner
    ``Config`` class sets the model and pipe options. The pipe is created (or
    reused, with ``upsert``) lazily on first use.

    Public methods with docstrings are exposed to the model as tools. When a
    run comes back with tool calls, they are executed and the results fed
    back on the same thread until the model produces a final completion.
    """

    _abstract_agent = True

    __slots__ = ("_client",
                 "_semaphore",
                 "_pipe")

    @classmethod
    def _resolve_config(cls) -> dict[str, Any]:
        return ConfigResolver.resolve(cls)

    @classmethod
    def pipe_name(cls) -> str:
        if not hasattr(cls, "__agent_name__"):
            raise TypeError(f"{cls.__name__} is an abstract agent class and has no pipe.")
        return cls.__config_kwargs__["name"]

    def __new__(cls, *args, **kwargs):
        self = super().__new__(cls, *args, **kwargs)
        self._client = None
        self._semaphore = None
        self._pipe = None
        return self

    async def _ensure_provisioned(self) -> None:
        """Build config, bind tools, and create-or-reuse the remote pipe (once per instance)."""
        if self._provisioned:
            return
        async with self._setup_lock:
            if self._provisioned:
                return
            config = PipeAgentConfig(**self.__config_kwargs__)
            client = AsyncPipeClient()
            self._pipe = await client.create_pipe(
                config.name,
                model=config.model,
                messages=[Message.system(self.__system_prompt__)],
                description=config.description,
                json=config.json_mode,
                memory=config.memory,
                tools=self.__tool_schemas__,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                upsert=config.upsert)
            logger.debug("Pipe '%s' ready for agent %s", config.name, self.__agent_name__)
            # Only mark ready after the remote call succeeded, so a failure is retried next time
            self._config = config
            self._client = client
            self._semaphore = asyncio.Semaphore(config.max_parallel_tools)
            self._tool_handlers = {name: getattr(self, name) for name in self.__tool_names__}
            self._provisioned = True

    async def ensure_pipe(self) -> Pipe:
        """Provision the pipe without running it. Idempotent."""
        if self._closed:
            raise AgentClosedError(agent_name=self.__agent_name__)
        await self._ensure_provisioned()
        return self._pipe

    def _tool_output(self, tool_call: ToolCall, payload: Any) -> Message:
        return Message.tool(tool_call.id, tool_call.name, self._dump_tool_result(payload))

    async def _execute_tool_call(self, tool_call: ToolCall) -> Message:
        name = tool_call.name
        handler = self._tool_handlers.get(name)
        if handler is None:
            return self._tool_output(tool_call, {"error": f"Tool not found. Tool: '{name}'"})
        try:
            args = tool_call.parse_arguments()
        except orjson.JSONDecodeError:
            return self._tool_output(tool_call, {"error": f"Bad tool args JSON. Tool: '{name}'",
                                                 "arguments": tool_call.arguments})

        timeout = self._config.tool_timeout
        async with self._semaphore:
            try:
                call = handler(**args) if inspect.iscoroutinefunction(handler) else asyncio.to_thread(handler, **args)
                value = await asyncio.wait_for(call, timeout=timeout)
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError:
                logger.warning("Tool '%s' of %s timed out after %ss", name, self.__agent_name__, timeout)
                return self._tool_output(tool_call, {
                    "error": f"Tool execution failed after a timeout of {timeout}. Tool: '{name}'"})
            except Exception:
                if logger.isEnabledFor(logging.ERROR):
                    logger.exception("Tool '%s' of %s raised", name, self.__agent_name__)
                return self._tool_output(tool_call, {"error": f"Tool execution failed. Tool: '{name}'"})

        return self._tool_output(tool_call, value if isinstance(value, dict) else {"result": value})

    async def _execute_tool_calls(self, tool_calls: Sequence[ToolCall]) -> List[Message]:
        if len(tool_calls) == 1:
            return [await self._execute_tool_call(tool_calls[0])]
        return list(await asyncio.gather(*(self._execute_tool_call(call) for call in tool_calls)))

    def _parse_output(self, output: str) -> Any:
        try:
            data = orjson.loads(_strip_code_fence(output))
        except orjson.JSONDecodeError as exc:
            raise OutputParseError(agent_name=self.__agent_name__, output=output, reason=str(exc)) from exc
        output_model = self._config.output_model
        if output_model is None:
            return data
        try:
            return output_model.model_validate(data)
        except ValidationError as exc:
            raise OutputParseError(agent_name=self.__agent_name__, output=output, reason=str(exc)) from exc

    def _normalize_messages(self, messages: Any) -> List[Message]:
        name = self.__agent_name__
        if not isinstance(messages, list) or not messages:
            raise InvalidMessagesError(agent_name=name, received=type(messages).__name__)
        normalized: List[Message] = []
        for item in messages:
            if isinstance(item, Message):
                normalized.append(item)
            elif isinstance(item, Mapping):
                try:
                    normalized.append(Message.from_dict(item))
                except (KeyError, ValueError) as exc:
                    raise InvalidMessagesError(agent_name=name, received=repr(dict(item))) from exc
            else:
                raise InvalidMessagesError(agent_name=name, received=f"list containing {type(item).__name__}")
        return normalized

    async def process(self,
                      input: str | None = None,
                      *,
                      messages: List[Message | Dict[str, Any]] | None = None,
                      thread_id: str | None = None,
                      variables: Dict[str, str] | None = None) -> dict:
        """Run the pipe on ``input`` (a user message) and/or a prepared ``messages`` list.

        Returns a dict with ``output`` (completion text), ``output_parsed``
        (JSON mode only), ``thread_id``, ``tool_calls``, ``steps``,
        ``messages`` (this turn) and ``tokens``.
        """
        name = self.__agent_name__
        if self._closed:
            raise AgentClosedError(agent_name=name)

        if messages is None:
            if not isinstance(input, str) or not input.strip():
                raise InvalidInputError(agent_name=name, received=type(input).__name__)
            turn_messages = [Message.user(input)]
        else:
            turn_messages = self._normalize_messages(messages)
            if input is not None:
                if not isinstance(input, str) or not input.strip():
                    raise InvalidInputError(agent_name=name, received=type(input).__name__)
                turn_messages.append(Message.user(input))
        if thread_id is not None and (not isinstance(thread_id, str) or not thread_id.strip()):
            raise InvalidThreadError(agent_name=name, received=type(thread_id).__name__)
        if variables is not None and (not isinstance(variables, dict) or
                                      not all(isinstance(k, str) and isinstance(v, str)
                                              for k, v in variables.items())):
            raise InvalidVariablesError(agent_name=name, received=type(variables).__name__)

        await self._ensure_provisioned()
        config = self._config
        client = self._client

        input_tokens, output_tokens, total_tokens = 0, 0, 0
        requested_calls: List[ToolCall] = []
        pending = list(turn_messages)
        step = 0
        result: RunResult

        while True:
            step += 1
            result = await client.run_pipe(config.name, pending,
                                           thread_id=thread_id,
                                           tools=self.__tool_schemas__,
                                           variables=variables)
            usage = result.usage
            input_tokens += int(usage.get("prompt_tokens", 0) or 0)
            output_tokens += int(usage.get("completion_tokens", 0) or 0)
            total_tokens += int(usage.get("total_tokens", 0) or 0)
            thread_id = result.thread_id or thread_id
            requested_calls.extend(result.tool_calls)

            # Agents without tool methods hand tool calls back to the caller
            if not result.tool_calls or not self._tool_handlers:
                break
            if step >= config.max_steps:
                raise MaxStepsExceededError(agent_name=name, max_steps=config.max_steps)

            assistant = Message.assistant(result.completion or None, result.tool_calls)
            tool_outputs = await self._execute_tool_calls(result.tool_calls)
            turn_messages.append(assistant)
            turn_messages.extend(tool_outputs)
            # On a thread the service keeps the history; otherwise resend the whole turn
            pending = [assistant, *tool_outputs] if thread_id else list(turn_messages)

        output = result.completion or ""
        turn_messages.append(Message.assistant(output, result.tool_calls))
        output_parsed = self._parse_output(output) if config.json_mode and not result.tool_calls else None

        return {"agent": name,
                "pipe": config.name,
                "input": input,
                "output": output,
                "output_parsed": output_parsed,
                "thread_id": thread_id,
                "tool_calls": requested_calls,
                "steps": step,
                "messages": turn_messages,
                "tokens": {"input_tokens": input_tokens,
                           "output_tokens": output_tokens,
                           "total_tokens": total_tokens}}
