"""Exception hierarchy for agentpipes.

Definition-time errors (raised when an agent class is defined):
    AgentDefinitionError   - invalid class setup (missing docstring, bad config, bad tools)

Process-time errors (raised while running agents and patterns):
    AgentProcessError      - base for all process-time errors
    ├── AgentClosedError
    ├── InvalidInputError
    ├── InvalidMessagesError
    ├── InvalidThreadError
    ├── InvalidVariablesError
    ├── MaxStepsExceededError
    ├── OutputParseError
    ├── RoutingError
    └── ClientError        - the pipe service or the network failed

Environment errors:
    ConfigurationError     - missing or malformed settings (API key, timeouts)
"""
from __future__ import annotations

__all__ = [
    "AgentDefinitionError",
    "AgentProcessError",
    "AgentClosedError",
    "InvalidInputError",
    "InvalidMessagesError",
    "InvalidThreadError",
    "InvalidVariablesError",
    "MaxStepsExceededError",
    "OutputParseError",
    "RoutingError",
    "ClientError",
    "ConfigurationError",
]


class AgentDefinitionError(TypeError):
    """Raised at class-definition time when the agent class is invalid."""
    __slots__ = ()

    def __init__(self, *, cls_name: str, errors: list[str]) -> None:
        n = len(errors)
        header = f"'{cls_name}' has {n} definition error{'s' if n != 1 else ''}"
        details = "\n".join(f"  • {error}" for error in errors)
        super().__init__(f"{header}:\n{details}")


class AgentProcessError(Exception):
    """Base class for errors raised while running an agent or a pattern."""
    __slots__ = ("agent_name",)

    def __init__(self, message: str = "", *, agent_name: str = "Agent") -> None:
        super().__init__(message)
        self.agent_name = agent_name


class AgentClosedError(AgentProcessError):
    __slots__ = ()

    def __init__(self, *, agent_name: str = "Agent") -> None:
        super().__init__(f"{agent_name}: agent is closed, create a new instance",
                         agent_name=agent_name)


class InvalidInputError(AgentProcessError):
    __slots__ = ()

    def __init__(self, *, agent_name: str = "Agent", received: str = "unknown") -> None:
        super().__init__(f"{agent_name}: 'input' must be a non-empty str, not {received}",
                         agent_name=agent_name)


class InvalidMessagesError(AgentProcessError):
    __slots__ = ()

    def __init__(self, *, agent_name: str = "Agent", received: str = "unknown") -> None:
        super().__init__(f"{agent_name}: 'messages' must be a non-empty list of Message or dict, not {received}",
                         agent_name=agent_name)


class InvalidThreadError(AgentProcessError):
    __slots__ = ()

    def __init__(self, *, agent_name: str = "Agent", received: str = "unknown") -> None:
        super().__init__(f"{agent_name}: 'thread_id' must be a non-empty str, not {received}",
                         agent_name=agent_name)


class InvalidVariablesError(AgentProcessError):
    __slots__ = ()

    def __init__(self, *, agent_name: str = "Agent", received: str = "unknown") -> None:
        super().__init__(f"{agent_name}: 'variables' must be a dict of str to str, not {received}",
                         agent_name=agent_name)


class MaxStepsExceededError(AgentProcessError):
    __slots__ = ()

    def __init__(self, *, agent_name: str = "Agent", max_steps: int = 5) -> None:
        super().__init__(f"{agent_name}: exceeded {max_steps} tool steps without a final completion",
                         agent_name=agent_name)


class OutputParseError(AgentProcessError):
    __slots__ = ("output",)

    def __init__(self, *, agent_name: str = "Agent", output: str = "", reason: str = "") -> None:
        self.output = output
        super().__init__(f"{agent_name}: could not parse JSON output - {reason}",
                         agent_name=agent_name)


class RoutingError(AgentProcessError):
    __slots__ = ("route", "choices")

    def __init__(self, *, agent_name: str = "Agent", route: object = None, choices: tuple[str, ...] = ()) -> None:
        self.route = route
        self.choices = choices
        super().__init__(
            f"{agent_name}: router chose {route!r}, expected one of {', '.join(choices) or '<none>'}",
            agent_name=agent_name)


class ClientError(AgentProcessError):
    """Raised when a call to the pipe service fails (transport error or non-2xx status)."""
    __slots__ = ("status_code",)

    def __init__(self, *, agent_name: str = "AsyncPipeClient", message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(f"{agent_name}: pipe API error - {message}", agent_name=agent_name)


class ConfigurationError(RuntimeError):
    """Raised when process-wide settings are missing or malformed."""
    __slots__ = ()
