"""
agentpipes - agent architecture patterns (chaining, routing, parallelization,
orchestrator-workers, evaluator-optimizer, tools, memory) on top of hosted pipes.
"""

from agentpipes.core.messages import Message, ToolCall
from agentpipes.core.orchestration import (chain,
                                           route,
                                           parallel,
                                           aggregate,
                                           orchestrate,
                                           evaluate_optimize)
from agentpipes.core.exceptions import (AgentDefinitionError,
                                        AgentProcessError,
                                        AgentClosedError,
                                        InvalidInputError,
                                        InvalidMessagesError,
                                        InvalidThreadError,
                                        InvalidVariablesError,
                                        MaxStepsExceededError,
                                        OutputParseError,
                                        RoutingError,
                                        ClientError,
                                        ConfigurationError)
from agentpipes.langbase.agent import PipeAgent
from agentpipes.langbase.client import AsyncPipeClient, Pipe, RunResult, MemoryChunk, shutdown
from agentpipes.langbase.config import PipeAgentConfig
from agentpipes.langbase.memory import answer_with_memory, retrieve_chunks
from agentpipes.langbase.provision import define_agent, agents_from_table, provision
from agentpipes.settings import Settings, load_settings

__all__ = [
    # Core
    "PipeAgent",
    "PipeAgentConfig",
    "Message",
    "ToolCall",
    # Client
    "AsyncPipeClient",
    "Pipe",
    "RunResult",
    "MemoryChunk",
    "shutdown",
    "Settings",
    "load_settings",
    # Provisioning
    "define_agent",
    "agents_from_table",
    "provision",
    # Patterns
    "chain",
    "route",
    "parallel",
    "aggregate",
    "orchestrate",
    "evaluate_optimize",
    "answer_with_memory",
    "retrieve_chunks",
    # Exceptions
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

__version__ = "0.1.0"
