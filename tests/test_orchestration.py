"""
Unit tests for agentpipes.core.orchestration.

Covers: chain, route, parallel, aggregate, orchestrate, evaluate_optimize
        against the fake pipe service, plus argument checks.
"""
from __future__ import annotations

import asyncio

import pytest

from agentpipes.core.exceptions import OutputParseError, RoutingError
from agentpipes.core.orchestration import (
    aggregate,
    chain,
    evaluate_optimize,
    orchestrate,
    parallel,
    route,
)
from agentpipes.langbase.agent import PipeAgent
from fakes import run_body, tool_call


def _echo(prefix: str):
    """Reply with ``prefix`` + the last user message of the run."""
    def reply(body: dict) -> dict:
        return run_body(f"{prefix}{body['messages'][-1]['content']}")
    return reply


class Summarizer(PipeAgent):
    """Summarize the product description."""


class FeatureExtractor(PipeAgent):
    """List the product's features."""


class CopyWriter(PipeAgent):
    """Write marketing copy from the features."""


class Router(PipeAgent):
    """Classify the ticket as billing or technical. Answer {"route": ...}."""

    class Config:
        json = True


class BillingAgent(PipeAgent):
    """You handle billing tickets."""


class TechAgent(PipeAgent):
    """You handle technical tickets."""


_lookups_done: list[str] = []


class SlowResearcher(PipeAgent):
    """Research the product before answering."""

    async def lookup(self, topic: str) -> str:
        """Look up a topic."""
        await asyncio.sleep(0.05)
        _lookups_done.append(topic)
        return "found"


class Planner(PipeAgent):
    """Split the task into subtasks. Answer {"tasks": [...]}."""

    class Config:
        json = True


class Worker(PipeAgent):
    """Complete one subtask."""


class Synthesizer(PipeAgent):
    """Merge the subtask results."""


class Writer(PipeAgent):
    """Write a product tagline."""


class Critic(PipeAgent):
    """Review the tagline."""


# ─────────────────────────────────────────────────────────────────────────────
# 1. chain
# ─────────────────────────────────────────────────────────────────────────────

class TestChain:

    @pytest.mark.asyncio
    async def test_output_feeds_next_agent(self, pipe_client, service):
        service.reply("summarizer", _echo("S:"))
        service.reply("feature-extractor", _echo("F:"))
        service.reply("copy-writer", _echo("C:"))

        result = await chain([Summarizer, FeatureExtractor, CopyWriter], input="laptop")

        assert result["output"] == "C:F:S:laptop"
        assert result["steps_output"] == ["S:laptop", "F:S:laptop", "C:F:S:laptop"]
        assert result["agent"] == "CopyWriter"
        assert result["tokens"] == {"input_tokens": 30, "output_tokens": 15, "total_tokens": 45}

    @pytest.mark.asyncio
    async def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            await chain([], input="x")

    @pytest.mark.asyncio
    async def test_non_agent_rejected(self):
        with pytest.raises(TypeError, match=r"agents\[1\]"):
            await chain([Summarizer, "not an agent"], input="x")
        with pytest.raises(TypeError):
            await chain([PipeAgent], input="x")


# ─────────────────────────────────────────────────────────────────────────────
# 2. route
# ─────────────────────────────────────────────────────────────────────────────

class TestRoute:

    @pytest.mark.asyncio
    async def test_dispatches_to_chosen_handler(self, pipe_client, service):
        service.reply("router", run_body('{"route": " billing "}'))
        service.reply("billing-agent", run_body("Refund issued."))

        result = await route(Router, {"billing": BillingAgent, "technical": TechAgent},
                             input="I was charged twice")

        assert result["route"] == "billing"
        assert result["output"] == "Refund issued."
        assert result["tokens"]["total_tokens"] == 30
        assert service.runs_for("billing-agent")[0]["messages"][-1]["content"] == "I was charged twice"
        assert service.runs_for("tech-agent") == []

    @pytest.mark.asyncio
    async def test_unknown_route_raises(self, pipe_client, service):
        service.reply("router", run_body('{"route": "sales"}'))
        with pytest.raises(RoutingError) as exc_info:
            await route(Router, {"billing": BillingAgent, "technical": TechAgent}, input="hi")
        assert exc_info.value.route == "sales"
        assert exc_info.value.choices == ("billing", "technical")

    @pytest.mark.asyncio
    async def test_missing_key_raises(self, pipe_client, service):
        service.reply("router", run_body('{"category": "billing"}'))
        with pytest.raises(RoutingError, match="None"):
            await route(Router, {"billing": BillingAgent}, input="hi")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ['{"route": ["billing"]}', '{"route": {"name": "billing"}}', '{"route": 3}'])
    async def test_non_string_choice_raises(self, pipe_client, service, reply):
        service.reply("router", run_body(reply))
        with pytest.raises(RoutingError):
            await route(Router, {"billing": BillingAgent}, input="hi")
        assert service.runs_for("billing-agent") == []

    @pytest.mark.asyncio
    async def test_custom_key(self, pipe_client, service):
        service.reply("router", run_body('{"category": "technical"}'))
        result = await route(Router, {"technical": TechAgent}, input="VPN down", key="category")
        assert result["route"] == "technical"

    @pytest.mark.asyncio
    async def test_empty_routes_rejected(self):
        with pytest.raises(ValueError):
            await route(Router, {}, input="hi")


# ─────────────────────────────────────────────────────────────────────────────
# 3. parallel / aggregate
# ─────────────────────────────────────────────────────────────────────────────

class TestParallel:

    @pytest.mark.asyncio
    async def test_results_in_input_order(self, pipe_client, service):
        service.reply("summarizer", run_body("summary"))
        service.reply("feature-extractor", run_body("features"))

        results = await parallel([FeatureExtractor, Summarizer], input="laptop")

        assert [r["output"] for r in results] == ["features", "summary"]
        assert [r["agent"] for r in results] == ["FeatureExtractor", "Summarizer"]

    @pytest.mark.asyncio
    async def test_failure_propagates(self, pipe_client, service):
        service.reply("router", run_body("not json"))
        with pytest.raises(OutputParseError):
            await parallel([Summarizer, Router], input="laptop")

    @pytest.mark.asyncio
    async def test_failure_waits_for_siblings(self, pipe_client, service):
        _lookups_done.clear()
        service.reply("router", run_body("not json"))
        service.reply("slow-researcher",
                      run_body("", tool_calls=[tool_call("lookup", '{"topic": "battery"}')]),
                      run_body("done"))

        with pytest.raises(OutputParseError):
            await parallel([Router, SlowResearcher], input="laptop")

        assert _lookups_done == ["battery"]
        assert len(service.runs_for("slow-researcher")) == 2

    @pytest.mark.asyncio
    async def test_aggregate(self, pipe_client, service):
        service.reply("summarizer", run_body("summary"))
        service.reply("feature-extractor", run_body("features"))
        service.reply("copy-writer", _echo(""))

        result = await aggregate([Summarizer, FeatureExtractor], CopyWriter, input="laptop",
                                 template="Product: {input}\n\n{outputs}")

        assert result["output"] == "Product: laptop\n\nSummarizer:\nsummary\n\nFeatureExtractor:\nfeatures"
        assert result["parallel_outputs"] == {"Summarizer": "summary", "FeatureExtractor": "features"}
        assert result["tokens"]["total_tokens"] == 45


# ─────────────────────────────────────────────────────────────────────────────
# 4. orchestrate
# ─────────────────────────────────────────────────────────────────────────────

class TestOrchestrate:

    @pytest.mark.asyncio
    async def test_plan_work_synthesize(self, pipe_client, service):
        service.reply("planner", run_body('{"tasks": ["intro", {"description": "pricing"}]}'))
        service.reply("worker", run_body("intro done"), run_body("pricing done"))
        service.reply("synthesizer", run_body("final report"))

        result = await orchestrate(Planner, Worker, Synthesizer, input="Write a launch plan")

        assert result["output"] == "final report"
        assert [s["task"] for s in result["subtasks"]] == ["intro", "pricing"]
        assert {s["output"] for s in result["subtasks"]} == {"intro done", "pricing done"}
        worker_prompts = [body["messages"][-1]["content"] for body in service.runs_for("worker")]
        assert all(prompt.startswith("Overall task:\nWrite a launch plan") for prompt in worker_prompts)
        synthesis_prompt = service.runs_for("synthesizer")[0]["messages"][-1]["content"]
        assert "Subtask 1: intro" in synthesis_prompt
        assert "Subtask 2: pricing" in synthesis_prompt
        assert result["tokens"]["total_tokens"] == 60

    @pytest.mark.asyncio
    async def test_empty_plan_raises(self, pipe_client, service):
        service.reply("planner", run_body('{"tasks": []}'))
        with pytest.raises(OutputParseError, match="tasks"):
            await orchestrate(Planner, Worker, Synthesizer, input="x")
        assert service.runs_for("worker") == []


# ─────────────────────────────────────────────────────────────────────────────
# 5. evaluate_optimize
# ─────────────────────────────────────────────────────────────────────────────

class TestEvaluateOptimize:

    @pytest.mark.asyncio
    async def test_accepts_on_second_iteration(self, pipe_client, service):
        service.reply("writer", run_body("draft 1"), run_body("draft 2"))
        service.reply("critic", run_body("Too long."), run_body("  ACCEPTED\n"))

        result = await evaluate_optimize(Writer, Critic, input="Tagline for a laptop")

        assert result["accepted"] is True
        assert result["iterations"] == 2
        assert result["output"] == "draft 2"
        assert result["feedback"] == ["Too long.", "ACCEPTED"]
        assert result["tokens"]["total_tokens"] == 60
        revision = service.runs_for("writer")[1]["messages"][-1]["content"]
        assert "draft 1" in revision and "Too long." in revision

    @pytest.mark.asyncio
    async def test_accept_must_be_exact(self, pipe_client, service):
        service.reply("critic", run_body("ACCEPTED, nice work"), run_body("ACCEPTED"))
        result = await evaluate_optimize(Writer, Critic, input="x")
        assert result["iterations"] == 2

    @pytest.mark.asyncio
    async def test_exhaustion_returns_last_draft(self, pipe_client, service):
        service.reply("writer", *(run_body(f"draft {i}") for i in range(1, 4)))
        service.reply("critic", *(run_body("Try again.") for _ in range(3)))

        result = await evaluate_optimize(Writer, Critic, input="x", max_iterations=3)

        assert result["accepted"] is False
        assert result["iterations"] == 3
        assert result["output"] == "draft 3"
        assert len(service.runs_for("writer")) == 3

    @pytest.mark.asyncio
    async def test_default_bound_is_five(self, pipe_client, service):
        service.reply("critic", *(run_body("no") for _ in range(10)))
        result = await evaluate_optimize(Writer, Critic, input="x")
        assert result["iterations"] == 5
        assert len(service.runs_for("critic")) == 5

    @pytest.mark.asyncio
    async def test_invalid_bound(self):
        with pytest.raises(ValueError):
            await evaluate_optimize(Writer, Critic, input="x", max_iterations=0)
