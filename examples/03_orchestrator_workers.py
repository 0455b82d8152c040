"""
03_orchestrator_workers.py - Orchestrator / Workers
===================================================

A planner decides how to split a task, workers handle the pieces
concurrently, and a synthesizer stitches the results together. Unlike
parallel(), the number of subtasks is chosen by the model at run time.

What you'll learn:
  • How the orchestrator's JSON plan drives the fan-out
  • How orchestrate() reports each subtask next to its output

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."

Run this example:
  python examples/03_orchestrator_workers.py
"""

import asyncio
import logging

from agentpipes import ClientError, PipeAgent, orchestrate, shutdown

logger = logging.getLogger(__name__)


class Planner(PipeAgent):
    """
    You break writing tasks into 2 to 4 independent subtasks.
    Answer with JSON: {"tasks": [{"description": "..."}, ...]}.
    """

    class Config:
        json = True
        temperature = 0


class Worker(PipeAgent):
    """You complete exactly the subtask you are given, in the context of the overall task."""


class Synthesizer(PipeAgent):
    """You merge subtask results into one coherent document. Remove repetition, keep every fact."""

    class Config:
        max_tokens = 1200


TASK = "Write a one-page launch announcement for a note-taking app with offline sync and end-to-end encryption."


async def main():
    try:
        result = await orchestrate(Planner, Worker, Synthesizer, input=TASK)

        for index, subtask in enumerate(result["subtasks"], start=1):
            print(f"Subtask {index}: {subtask['task']}")
        print()
        print(result["output"])
        print(f"\nTokens used: {result['tokens']['total_tokens']}")
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
