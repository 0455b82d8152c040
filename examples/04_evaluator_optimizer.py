"""
04_evaluator_optimizer.py - Evaluator / Optimizer
=================================================

One agent drafts, another reviews. The draft is revised with the reviewer's
feedback until the reviewer answers exactly ACCEPTED, or the iteration limit
is reached. Running out of iterations is not an error: you get the last
draft with accepted=False.

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."

Run this example:
  python examples/04_evaluator_optimizer.py
"""

import asyncio
import logging

from agentpipes import ClientError, PipeAgent, evaluate_optimize, shutdown

logger = logging.getLogger(__name__)


class TaglineWriter(PipeAgent):
    """You write product taglines. Return only the tagline."""

    class Config:
        temperature = 0.9


class TaglineCritic(PipeAgent):
    """
    You review product taglines. A good tagline is under 8 words, concrete,
    and free of cliches. If the tagline is good, reply with exactly ACCEPTED
    and nothing else. Otherwise explain what to change in one or two sentences.
    """

    class Config:
        temperature = 0


async def main():
    try:
        result = await evaluate_optimize(TaglineWriter, TaglineCritic,
                                         input="A tagline for a solar-powered bike light.",
                                         max_iterations=4)

        for iteration, feedback in enumerate(result["feedback"], start=1):
            print(f"Round {iteration}: {feedback}")
        print()
        status = "accepted" if result["accepted"] else "not accepted"
        print(f"Final tagline ({status} after {result['iterations']} round(s)): {result['output']}")
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
