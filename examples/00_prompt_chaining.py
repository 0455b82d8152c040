"""
00_prompt_chaining.py - Prompt Chaining
=======================================

Break a task into fixed steps where each agent's output is the next agent's
input. Here a product description is summarized, its features are pulled
out, and marketing copy is written from those features.

What you'll learn:
  • How a class docstring becomes the pipe's system prompt
  • How chain() runs agents in order and sums their token usage
  • How to inspect every intermediate output

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."   (or put it in a .env file)

Run this example:
  python examples/00_prompt_chaining.py
"""

import asyncio
import logging

from agentpipes import ClientError, PipeAgent, chain, shutdown

logger = logging.getLogger(__name__)


# =============================================================================
# Step 1: One agent per step
# =============================================================================

class Summarizer(PipeAgent):
    """
    You summarize product descriptions in two or three sentences.
    Keep every concrete number from the original text.
    """


class FeatureExtractor(PipeAgent):
    """
    Extract the key product features from the summary as a bulleted list.
    One feature per bullet, no marketing language.
    """


class CopyWriter(PipeAgent):
    """
    Write a short, upbeat marketing paragraph from the feature list.
    Mention at most three features.
    """

    class Config:
        temperature = 0.8


# =============================================================================
# Step 2: Run the chain
# =============================================================================

PRODUCT = """
The Voyager 14 is a 1.2 kg laptop with a 14-inch 2.8K OLED display, 16 GB of
RAM and a 1 TB SSD. Its 72 Wh battery lasts up to 18 hours of video playback,
and it charges to 50% in 30 minutes over USB-C.
"""


async def main():
    try:
        result = await chain([Summarizer, FeatureExtractor, CopyWriter], input=PRODUCT)

        for name, output in zip(("Summary", "Features", "Copy"), result["steps_output"]):
            print(f"--- {name} ---")
            print(output)
            print()

        print(f"Tokens used: {result['tokens']['total_tokens']}")
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
