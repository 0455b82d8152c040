"""
08_chat_cli.py - Chatting with a Pipe
=====================================

The package installs an ``agentpipes`` command. Provision a pipe with an
agent class, then talk to it from the terminal; the thread id from the first
reply is reused so the pipe remembers the conversation.

The same thing from a shell:
  agentpipes run travel-guide "Three things to do in Porto?"
  agentpipes chat travel-guide

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."

Run this example:
  python examples/08_chat_cli.py
"""

import asyncio
import logging
import sys

from agentpipes import ClientError, PipeAgent, shutdown
from agentpipes.cli import chat_loop

logger = logging.getLogger(__name__)


class TravelGuide(PipeAgent):
    """You are a friendly travel guide. Keep answers under 100 words."""


async def main():
    try:
        async with TravelGuide() as agent:
            pipe = await agent.ensure_pipe()
        print(f"Chatting with '{pipe.name}'. Type 'exit' to leave.")
        turns = await chat_loop(pipe.name, stdin=sys.stdin, stdout=sys.stdout)
        print(f"{turns} turn(s).")
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
