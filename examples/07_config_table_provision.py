"""
07_config_table_provision.py - Config Tables and Provisioning
=============================================================

When prompts live in configuration rather than code, describe every role in
one table, turn it into agent classes, and create all their pipes up front.

What you'll learn:
  • agents_from_table(): one agent class per row, validated like hand-written agents
  • provision(): create (or reuse) every pipe concurrently before serving traffic

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."
  export AGENTPIPES_DEFAULT_MODEL="openai:gpt-4o-mini"   (optional)

Run this example:
  python examples/07_config_table_provision.py
"""

import asyncio
import logging

from agentpipes import ClientError, ConfigurationError, agents_from_table, chain, load_settings, provision, shutdown

logger = logging.getLogger(__name__)

AGENTS = {
    "summary": {
        "prompt": "Summarize the text in three sentences.",
        "temperature": 0.2,
    },
    "translate": {
        "model": "openai:gpt-4o",
        "prompt": "Translate the text into Portuguese. Keep the formatting.",
    },
    "headline": {
        "prompt": "Write one headline for the text. Return only the headline.",
        "max_tokens": 40,
    },
}


async def main():
    try:
        settings = load_settings()
        agents = agents_from_table(AGENTS, default_model=settings.default_model)

        pipes = await provision(agents)
        for name, pipe in pipes.items():
            print(f"Pipe ready: {name} ({pipe.model})")
        print()

        result = await chain([agents["summary"], agents["translate"], agents["headline"]],
                             input="Remote work has reshaped city centres: office occupancy is down, "
                                   "while neighbourhood cafés and co-working spaces report record demand.")
        print(result["output"])
    except (ClientError, ConfigurationError) as exc:
        logger.error("Run failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
