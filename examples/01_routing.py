"""
01_routing.py - Routing
=======================

Classify an input first, then hand it to the specialist that fits. The
router runs in JSON mode with a Pydantic output model, so its decision is
validated before anything is dispatched.

What you'll learn:
  • How Config.output_model turns on JSON mode and validates the answer
  • How route() dispatches to the chosen agent
  • How an unknown choice surfaces as RoutingError

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."

Run this example:
  python examples/01_routing.py
"""

import asyncio
import logging
from typing import Literal

from pydantic import BaseModel

from agentpipes import ClientError, PipeAgent, RoutingError, route, shutdown

logger = logging.getLogger(__name__)


# =============================================================================
# Step 1: The router
# =============================================================================

class Decision(BaseModel):
    route: Literal["billing", "technical", "general"]
    reason: str


class TicketRouter(PipeAgent):
    """
    You triage customer support tickets.
    Answer with a JSON object: {"route": "billing" | "technical" | "general", "reason": "..."}.
    """

    class Config:
        output_model = Decision
        temperature = 0


# =============================================================================
# Step 2: The specialists
# =============================================================================

class BillingSupport(PipeAgent):
    """You resolve billing questions: invoices, refunds, payment methods. Be precise about amounts."""


class TechnicalSupport(PipeAgent):
    """You troubleshoot technical problems step by step. Ask for logs when you need them."""


class GeneralSupport(PipeAgent):
    """You answer general questions about the company and its products, briefly and politely."""


ROUTES = {
    "billing": BillingSupport,
    "technical": TechnicalSupport,
    "general": GeneralSupport,
}

TICKETS = [
    "I was charged twice for my March subscription.",
    "The desktop app crashes every time I open a shared folder.",
    "Do you have an office in Lisbon?",
]


async def main():
    try:
        for ticket in TICKETS:
            try:
                result = await route(TicketRouter, ROUTES, input=ticket)
            except RoutingError as exc:
                print(f"Could not route ticket: {exc}")
                continue
            print(f"[{result['route']}] {ticket}")
            print(result["output"])
            print()
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
