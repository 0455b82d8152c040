"""
05_tool_use.py - Agents with Tools
==================================

Public methods with a docstring are registered on the pipe as function
tools. When the model calls one, the agent runs it and sends the result
back on the same thread until the model produces a final answer.

Key concepts:
  • Method name → tool name
  • Method docstring → tool description
  • Type hints → JSON Schema for parameters
  • Sync methods run in a worker thread, async methods are awaited
  • Config.max_steps bounds the number of model calls

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."

Run this example:
  python examples/05_tool_use.py
"""

import asyncio
import logging
from typing import Literal

from agentpipes import ClientError, MaxStepsExceededError, PipeAgent, shutdown

logger = logging.getLogger(__name__)


ORDERS = {
    "A-1001": {"status": "shipped", "carrier": "DHL", "eta": "2 days"},
    "A-1002": {"status": "processing", "carrier": None, "eta": "5 days"},
}


class OrderAssistant(PipeAgent):
    """
    You help customers with their orders.
    Use the tools to look up orders and estimate shipping costs. Never guess an order status.
    """

    class Config:
        max_steps = 4
        tool_timeout = 10

    async def get_order(self, order_id: str) -> dict:
        """
        Look up an order by its id.

        Args:
            order_id: The order id, e.g. "A-1001".
        """
        order = ORDERS.get(order_id.upper())
        if order is None:
            return {"error": f"No order {order_id}"}
        return {"order_id": order_id.upper(), **order}

    def shipping_cost(self, weight_kg: float, speed: Literal["standard", "express"] = "standard") -> dict:
        """Estimate the shipping cost in EUR for a parcel."""
        rate = 4.5 if speed == "standard" else 9.0
        return {"cost_eur": round(2 + rate * weight_kg, 2), "speed": speed}


async def main():
    try:
        print("Tools registered on the pipe:")
        for name in OrderAssistant.get_definition()["tools"]:
            print(f"  • {name}")
        print()

        async with OrderAssistant() as agent:
            try:
                result = await agent.process("Where is order a-1001, and what would express shipping of 3 kg cost?")
            except MaxStepsExceededError as exc:
                print(f"Gave up: {exc}")
            else:
                print(result["output"])
                print(f"\nModel calls: {result['steps']}, tool calls: {len(result['tool_calls'])}")
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
