"""
02_parallelization.py - Parallelization
=======================================

Run independent agents on the same input at the same time, then optionally
merge what they found with one more agent.

What you'll learn:
  • parallel(): concurrent fan-out, results in the order you passed the agents
  • aggregate(): fan-out followed by a single aggregation call

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."

Run this example:
  python examples/02_parallelization.py
"""

import asyncio
import logging

from agentpipes import ClientError, PipeAgent, aggregate, parallel, shutdown

logger = logging.getLogger(__name__)


class SentimentAnalyst(PipeAgent):
    """Describe the overall sentiment of the review in one sentence."""


class IssueSpotter(PipeAgent):
    """List every concrete product problem the review mentions. Say 'none' if there are none."""


class PraiseSpotter(PipeAgent):
    """List every concrete thing the reviewer liked. Say 'none' if there is nothing."""


class ReviewReport(PipeAgent):
    """
    You receive several analyses of one customer review.
    Combine them into a short report with the headings Sentiment, Problems and Praise.
    """


REVIEW = """
Battery life is fantastic, easily a full workday. The keyboard feels cheap though,
and the trackpad stopped clicking after two weeks. Support replaced it quickly.
"""


async def main():
    try:
        # =========================================================================
        # Fan-out only
        # =========================================================================
        results = await parallel([SentimentAnalyst, IssueSpotter, PraiseSpotter], input=REVIEW)
        for result in results:
            print(f"--- {result['agent']} ---")
            print(result["output"])
            print()

        # =========================================================================
        # Fan-out + aggregation
        # =========================================================================
        report = await aggregate([SentimentAnalyst, IssueSpotter, PraiseSpotter], ReviewReport,
                                 input=REVIEW,
                                 template="Review:\n{input}\n\nAnalyses:\n{outputs}")
        print("=== Report ===")
        print(report["output"])
        print(f"\nTokens used: {report['tokens']['total_tokens']}")
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
