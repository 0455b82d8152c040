"""
06_memory_support_agent.py - Memory-backed Support Agent
========================================================

Retrieve the most relevant chunks from a memory (a vector store of your
documents) and let a support agent answer from them only.

Steps:
  1. Create a memory and upload a document (skipped if --no-upload)
  2. Retrieve the chunks closest to the question
  3. Answer with the chunks as context

Prerequisites:
  pip install agentpipes
  export LANGBASE_API_KEY="..."

Run this example:
  python examples/06_memory_support_agent.py
"""

import asyncio
import logging
import sys

from agentpipes import AsyncPipeClient, ClientError, PipeAgent, answer_with_memory, shutdown

logger = logging.getLogger(__name__)

MEMORY = "product-codes"

FAQ = b"""# Product codes

CRID (Content Reference ID) identifies a single piece of content across all catalogues.

CRPID (Content Reference Product ID) identifies a product offering built from one or
more CRIDs. One CRID can belong to many CRPIDs; a CRPID always references at least one CRID.
"""


class SupportAgent(PipeAgent):
    """
    You are a support agent for our content catalogue.
    Answer in the language of the question, using only the context you are given.
    Cite the context blocks you used, e.g. [1].
    """

    class Config:
        temperature = 0.2


async def upload_faq():
    client = AsyncPipeClient()
    try:
        await client.create_memory(MEMORY, description="Product code definitions")
    except ClientError as exc:
        # Already exists
        if exc.status_code != 409:
            raise
    await client.upload_document(MEMORY, "product-codes.md", FAQ, content_type="text/markdown")
    print("Uploaded product-codes.md; the service embeds it in the background.\n")


async def main():
    try:
        if "--no-upload" not in sys.argv:
            await upload_faq()

        query = "Qual é a diferença entre CRPID e CRID?"
        result = await answer_with_memory(SupportAgent, query=query, memory=MEMORY, top_k=4)

        print("Query:", query)
        print("Completion:", result["output"])
        print("\nSources:")
        for chunk in result["chunks"]:
            print(f"  {chunk.similarity:.2f}  {chunk.text[:60]!r}")
    except ClientError as exc:
        logger.error("Pipe service call failed: %s", exc)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
