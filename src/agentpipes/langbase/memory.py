"""Memory-augmented answering.

Two flavours are supported:

* Attach memories to the pipe itself (``Config.memory = ("docs",)``); the
  service retrieves context on every run.
* Retrieve explicitly with :func:`retrieve_chunks` and hand the chunks to an
  agent with :func:`answer_with_memory`. This keeps retrieval visible to the
  caller, which is what a support agent citing its sources needs.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from agentpipes.langbase.client import AsyncPipeClient, MemoryChunk

__all__ = ["retrieve_chunks", "format_chunks", "answer_with_memory", ]

logger = logging.getLogger(__name__)

CONTEXT_TEMPLATE = """Answer the question using only the context below.
If the context does not contain the answer, say that you don't know.

Context:
{context}

Question: {query}"""


async def retrieve_chunks(query: str, memory: str | Sequence[str], *, top_k: int = 5) -> List[MemoryChunk]:
    if not isinstance(query, str) or not query.strip():
        raise ValueError("retrieve_chunks() requires a non-empty query")
    if top_k <= 0:
        raise ValueError("retrieve_chunks() top_k must be > 0")
    chunks = await AsyncPipeClient().retrieve_memory(query, memory, top_k=top_k)
    logger.debug("Retrieved %d chunk(s) for query %r", len(chunks), query)
    return chunks


def format_chunks(chunks: Sequence[MemoryChunk]) -> str:
    """Render chunks as numbered context blocks, most similar first."""
    ordered = sorted(chunks, key=lambda chunk: chunk.similarity, reverse=True)
    return "\n\n".join(f"[{index}] {chunk.text.strip()}" for index, chunk in enumerate(ordered, start=1))


async def answer_with_memory(agent_cls: type,
                             *,
                             query: str,
                             memory: str | Sequence[str],
                             top_k: int = 5,
                             template: str = CONTEXT_TEMPLATE) -> dict:
    """Retrieve chunks for ``query`` and let ``agent_cls`` answer from them.

    The returned result dict is the agent's, with the retrieved ``chunks`` added.
    """
    chunks = await retrieve_chunks(query, memory, top_k=top_k)
    if not chunks:
        logger.warning("No memory chunks found for query %r; answering without context", query)
    prompt = template.format(context=format_chunks(chunks) or "(no context found)", query=query)

    agent = agent_cls()
    try:
        result = await agent.process(prompt)
    finally:
        await agent.aclose()
    result["chunks"] = chunks
    return result
