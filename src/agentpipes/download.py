"""Plain HTTP download helper, used to fetch documents before loading them into a memory."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from agentpipes.core.exceptions import ClientError

__all__ = ["download", ]

logger = logging.getLogger(__name__)


async def download(url: str, *, dest: str | Path | None = None, timeout: float = 60.0,
                   transport: httpx.AsyncBaseTransport | None = None) -> bytes | Path:
    """GET ``url`` and buffer the whole body.

    Returns:
        The body as bytes, or the written path when ``dest`` is given.

    Raises:
        ClientError: On transport failure or a non-2xx status.
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
            response = await client.get(url)
    except asyncio.CancelledError:
        raise
    except httpx.HTTPError as exc:
        exc_msg = f"HTTP error downloading {url}. Error: {exc}"
        if logger.isEnabledFor(logging.ERROR):
            logger.exception(exc_msg)
        raise ClientError(agent_name="download", message=exc_msg) from exc

    if response.is_error:
        exc_msg = f"GET {url} returned {response.status_code}"
        logger.error(exc_msg)
        raise ClientError(agent_name="download", message=exc_msg, status_code=response.status_code)

    body = response.content
    logger.info("Downloaded %d bytes from %s", len(body), url)
    if dest is None:
        return body

    path = Path(dest)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(body)
    return path
