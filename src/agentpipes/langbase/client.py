"""Async HTTP client for the hosted pipe service.

The service is a black box exposing a handful of JSON endpoints:

    POST /v1/pipes              create (or, with ``upsert``, reuse) a named pipe
    POST /v1/pipes/run          run a pipe on a message list
    POST /v1/memory             create a memory (document store)
    POST /v1/memory/documents   get a signed URL to upload a document
    POST /v1/memory/retrieve    similarity search over one or more memories

``AsyncPipeClient`` is a per-event-loop singleton so every agent in a loop
shares one connection pool.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

import httpx
import orjson

from agentpipes.core.exceptions import ClientError
from agentpipes.core.messages import Message, ToolCall
from agentpipes.settings import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, load_settings
from agentpipes.utils.singleton import PerEventLoopSingleton

__all__ = ["AsyncPipeClient", "Pipe", "RunResult", "MemoryChunk", "shutdown", ]

logger = logging.getLogger(__name__)

THREAD_ID_HEADER = "lb-thread-id"


@dataclass(frozen=True, slots=True)
class Pipe:
    """Handle for a provisioned pipe."""
    name: str
    model: str | None = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True, slots=True)
class RunResult:
    completion: str
    thread_id: str | None = None
    tool_calls: Tuple[ToolCall, ...] = ()
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True, slots=True)
class MemoryChunk:
    text: str
    similarity: float = 0.0
    meta: Dict[str, Any] = field(default_factory=dict)


def _as_wire_messages(messages: Iterable[Message | Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [m.to_dict() if isinstance(m, Message) else dict(m) for m in messages]


def _memory_refs(memory: str | Sequence[str]) -> List[Dict[str, str]]:
    names = (memory,) if isinstance(memory, str) else tuple(memory)
    return [{"name": name} for name in names]


def _error_detail(response: httpx.Response) -> str:
    """Best-effort extraction of the service's error message."""
    try:
        body = orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or error)
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return str(body)[:500]


def _parse_run(body: Dict[str, Any], headers: httpx.Headers) -> RunResult:
    raw = body.get("raw") if isinstance(body.get("raw"), dict) else {}
    choices = body.get("choices") or raw.get("choices") or []
    message: Dict[str, Any] = {}
    if choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
    tool_calls = tuple(ToolCall.from_dict(call) for call in message.get("tool_calls") or ())
    completion = body.get("completion")
    if completion is None:
        completion = message.get("content") or ""
    usage = body.get("usage") or raw.get("usage") or {}
    thread_id = headers.get(THREAD_ID_HEADER) or body.get("threadId") or None
    return RunResult(completion=completion,
                     thread_id=thread_id,
                     tool_calls=tool_calls,
                     usage=dict(usage),
                     raw=body)


class AsyncPipeClient(metaclass=PerEventLoopSingleton):
    """
    Per-event-loop singleton wrapper around ``httpx.AsyncClient`` for the pipe service.

    - The first instantiation in a loop fixes the credentials; later calls return the same object.
    - Without an explicit ``api_key`` the settings are read from the environment (``.env`` aware).
    - Call ``await AsyncPipeClient().aclose()`` (or :func:`shutdown`) before the loop ends.
    """

    __slots__ = ("_client", "_api_key", "_closed")

    def __init__(self,
                 *,
                 api_key: str | None = None,
                 base_url: str | None = None,
                 timeout: float | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        if api_key is None:
            settings = load_settings()
            api_key = settings.api_key
            base_url = base_url or settings.base_url
            timeout = timeout or settings.timeout
        self._api_key: str = api_key
        self._client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=base_url or DEFAULT_BASE_URL,
            timeout=httpx.Timeout(timeout or DEFAULT_TIMEOUT),
            transport=transport,
            follow_redirects=True)
        self._closed: bool = False

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    async def _send(self, method: str, url: str, *, payload: Any = None,
                    headers: Dict[str, str] | None = None, content: bytes | None = None,
                    authorized: bool = True) -> httpx.Response:
        request_headers: Dict[str, str] = {}
        if authorized:
            request_headers["Authorization"] = f"Bearer {self._api_key}"
        if payload is not None:
            request_headers["Content-Type"] = "application/json"
            content = orjson.dumps(payload)
        if headers:
            request_headers.update(headers)

        try:
            response = await self._client.request(method, url, content=content, headers=request_headers)
        except asyncio.CancelledError:
            raise
        except httpx.HTTPError as exc:
            exc_msg = f"HTTP error during {method} {url}. Error: {exc}"
            if logger.isEnabledFor(logging.ERROR):
                logger.exception(exc_msg)
            raise ClientError(message=exc_msg) from exc

        if response.is_error:
            exc_msg = f"{method} {url} returned {response.status_code}: {_error_detail(response)}"
            logger.error(exc_msg)
            raise ClientError(message=exc_msg, status_code=response.status_code)

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as exc:
            exc_msg = f"Invalid JSON from {response.request.url}. Error: {exc}"
            if logger.isEnabledFor(logging.ERROR):
                logger.exception(exc_msg)
            raise ClientError(message=exc_msg, status_code=response.status_code) from exc

    async def create_pipe(self,
                          name: str,
                          *,
                          model: str,
                          messages: Iterable[Message | Mapping[str, Any]] = (),
                          description: str | None = None,
                          json: bool = False,
                          memory: Sequence[str] = (),
                          tools: Sequence[Dict[str, Any]] = (),
                          temperature: float | None = None,
                          max_tokens: int | None = None,
                          upsert: bool = True) -> Pipe:
        """Create a named pipe; with ``upsert`` an existing pipe of that name is updated and reused."""
        payload: Dict[str, Any] = {
            "name": name,
            "model": model,
            "messages": _as_wire_messages(messages),
            "json": json,
            "stream": False,
            "upsert": upsert,
        }
        if description:
            payload["description"] = description
        if memory:
            payload["memory"] = _memory_refs(memory)
        if tools:
            payload["tools"] = list(tools)
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        body = self._json(await self._send("POST", "/v1/pipes", payload=payload))
        body = body if isinstance(body, dict) else {}
        return Pipe(name=body.get("name", name), model=body.get("model", model), raw=body)

    async def run_pipe(self,
                       name: str,
                       messages: Iterable[Message | Mapping[str, Any]],
                       *,
                       thread_id: str | None = None,
                       tools: Sequence[Dict[str, Any]] = (),
                       variables: Mapping[str, str] | None = None,
                       stream: bool = False) -> RunResult:
        """Run a pipe and wait for the whole completion."""
        if stream:
            raise ValueError("Streaming runs are not supported; use stream=False.")
        payload: Dict[str, Any] = {
            "name": name,
            "messages": _as_wire_messages(messages),
            "stream": False,
        }
        if thread_id:
            payload["threadId"] = thread_id
        if tools:
            payload["tools"] = list(tools)
        if variables:
            payload["variables"] = [{"name": k, "value": v} for k, v in variables.items()]

        response = await self._send("POST", "/v1/pipes/run", payload=payload)
        body = self._json(response)
        return _parse_run(body if isinstance(body, dict) else {}, response.headers)

    async def create_memory(self, name: str, *, description: str | None = None,
                            embedding_model: str | None = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": name}
        if description:
            payload["description"] = description
        if embedding_model:
            payload["embedding_model"] = embedding_model
        return self._json(await self._send("POST", "/v1/memory", payload=payload))

    async def upload_document(self, memory_name: str, document_name: str, content: bytes, *,
                              content_type: str = "text/plain",
                              meta: Mapping[str, str] | None = None) -> None:
        """Upload a document into a memory via the signed URL the service hands out."""
        payload: Dict[str, Any] = {"memoryName": memory_name,
                                   "documentName": document_name,
                                   "contentType": content_type}
        if meta:
            payload["meta"] = dict(meta)
        body = self._json(await self._send("POST", "/v1/memory/documents", payload=payload))
        signed_url = body.get("signedUrl") if isinstance(body, dict) else None
        if not signed_url:
            raise ClientError(message=f"No signed URL returned for document '{document_name}'.")
        # The signed URL carries its own credentials.
        await self._send("PUT", signed_url, content=content,
                         headers={"Content-Type": content_type}, authorized=False)

    async def retrieve_memory(self, query: str, memory: str | Sequence[str], *, top_k: int = 5) -> List[MemoryChunk]:
        """Return the ``top_k`` most similar chunks across the given memories."""
        payload = {"query": query, "memory": _memory_refs(memory), "topK": top_k}
        body = self._json(await self._send("POST", "/v1/memory/retrieve", payload=payload))
        if isinstance(body, dict):
            body = body.get("chunks") or body.get("data") or []
        return [MemoryChunk(text=item.get("text", ""),
                            similarity=float(item.get("similarity", 0.0) or 0.0),
                            meta=dict(item.get("meta") or {}))
                for item in body if isinstance(item, dict)]

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.aclose()
        finally:
            type(self).delete_instance()


async def shutdown() -> None:
    """Close the pipe client of the running loop, if one was created. Safe to call repeatedly."""
    instance = AsyncPipeClient.get_instance()
    if isinstance(instance, AsyncPipeClient):
        await instance.aclose()
