"""In-memory fake of the pipe service, served through ``httpx.MockTransport``."""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List

import httpx
import orjson


Reply = Dict[str, Any] | Callable[[Dict[str, Any]], Dict[str, Any]]


def run_body(completion: str = "ok", *, tool_calls: List[dict] | None = None,
             usage: Dict[str, int] | None = None) -> Dict[str, Any]:
    """Build a non-streamed run response body."""
    message: Dict[str, Any] = {"role": "assistant", "content": completion}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "completion": completion,
        "choices": [{"index": 0, "message": message, "finish_reason": "tool_calls" if tool_calls else "stop"}],
        "usage": usage or {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def tool_call(name: str, arguments: str = "{}", call_id: str = "call_1") -> dict:
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


class FakePipeService:
    """Records every request and answers runs from per-pipe reply queues."""

    def __init__(self):
        self.requests: List[tuple[str, str, Dict[str, Any]]] = []
        self.replies: Dict[str, List[Reply]] = defaultdict(list)
        self.thread_id: str | None = "thread-1"
        self.chunks: List[Dict[str, Any]] = []
        self.errors: Dict[str, tuple[int, Dict[str, Any]]] = {}

    def reply(self, pipe: str, *replies: Reply) -> None:
        self.replies[pipe].extend(replies)

    def fail(self, path: str, status: int = 500, message: str = "boom") -> None:
        self.errors[path] = (status, {"error": {"code": "ERROR", "message": message}})

    def bodies(self, path: str) -> List[Dict[str, Any]]:
        return [body for _, p, body in self.requests if p == path]

    def runs_for(self, pipe: str) -> List[Dict[str, Any]]:
        return [body for body in self.bodies("/v1/pipes/run") if body.get("name") == pipe]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = orjson.loads(request.content) if request.content and request.method == "POST" else {}
        self.requests.append((request.method, path, body))

        if path in self.errors:
            status, payload = self.errors[path]
            return httpx.Response(status, json=payload)

        if path == "/v1/pipes":
            return httpx.Response(200, json={"name": body["name"], "model": body["model"], "status": "private"})
        if path == "/v1/pipes/run":
            queue = self.replies.get(body["name"])
            reply: Reply = queue.pop(0) if queue else run_body("ok")
            if callable(reply):
                reply = reply(body)
            headers = {"lb-thread-id": self.thread_id} if self.thread_id else {}
            return httpx.Response(200, json=reply, headers=headers)
        if path == "/v1/memory":
            return httpx.Response(200, json={"name": body["name"], "description": body.get("description", "")})
        if path == "/v1/memory/documents":
            return httpx.Response(200, json={"signedUrl": "https://uploads.test/signed?token=abc"})
        if path == "/v1/memory/retrieve":
            return httpx.Response(200, json=self.chunks)
        if path == "/signed":
            return httpx.Response(200)
        return httpx.Response(404, json={"error": {"code": "NOT_FOUND", "message": f"no route {path}"}})


