"""Recorded provider output replayed through httpx.MockTransport.

The real adapters, codecs and buffering run end to end without a network.
"""

import asyncio
import json
from typing import Any, Callable, Dict, Iterable, List, Union

import httpx


def sse_body(*events: Union[Dict[str, Any], str], done: bool = True) -> bytes:
    """Frame events as ``data:`` lines. Strings are written verbatim."""
    lines = [e if isinstance(e, str) else f"data: {json.dumps(e)}" for e in events]
    if done:
        lines.append("data: [DONE]")
    return ("\n".join(lines) + "\n").encode("utf-8")


def responses_text(text: str) -> Dict[str, Any]:
    return {"type": "response.output_text.delta", "delta": text}


def responses_reasoning(text: str) -> Dict[str, Any]:
    return {"type": "response.reasoning_text.delta", "delta": text}


def chat_text(text: str) -> Dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": text}}]}


def responses_body(text: str, reasoning: str = "") -> Dict[str, Any]:
    """One-shot Responses API body."""
    body: Dict[str, Any] = {
        "output": [{"type": "message", "content": [{"type": "output_text", "text": text}]}]
    }
    if reasoning:
        body["reasoning"] = {"text": reasoning}
    return body


def chat_body(content: Any) -> Dict[str, Any]:
    """One-shot chat completions body."""
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class FailingStream(httpx.AsyncByteStream):
    """Body that yields some chunks and then drops the connection."""

    def __init__(self, chunks: Iterable[bytes], error: Exception):
        self._chunks = list(chunks)
        self._error = error

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        raise self._error

    async def aclose(self) -> None:
        pass


class HangingStream(httpx.AsyncByteStream):
    """Body that yields some chunks and then waits forever."""

    def __init__(self, chunks: Iterable[bytes]):
        self._chunks = list(chunks)
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class ProviderStub:
    """Routes requests to canned replies by endpoint and records them.

    Example:
        stub = ProviderStub()
        stub.local(httpx.Response(200, content=sse_body(responses_text("Hi."))))
        gateway = CoachGateway(GatewayConfig(), transport=stub.transport())
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._replies: Dict[str, Reply] = {}

    def local(self, reply: Reply) -> "ProviderStub":
        self._replies["/responses"] = reply
        return self

    def openrouter(self, reply: Reply) -> "ProviderStub":
        self._replies["/chat/completions"] = reply
        return self

    def calls_to(self, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    def payloads_to(self, suffix: str) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.calls_to(suffix)]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, reply in self._replies.items():
            if request.url.path.endswith(suffix):
                if isinstance(reply, Exception):
                    raise reply
                if isinstance(reply, httpx.Response):
                    return reply
                return reply(request)
        raise httpx.ConnectError(f"No stub for {request.url}", request=request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


def stream_reply(*events: Union[Dict[str, Any], str], done: bool = True) -> Callable:
    """Reply factory producing a fresh streamed body per request."""
    body = sse_body(*events, done=done)
    return lambda request: httpx.Response(
        200, headers={"Content-Type": "text/event-stream"}, content=body
    )


def json_reply(body: Any, status_code: int = 200) -> Callable:
    return lambda request: httpx.Response(status_code, json=body)


async def collect(events) -> list:
    return [event async for event in events]
