"""Wire codecs for the coach gateway.

A codec translates a CompletionRequest into one provider's JSON body and
decodes that provider's answers back into raw deltas (streaming) or an
answer/reasoning pair (one-shot). Two formats are supported:

- ResponsesCodec: single prompt, ``POST {base}/responses``. Reasoning
  arrives on its own event types.
- ChatCompletionsCodec: role messages, ``POST {base}/chat/completions``.
  No reasoning channel; reasoning models embed it between <think> markers
  in the visible text.

Both stream as ``data: {json}`` lines terminated by ``data: [DONE]``.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import MalformedResponseError
from .types import Channel, CompletionRequest, Delta, ModelSelection, WireFormat

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

THINK_START = "<think>"
THINK_END = "</think>"


def split_reasoning_markers(text: Optional[str]) -> Tuple[str, str]:
    """Split assembled text into (reasoning, answer) using <think> markers.

    Only the first opening and first closing marker are considered. When
    either is missing, or they are out of order, there is no reasoning and
    the whole text is the answer.
    """
    if not text or not isinstance(text, str):
        return "", text or ""

    start = text.find(THINK_START)
    end = text.find(THINK_END)

    if start == -1 or end == -1 or end < start:
        return "", text.strip()

    reasoning = text[start + len(THINK_START):end].strip()
    answer = (text[:start] + text[end + len(THINK_END):]).strip()
    return reasoning, answer


def read_data_line(line: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
    """Parse one line of a ``data:``-framed stream.

    Returns:
        (done, event): done is True on the [DONE] sentinel. event is the
        decoded JSON object, or None for ignorable and corrupt lines.
    """
    line = line.rstrip()
    if not line or not line.lower().startswith(DATA_PREFIX):
        return False, None

    data = line[len(DATA_PREFIX):].strip()
    if data == DONE_SENTINEL:
        return True, None

    try:
        event = json.loads(data)
    except json.JSONDecodeError:
        logger.debug(f"Skipping unparseable stream line: {data[:80]!r}")
        return False, None

    if not isinstance(event, dict):
        return False, None
    return False, event


def _delta_text(delta: Any, *keys: str) -> str:
    """Pull a text fragment out of a bare-string or object delta."""
    if isinstance(delta, str):
        return delta
    if isinstance(delta, dict):
        for key in keys:
            value = delta.get(key)
            if isinstance(value, str):
                return value
    return ""


class WireCodec(ABC):
    """Encodes requests and decodes responses for one wire format."""

    wire_format: WireFormat
    endpoint: str

    @abstractmethod
    def encode(
        self,
        request: CompletionRequest,
        selection: ModelSelection,
        stream: bool,
    ) -> Dict[str, Any]:
        """Build the provider JSON body."""

    @abstractmethod
    def decode_event(self, event: Dict[str, Any]) -> List[Delta]:
        """Extract deltas from one streamed JSON event."""

    @abstractmethod
    def decode_response(self, data: Any) -> Tuple[Optional[str], str]:
        """Extract (answer, reasoning) from a complete response body."""

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/{self.endpoint}"

    def decode_lines(self, lines: Iterable[str]) -> Iterator[Delta]:
        """Decode a recorded transcript, stopping at the [DONE] sentinel."""
        for line in lines:
            done, event = read_data_line(line)
            if done:
                return
            if event is not None:
                yield from self.decode_event(event)

    async def adecode_lines(self, lines: AsyncIterable[str]) -> AsyncIterator[Delta]:
        """Decode a live stream, stopping at the [DONE] sentinel."""
        async for line in lines:
            done, event = read_data_line(line)
            if done:
                return
            if event is None:
                continue
            for delta in self.decode_event(event):
                yield delta


class ResponsesCodec(WireCodec):
    """Single-prompt codec (Responses API, e.g. LM Studio)."""

    wire_format = WireFormat.RESPONSES
    endpoint = "responses"

    def encode(
        self,
        request: CompletionRequest,
        selection: ModelSelection,
        stream: bool,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": selection.model,
            "input": request.full_prompt,
            "max_output_tokens": selection.max_tokens,
            "temperature": selection.temperature,
            "top_p": selection.top_p,
            "stream": stream,
        }

        effort = request.reasoning_effort
        if effort is not None and not request.reasoning_disabled:
            payload["reasoning"] = {"effort": effort.value}

        return payload

    def decode_event(self, event: Dict[str, Any]) -> List[Delta]:
        event_type = event.get("type")
        if not isinstance(event_type, str):
            return []

        if "output_text.delta" in event_type:
            text = _delta_text(event.get("delta"), "text", "output_text")
            return [Delta(Channel.VISIBLE, text)] if text else []

        if "reasoning" in event_type:
            text = _delta_text(event.get("delta"), "text")
            if not text and isinstance(event.get("text"), str):
                text = event["text"]
            return [Delta(Channel.REASONING, text)] if text else []

        return []

    def decode_response(self, data: Any) -> Tuple[Optional[str], str]:
        if not isinstance(data, dict):
            raise MalformedResponseError("Responses body is not a JSON object")

        answer = ""
        for out in data.get("output") or []:
            if not isinstance(out, dict) or not isinstance(out.get("content"), list):
                continue
            for part in out["content"]:
                if not isinstance(part, dict):
                    continue
                if isinstance(part.get("text"), str):
                    answer += part["text"]
                elif isinstance(part.get("content"), str):
                    answer += part["content"]

        reasoning = ""
        native = data.get("reasoning")
        if isinstance(native, dict):
            if isinstance(native.get("text"), str):
                reasoning += native["text"]
            for part in native.get("content") or []:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    reasoning += part["text"]

        if not reasoning and isinstance(data.get("reasoning_content"), str):
            reasoning = data["reasoning_content"]
        if not answer and isinstance(data.get("content"), str):
            answer = data["content"]

        if not reasoning:
            reasoning, answer = split_reasoning_markers(answer)

        return answer, reasoning


class ChatCompletionsCodec(WireCodec):
    """Role-message codec (OpenAI-compatible chat completions)."""

    wire_format = WireFormat.CHAT
    endpoint = "chat/completions"

    def encode(
        self,
        request: CompletionRequest,
        selection: ModelSelection,
        stream: bool,
    ) -> Dict[str, Any]:
        # Effort has no dedicated field here; reasoning models emit <think>
        # blocks in content regardless.
        return {
            "model": selection.model,
            "messages": [
                {"role": "system", "content": request.system_prompt or ""},
                {"role": "user", "content": request.user_content or ""},
            ],
            "max_tokens": selection.max_tokens,
            "temperature": selection.temperature,
            "top_p": selection.top_p,
            "stream": stream,
        }

    def decode_event(self, event: Dict[str, Any]) -> List[Delta]:
        choices = event.get("choices")
        if not isinstance(choices, list) or not choices:
            return []
        first = choices[0] if isinstance(choices[0], dict) else {}
        delta = first.get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            return [Delta(Channel.VISIBLE, content)]
        return []

    def decode_response(self, data: Any) -> Tuple[Optional[str], str]:
        if not isinstance(data, dict):
            raise MalformedResponseError("Chat completion body is not a JSON object")

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedResponseError("Chat completion body has no choices")

        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            return None, ""

        reasoning, answer = split_reasoning_markers(content)
        return answer, reasoning


CODECS: Dict[WireFormat, WireCodec] = {
    WireFormat.RESPONSES: ResponsesCodec(),
    WireFormat.CHAT: ChatCompletionsCodec(),
}


def get_codec(wire_format: WireFormat) -> WireCodec:
    return CODECS[WireFormat(wire_format)]
