"""Sentence buffering for streamed provider output.

Turns a character firehose into sentence-sized units. Text is emitted
verbatim: the concatenation of everything emitted equals everything fed,
less whitespace-only fragments.
"""

from typing import List

from .types import CanonicalEvent, Channel, ReasoningChunk, Sentence, TypingStarted

SENTENCE_TERMINATORS = frozenset(".!?\n")


class SentenceBuffer:
    """Per-session accumulator for the visible and reasoning channels.

    Owned by exactly one streaming session and never shared. Emits a single
    TypingStarted immediately before the first content event. The session
    owner emits TypingEnded.

    Example:
        buffer = SentenceBuffer()
        events = buffer.feed(Channel.VISIBLE, "Hello world. How")
        events += buffer.finish()
    """

    def __init__(self) -> None:
        self._pending = {Channel.VISIBLE: "", Channel.REASONING: ""}
        self._typing_started = False
        self.visible_text = ""
        self.reasoning_seen = False

    @property
    def typing_started(self) -> bool:
        return self._typing_started

    def feed(self, channel: Channel, text: str) -> List[CanonicalEvent]:
        """Append a fragment, returning events for completed units."""
        if not text:
            return []

        if channel is Channel.VISIBLE:
            self.visible_text += text
        else:
            self.reasoning_seen = True

        events: List[CanonicalEvent] = []
        for ch in text:
            self._pending[channel] += ch
            if ch in SENTENCE_TERMINATORS:
                events.extend(self._flush(channel))
        return events

    def finish(self) -> List[CanonicalEvent]:
        """Force out whatever remains in both channels."""
        return self._flush(Channel.VISIBLE) + self._flush(Channel.REASONING)

    def emit_reasoning(self, text: str) -> List[CanonicalEvent]:
        """Emit a complete reasoning block as one chunk, bypassing the accumulator."""
        if not text or not text.strip():
            return []
        return self._emit(ReasoningChunk(text))

    def _flush(self, channel: Channel) -> List[CanonicalEvent]:
        raw = self._pending[channel]
        self._pending[channel] = ""
        if not raw.strip():
            return []
        if channel is Channel.VISIBLE:
            return self._emit(Sentence(raw))
        return self._emit(ReasoningChunk(raw))

    def _emit(self, event: CanonicalEvent) -> List[CanonicalEvent]:
        if self._typing_started:
            return [event]
        self._typing_started = True
        return [TypingStarted(), event]
