"""Tests for SentenceBuffer."""

import pytest

from coach_gateway.gateway import (
    Channel,
    ReasoningChunk,
    Sentence,
    SentenceBuffer,
    TypingStarted,
)


def _texts(events):
    return [e.text for e in events if isinstance(e, (Sentence, ReasoningChunk))]


class TestSentenceFlushing:
    """Sentences are emitted as soon as a terminator arrives."""

    def test_two_sentences_across_fragments(self):
        buffer = SentenceBuffer()
        events = []
        for fragment in ["Hello", " world.", " How are", " you?"]:
            events += buffer.feed(Channel.VISIBLE, fragment)
        events += buffer.finish()

        assert events == [
            TypingStarted(),
            Sentence("Hello world."),
            Sentence(" How are you?"),
        ]

    def test_emits_before_stream_ends(self):
        buffer = SentenceBuffer()

        events = buffer.feed(Channel.VISIBLE, "Take it! And then")

        assert _texts(events) == ["Take it!"]

    @pytest.mark.parametrize("terminator", [".", "!", "?", "\n"])
    def test_each_terminator_flushes(self, terminator):
        buffer = SentenceBuffer()

        events = buffer.feed(Channel.VISIBLE, f"Check{terminator}")

        assert _texts(events) == [f"Check{terminator}"]

    def test_finish_flushes_remainder(self):
        buffer = SentenceBuffer()
        buffer.feed(Channel.VISIBLE, "No terminator here")

        assert _texts(buffer.finish()) == ["No terminator here"]

    def test_whitespace_only_fragments_are_dropped(self):
        buffer = SentenceBuffer()
        events = buffer.feed(Channel.VISIBLE, "Done.\n\n  ")
        events += buffer.finish()

        assert _texts(events) == ["Done."]

    def test_concatenation_preserves_text(self):
        fed = "Knights before bishops. Castle early! Control the center? Yes"
        buffer = SentenceBuffer()
        events = []
        for i in range(0, len(fed), 5):
            events += buffer.feed(Channel.VISIBLE, fed[i:i + 5])
        events += buffer.finish()

        assert "".join(_texts(events)) == fed
        assert buffer.visible_text == fed


class TestTyping:
    """TypingStarted is emitted once, right before the first content."""

    def test_nothing_before_content(self):
        buffer = SentenceBuffer()

        assert buffer.feed(Channel.VISIBLE, "") == []
        assert buffer.feed(Channel.VISIBLE, "   ") == []
        assert buffer.typing_started is False

    def test_started_once(self):
        buffer = SentenceBuffer()
        events = buffer.feed(Channel.VISIBLE, "One. Two. Three.")

        assert sum(isinstance(e, TypingStarted) for e in events) == 1
        assert events[0] == TypingStarted()
        assert buffer.typing_started is True

    def test_finish_with_no_content_emits_nothing(self):
        assert SentenceBuffer().finish() == []


class TestReasoningChannel:
    """Reasoning is buffered separately from visible text."""

    def test_channels_do_not_mix(self):
        buffer = SentenceBuffer()
        events = buffer.feed(Channel.REASONING, "Look at f7")
        events += buffer.feed(Channel.VISIBLE, "Attack f7.")
        events += buffer.feed(Channel.REASONING, " first.")

        assert events == [
            TypingStarted(),
            Sentence("Attack f7."),
            ReasoningChunk("Look at f7 first."),
        ]
        assert buffer.reasoning_seen is True
        assert buffer.visible_text == "Attack f7."

    def test_finish_flushes_visible_then_reasoning(self):
        buffer = SentenceBuffer()
        buffer.feed(Channel.REASONING, "partial thought")
        buffer.feed(Channel.VISIBLE, "partial answer")

        assert buffer.finish() == [
            TypingStarted(),
            Sentence("partial answer"),
            ReasoningChunk("partial thought"),
        ]

    def test_emit_reasoning_is_a_single_chunk(self):
        buffer = SentenceBuffer()

        events = buffer.emit_reasoning("Step one. Step two.")

        assert events == [TypingStarted(), ReasoningChunk("Step one. Step two.")]
        assert buffer.emit_reasoning("  ") == []
