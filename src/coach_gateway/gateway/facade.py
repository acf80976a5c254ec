"""Gateway facade for the coach gateway.

CoachGateway runs one logical request end to end: it builds the canonical
request from caller text and a routing hint, calls the first provider,
consults the fallback policy, and calls the second provider when allowed.

Streaming sessions follow:

    Idle -> Connecting(first) -> Emitting -> Completed
                              -> FailedNoOutput -> Connecting(second) -> ...
                              -> FailedWithOutput -> Errored
    -> Ended

Every session ends with exactly one TypingEnded, optionally preceded by an
ErrorEvent, and nothing is emitted after it.
"""

import logging
from contextlib import aclosing
from dataclasses import replace
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from .base import ProviderAdapter
from .codecs import split_reasoning_markers
from .errors import FailureKind
from .fallback import (
    FallbackDecision,
    classify_failure,
    classify_result,
    decide_on_error,
    decide_on_result,
    resolve_ordering,
    should_retry,
)
from .local import LocalResponsesAdapter
from .openrouter import OpenRouterAdapter
from .sentence_buffer import SentenceBuffer
from .types import (
    CallPurpose,
    CanonicalEvent,
    Channel,
    CompletionRequest,
    ErrorEvent,
    ReasoningEffort,
    SessionResult,
    TypingEnded,
    WireFormat,
    is_content_event,
    resolve_routing_hint,
)

if TYPE_CHECKING:
    from ..config import GatewayConfig

logger = logging.getLogger(__name__)

ADAPTER_TYPES = {
    WireFormat.RESPONSES: LocalResponsesAdapter,
    WireFormat.CHAT: OpenRouterAdapter,
}


def build_adapters(
    config: "GatewayConfig",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, ProviderAdapter]:
    """Create one adapter per configured provider."""
    return {
        name: ADAPTER_TYPES[settings.wire_format](
            name,
            settings,
            api_key=config.get_api_key(name),
            transport=transport,
        )
        for name, settings in config.providers.items()
    }


class CoachGateway:
    """Single entry point for coach replies and taunts.

    Example:
        gateway = CoachGateway(get_effective_config())
        async for event in gateway.stream_coach_reply(system_prompt, user_content):
            print(to_ndjson(event), end="")
    """

    def __init__(
        self,
        config: "GatewayConfig",
        adapters: Optional[Dict[str, ProviderAdapter]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the gateway.

        Args:
            config: Read-only configuration built at process start.
            adapters: Provider adapters by name. Built from config if None.
            transport: httpx transport handed to adapters built from config.
        """
        self._config = config
        self._adapters = adapters if adapters is not None else build_adapters(config, transport)

    @property
    def config(self) -> "GatewayConfig":
        return self._config

    # -------------------------------------------------------------------------
    # Request construction
    # -------------------------------------------------------------------------

    def build_request(
        self,
        system_prompt: str,
        user_content: str,
        reasoning_effort: Union[ReasoningEffort, str, None] = None,
        purpose: CallPurpose = CallPurpose.COACH,
        llm_source: Optional[str] = None,
        lan_host: Optional[str] = None,
        lan_port: Any = None,
    ) -> CompletionRequest:
        if not isinstance(reasoning_effort, ReasoningEffort):
            reasoning_effort = ReasoningEffort.parse(reasoning_effort)

        return CompletionRequest(
            system_prompt=system_prompt or "",
            user_content=user_content or "",
            reasoning_effort=reasoning_effort,
            purpose=purpose,
            provider_override=resolve_routing_hint(llm_source, lan_host, lan_port),
        )

    def _plan(self, request: CompletionRequest) -> List[ProviderAdapter]:
        """Adapters to try, in order (one or two)."""
        fallback = self._config.fallback
        override = request.provider_override

        ordering = fallback.ordering
        if override is not None and override.ordering is not None:
            ordering = override.ordering

        first, second = resolve_ordering(ordering, fallback.primary, fallback.secondary)
        return [self._adapter_for(name, request) for name in (first, second) if name]

    def _adapter_for(self, name: str, request: CompletionRequest) -> ProviderAdapter:
        adapter = self._adapters[name]
        override = request.provider_override
        if (
            override is not None
            and override.primary_base_url
            and name == self._config.fallback.primary
        ):
            adapter = adapter.with_base_url(override.primary_base_url)
        return adapter

    def _log_fallback(
        self,
        failed: ProviderAdapter,
        next_adapter: ProviderAdapter,
        kind: Optional[FailureKind],
        request: CompletionRequest,
    ) -> None:
        if not self._config.observability.log_gateway_fallbacks:
            return
        reason = kind.value if kind else "unknown"
        logger.warning(
            f"Provider {failed.provider_id} failed ({reason}) for {request.purpose.value} "
            f"request. Falling back to {next_adapter.provider_id}"
        )

    # -------------------------------------------------------------------------
    # One-shot
    # -------------------------------------------------------------------------

    async def complete(self, request: CompletionRequest) -> SessionResult:
        """Run a one-shot request with at most one fallback attempt.

        The secondary's result is final, even if it is empty too.

        Raises:
            GatewayError: When the failing call may not be retried, or the
                retry itself fails.
        """
        chain = self._plan(request)
        first = chain[0]
        second = chain[1] if len(chain) > 1 else None
        triggers = self._config.fallback.triggers

        try:
            result = await first.complete(request)
        except Exception as exc:
            if decide_on_error(exc, triggers, second is not None) is not FallbackDecision.RETRY_SECONDARY:
                raise
            self._log_fallback(first, second, classify_failure(exc), request)
            return self._finalize(await second.complete(request), request)

        if decide_on_result(result, triggers, second is not None) is FallbackDecision.RETRY_SECONDARY:
            self._log_fallback(first, second, classify_result(result), request)
            result = await second.complete(request)

        return self._finalize(result, request)

    def _finalize(self, result: SessionResult, request: CompletionRequest) -> SessionResult:
        if request.reasoning_disabled and result.reasoning_text:
            return replace(result, reasoning_text="")
        return result

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    async def stream(self, request: CompletionRequest) -> AsyncIterator[CanonicalEvent]:
        """Stream canonical events for one request.

        Falls back to the second provider only while no content event has
        been emitted. Closing this generator (or cancelling its task) closes
        the provider connection and emits nothing further.
        """
        chain = self._plan(request)
        triggers = self._config.fallback.triggers
        has_produced_output = False

        for index, adapter in enumerate(chain):
            next_adapter = chain[index + 1] if index + 1 < len(chain) else None
            buffer = SentenceBuffer()

            try:
                async with aclosing(self._run_stream(adapter, request, buffer)) as events:
                    async for event in events:
                        if is_content_event(event):
                            has_produced_output = True
                        yield event
            except Exception as exc:
                kind = classify_failure(exc)
                decision = decide_on_error(
                    exc, triggers, next_adapter is not None, has_produced_output
                )
                if decision is FallbackDecision.RETRY_SECONDARY:
                    self._log_fallback(adapter, next_adapter, kind, request)
                    continue

                if self._config.observability.log_provider_errors:
                    logger.error(f"Streaming from {adapter.provider_id} failed: {exc}")
                yield ErrorEvent(kind, f"LLM streaming request failed: {str(exc) or type(exc).__name__}")
                yield TypingEnded()
                return

            if not has_produced_output and should_retry(
                FailureKind.EMPTY_OUTPUT, triggers, next_adapter is not None
            ):
                self._log_fallback(adapter, next_adapter, FailureKind.EMPTY_OUTPUT, request)
                continue

            yield TypingEnded()
            return

    async def _run_stream(
        self,
        adapter: ProviderAdapter,
        request: CompletionRequest,
        buffer: SentenceBuffer,
    ) -> AsyncIterator[CanonicalEvent]:
        """Drive one provider stream through the sentence buffer."""
        drop_reasoning = request.reasoning_disabled

        async with aclosing(adapter.stream(request)) as deltas:
            async for delta in deltas:
                if delta.channel is Channel.REASONING and drop_reasoning:
                    continue
                for event in buffer.feed(delta.channel, delta.text):
                    yield event

        for event in buffer.finish():
            yield event

        # Chat providers (and some Responses servers) inline reasoning in
        # the visible text; recover it once the answer is assembled.
        if not drop_reasoning and not buffer.reasoning_seen:
            reasoning, _ = split_reasoning_markers(buffer.visible_text)
            for event in buffer.emit_reasoning(reasoning):
                yield event

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def complete_coach_reply(
        self,
        system_prompt: str,
        user_content: str,
        reasoning_effort: Union[ReasoningEffort, str, None] = None,
        llm_source: Optional[str] = None,
        lan_host: Optional[str] = None,
        lan_port: Any = None,
    ) -> SessionResult:
        """One-shot free-form coaching narration."""
        request = self.build_request(
            system_prompt, user_content, reasoning_effort,
            CallPurpose.COACH, llm_source, lan_host, lan_port,
        )
        return await self.complete(request)

    async def complete_taunt(
        self,
        system_prompt: str,
        user_content: str,
        reasoning_effort: Union[ReasoningEffort, str, None] = None,
        llm_source: Optional[str] = None,
        lan_host: Optional[str] = None,
        lan_port: Any = None,
    ) -> SessionResult:
        """One-shot short persona-voiced remark."""
        request = self.build_request(
            system_prompt, user_content, reasoning_effort,
            CallPurpose.TAUNT, llm_source, lan_host, lan_port,
        )
        return await self.complete(request)

    def stream_coach_reply(
        self,
        system_prompt: str,
        user_content: str,
        reasoning_effort: Union[ReasoningEffort, str, None] = None,
        llm_source: Optional[str] = None,
        lan_host: Optional[str] = None,
        lan_port: Any = None,
    ) -> AsyncIterator[CanonicalEvent]:
        """Streaming free-form coaching narration."""
        request = self.build_request(
            system_prompt, user_content, reasoning_effort,
            CallPurpose.COACH, llm_source, lan_host, lan_port,
        )
        return self.stream(request)

    def stream_taunt(
        self,
        system_prompt: str,
        user_content: str,
        reasoning_effort: Union[ReasoningEffort, str, None] = None,
        llm_source: Optional[str] = None,
        lan_host: Optional[str] = None,
        lan_port: Any = None,
    ) -> AsyncIterator[CanonicalEvent]:
        """Streaming short persona-voiced remark."""
        request = self.build_request(
            system_prompt, user_content, reasoning_effort,
            CallPurpose.TAUNT, llm_source, lan_host, lan_port,
        )
        return self.stream(request)
