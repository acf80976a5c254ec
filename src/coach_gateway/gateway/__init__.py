"""Streaming completion gateway for the chess coach.

This package talks to incompatible text-generation backends and exposes
one canonical event stream:

- Wire codecs for the single-prompt Responses API and role-message chat
  completions
- Sentence buffering of streamed text and reasoning
- A pure fallback policy (primary/secondary ordering, retry triggers)
- A facade guaranteeing one terminal signal per session

Example usage:
    from coach_gateway.config import get_effective_config
    from coach_gateway.gateway import CoachGateway, to_ndjson

    gateway = CoachGateway(get_effective_config())
    async for event in gateway.stream_coach_reply(system_prompt, user_content):
        print(to_ndjson(event), end="")
"""

from .types import (
    CallPurpose,
    CanonicalEvent,
    Channel,
    CompletionRequest,
    Delta,
    ErrorEvent,
    ModelSelection,
    Ordering,
    ProviderOverride,
    ReasoningChunk,
    ReasoningEffort,
    Sentence,
    SessionResult,
    TypingEnded,
    TypingStarted,
    WireFormat,
    build_lan_base_url,
    resolve_routing_hint,
    to_ndjson,
)
from .errors import (
    FailureKind,
    GatewayError,
    HttpStatusError,
    MalformedResponseError,
    ProviderTimeoutError,
    TransportFailure,
)
from .codecs import ChatCompletionsCodec, ResponsesCodec, WireCodec, split_reasoning_markers
from .sentence_buffer import SentenceBuffer
from .base import HttpProviderAdapter, ProviderAdapter
from .local import LocalResponsesAdapter
from .openrouter import OpenRouterAdapter
from .fallback import FallbackDecision, classify_failure, classify_result, resolve_ordering
from .facade import CoachGateway, build_adapters

__all__ = [
    # Types
    "CallPurpose",
    "CanonicalEvent",
    "Channel",
    "CompletionRequest",
    "Delta",
    "ErrorEvent",
    "ModelSelection",
    "Ordering",
    "ProviderOverride",
    "ReasoningChunk",
    "ReasoningEffort",
    "Sentence",
    "SessionResult",
    "TypingEnded",
    "TypingStarted",
    "WireFormat",
    "build_lan_base_url",
    "resolve_routing_hint",
    "to_ndjson",
    # Errors
    "FailureKind",
    "GatewayError",
    "HttpStatusError",
    "MalformedResponseError",
    "ProviderTimeoutError",
    "TransportFailure",
    # Codecs
    "ChatCompletionsCodec",
    "ResponsesCodec",
    "WireCodec",
    "split_reasoning_markers",
    # Buffering
    "SentenceBuffer",
    # Adapters
    "HttpProviderAdapter",
    "LocalResponsesAdapter",
    "OpenRouterAdapter",
    "ProviderAdapter",
    # Fallback policy
    "FallbackDecision",
    "classify_failure",
    "classify_result",
    "resolve_ordering",
    # Facade
    "CoachGateway",
    "build_adapters",
]
