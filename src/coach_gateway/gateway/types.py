"""Gateway types for the coach gateway.

This module defines the canonical request, the provider-agnostic event
stream handed to callers, and the one-shot session result. Provider wire
formats never leak past this layer.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import FailureKind


class ReasoningEffort(str, Enum):
    """Reasoning effort requested by the caller."""

    OFF = "off"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["ReasoningEffort"]:
        """Normalize caller-supplied effort text.

        Returns None for missing or unrecognized values, which leaves the
        provider on its own default (no reasoning field is sent and any
        reasoning it produces is still surfaced).
        """
        if not raw or not isinstance(raw, str):
            return None
        value = raw.strip().lower()
        if value in ("none", "off"):
            return cls.OFF
        if value == "low":
            return cls.LOW
        if value in ("mid", "medium"):
            return cls.MEDIUM
        if value == "high":
            return cls.HIGH
        return None


class Ordering(str, Enum):
    """Provider ordering for a logical call."""

    PRIMARY_ONLY = "primary_only"
    SECONDARY_ONLY = "secondary_only"
    PRIMARY_THEN_SECONDARY = "primary_then_secondary"
    SECONDARY_THEN_PRIMARY = "secondary_then_primary"


class CallPurpose(str, Enum):
    """Why the caller wants text: free-form narration or a short remark."""

    COACH = "coach"
    TAUNT = "taunt"


class WireFormat(str, Enum):
    """Request/response shape a provider speaks."""

    RESPONSES = "responses"  # single prompt, POST {base}/responses
    CHAT = "chat"  # role messages, POST {base}/chat/completions


class Channel(str, Enum):
    VISIBLE = "visible"
    REASONING = "reasoning"


@dataclass(frozen=True)
class ProviderOverride:
    """Per-request routing override.

    Attributes:
        ordering: Replaces the configured ordering for this call.
        primary_base_url: Redirects the primary provider (LAN host).
    """

    ordering: Optional[Ordering] = None
    primary_base_url: Optional[str] = None


@dataclass(frozen=True)
class CompletionRequest:
    """A single logical completion call. Immutable once built."""

    system_prompt: str
    user_content: str
    reasoning_effort: Optional[ReasoningEffort] = None
    purpose: CallPurpose = CallPurpose.COACH
    provider_override: Optional[ProviderOverride] = None

    @property
    def full_prompt(self) -> str:
        """System and user text joined by a blank line."""
        return f"{self.system_prompt or ''}\n\n{self.user_content or ''}"

    @property
    def reasoning_disabled(self) -> bool:
        return self.reasoning_effort is ReasoningEffort.OFF


@dataclass(frozen=True)
class ModelSelection:
    """Model and sampling parameters resolved for one provider call."""

    model: str
    max_tokens: int
    temperature: float
    top_p: float


@dataclass(frozen=True)
class Delta:
    """A raw text fragment decoded from a provider stream."""

    channel: Channel
    text: str


@dataclass
class SessionResult:
    """Result of a one-shot call.

    answer_text is None when the provider answered with a non-string
    content field; the fallback policy treats that as malformed.
    """

    answer_text: Optional[str]
    reasoning_text: str
    provider_used: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer_text": self.answer_text or "",
            "reasoning_text": self.reasoning_text,
            "provider_used": self.provider_used,
        }


# =============================================================================
# Canonical events
# =============================================================================


@dataclass(frozen=True)
class TypingStarted:
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "typing", "state": "start"}


@dataclass(frozen=True)
class TypingEnded:
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "typing", "state": "end"}


@dataclass(frozen=True)
class Sentence:
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "sentence", "text": self.text}


@dataclass(frozen=True)
class ReasoningChunk:
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "reasoning", "text": self.text}


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal failure notice. Always carries a readable message."""

    kind: Optional[FailureKind]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "error", "message": self.message}


CanonicalEvent = Union[TypingStarted, Sentence, ReasoningChunk, TypingEnded, ErrorEvent]

CONTENT_EVENTS = (Sentence, ReasoningChunk)


def is_content_event(event: CanonicalEvent) -> bool:
    return isinstance(event, CONTENT_EVENTS)


def to_ndjson(event: CanonicalEvent) -> str:
    """Serialize one event as a newline-terminated JSON line."""
    return json.dumps(event.to_dict(), ensure_ascii=False) + "\n"


# =============================================================================
# Routing hints
# =============================================================================

_URL_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def build_lan_base_url(lan_host: Optional[str], lan_port: Any = None) -> Optional[str]:
    """Build a base URL for a provider running on another LAN machine.

    A full http(s) URL is used as given (minus trailing slashes). A bare
    host gets ``http://`` and ``/v1``, plus the port when it is a positive
    integer.
    """
    if not lan_host or not isinstance(lan_host, str):
        return None
    trimmed = lan_host.strip()
    if not trimmed:
        return None

    if _URL_SCHEME.match(trimmed):
        return trimmed.rstrip("/")

    try:
        port = int(str(lan_port).strip())
    except (TypeError, ValueError):
        port = 0
    port_part = f":{port}" if port > 0 else ""

    return f"http://{trimmed}{port_part}/v1"


def resolve_routing_hint(
    llm_source: Optional[str],
    lan_host: Optional[str] = None,
    lan_port: Any = None,
) -> Optional[ProviderOverride]:
    """Turn a caller routing hint (local | lan | remote) into an override."""
    source = (llm_source or "").strip().lower()

    if source == "remote":
        return ProviderOverride(ordering=Ordering.SECONDARY_ONLY)
    if source == "lan":
        base_url = build_lan_base_url(lan_host, lan_port)
        if base_url:
            return ProviderOverride(primary_base_url=base_url)
    return None
