"""Fallback policy for the coach gateway.

Pure decision logic: which provider goes first, how a failure is
classified, and whether a failure or an unsatisfactory result may be
retried on the secondary provider. Nothing here performs I/O.

Once a streaming session has delivered any content, no failure can trigger
a fallback; mixing two providers' output in one answer is never allowed.
"""

import asyncio
from enum import Enum
from typing import AbstractSet, Optional, Tuple

import httpx

from .errors import FailureKind, GatewayError, kind_for_status
from .types import Ordering, SessionResult


class FallbackDecision(Enum):
    """Outcome of consulting the policy."""

    RETRY_SECONDARY = "retry_secondary"
    ACCEPT = "accept"
    PROPAGATE = "propagate"


def resolve_ordering(
    ordering: Ordering,
    primary: str,
    secondary: Optional[str],
) -> Tuple[str, Optional[str]]:
    """Resolve an ordering mode into (first, second) provider names.

    Args:
        ordering: One of the four supported modes.
        primary: Configured primary provider.
        secondary: Configured secondary provider, if any.

    Returns:
        The provider to try first and the one to fall back to (or None).
    """
    if ordering is Ordering.PRIMARY_ONLY:
        return primary, None
    if ordering is Ordering.SECONDARY_ONLY:
        return (secondary, None) if secondary else (primary, None)
    if ordering is Ordering.SECONDARY_THEN_PRIMARY:
        return (secondary, primary) if secondary else (primary, None)
    return primary, secondary


def classify_failure(exc: BaseException) -> Optional[FailureKind]:
    """Map an exception onto a failure kind, or None when unrecognized."""
    if isinstance(exc, GatewayError):
        return exc.kind
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return FailureKind.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        return kind_for_status(exc.response.status_code)
    if isinstance(exc, (httpx.RequestError, ConnectionError, OSError)):
        return FailureKind.NETWORK_ERROR
    return None


def classify_result(result: Optional[SessionResult]) -> Optional[FailureKind]:
    """Inspect a one-shot result; None means it is acceptable."""
    if result is None or not isinstance(result.answer_text, str):
        return FailureKind.MALFORMED_RESPONSE
    if not result.answer_text.strip():
        return FailureKind.EMPTY_OUTPUT
    return None


def should_retry(
    kind: Optional[FailureKind],
    triggers: AbstractSet[FailureKind],
    has_secondary: bool,
    has_produced_output: bool = False,
) -> bool:
    if kind is None or not has_secondary or has_produced_output:
        return False
    return kind in triggers


def decide_on_error(
    exc: BaseException,
    triggers: AbstractSet[FailureKind],
    has_secondary: bool,
    has_produced_output: bool = False,
) -> FallbackDecision:
    """Decide what to do after a provider call raised."""
    if should_retry(classify_failure(exc), triggers, has_secondary, has_produced_output):
        return FallbackDecision.RETRY_SECONDARY
    return FallbackDecision.PROPAGATE


def decide_on_result(
    result: Optional[SessionResult],
    triggers: AbstractSet[FailureKind],
    has_secondary: bool,
) -> FallbackDecision:
    """Decide what to do with a one-shot result that parsed successfully."""
    if should_retry(classify_result(result), triggers, has_secondary):
        return FallbackDecision.RETRY_SECONDARY
    return FallbackDecision.ACCEPT
