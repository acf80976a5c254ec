"""Gateway error taxonomy for the coach gateway.

Every failure a provider call can produce is raised as a subclass of
GatewayError carrying a FailureKind. The kind is what the fallback policy
matches against the configured retry triggers.
"""

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """Classified failure, matched against FallbackConfig.retry_on."""

    NETWORK_ERROR = "network-error"
    TIMEOUT = "timeout"
    HTTP_5XX = "http-5xx"
    HTTP_429 = "http-429"
    HTTP_4XX = "http-4xx"
    EMPTY_OUTPUT = "empty-output"
    MALFORMED_RESPONSE = "malformed-response"


def kind_for_status(status: int) -> FailureKind:
    """Map a non-success HTTP status to its failure kind."""
    if 500 <= status <= 599:
        return FailureKind.HTTP_5XX
    if status == 429:
        return FailureKind.HTTP_429
    return FailureKind.HTTP_4XX


class GatewayError(Exception):
    """Base exception for provider failures."""

    kind: FailureKind = FailureKind.NETWORK_ERROR

    def __init__(self, message: str, provider_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider_id = provider_id


class TransportFailure(GatewayError):
    """No response reached us: refused, reset, or unresolvable host."""

    kind = FailureKind.NETWORK_ERROR


class ProviderTimeoutError(GatewayError):
    """The provider did not answer within the configured timeout."""

    kind = FailureKind.TIMEOUT


class HttpStatusError(GatewayError):
    """The provider answered with a non-success status before any body."""

    def __init__(
        self,
        message: str,
        status_code: int,
        provider_id: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, provider_id=provider_id)
        self.status_code = status_code
        self.retry_after = retry_after
        self.kind = kind_for_status(status_code)


class MalformedResponseError(GatewayError):
    """The body did not parse into the expected shape."""

    kind = FailureKind.MALFORMED_RESPONSE
