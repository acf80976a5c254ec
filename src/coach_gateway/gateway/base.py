"""Provider adapter interface for the coach gateway.

A ProviderAdapter pairs a wire codec with connection settings and offers a
one-shot and a streaming completion over canonical types. The gateway
facade depends only on this interface; each wire format gets one concrete
implementation.
"""

import copy
import logging
import time
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional

import httpx

from .codecs import WireCodec, get_codec
from .errors import (
    GatewayError,
    HttpStatusError,
    MalformedResponseError,
    ProviderTimeoutError,
    TransportFailure,
)
from .types import CompletionRequest, Delta, ModelSelection, SessionResult, WireFormat

if TYPE_CHECKING:
    from ..config import ProviderConfig

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Abstract interface every provider implementation satisfies."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Name the provider is configured under (e.g. "local")."""
        ...

    @property
    @abstractmethod
    def wire_format(self) -> WireFormat:
        ...

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> SessionResult:
        """Send a one-shot request and return the assembled result.

        Raises:
            GatewayError: Classified failure.
        """
        ...

    @abstractmethod
    def stream(self, request: CompletionRequest) -> AsyncIterator[Delta]:
        """Stream raw deltas in arrival order.

        Raises:
            GatewayError: Classified failure, before or during the stream.
        """
        ...

    @abstractmethod
    def with_base_url(self, base_url: str) -> "ProviderAdapter":
        """Return a copy of this adapter pointed at another address."""
        ...


class HttpProviderAdapter(ProviderAdapter):
    """ProviderAdapter speaking a WireCodec over httpx.

    Subclasses set wire_format and may add headers.
    """

    def __init__(
        self,
        provider_id: str,
        settings: "ProviderConfig",
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the adapter.

        Args:
            provider_id: Name used in results, errors and logs.
            settings: Provider connection and sampling settings.
            api_key: Bearer credential, if the provider needs one.
            transport: Optional httpx transport (tests replay transcripts here).
        """
        self._provider_id = provider_id
        self._settings = settings
        self._api_key = api_key
        self._transport = transport
        self._codec: WireCodec = get_codec(self.wire_format)

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    def with_base_url(self, base_url: str) -> "HttpProviderAdapter":
        clone = copy.copy(self)
        clone._settings = self._settings.model_copy(update={"base_url": base_url.rstrip("/")})
        return clone

    def _selection(self) -> ModelSelection:
        return self._settings.select_model()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _client(self, timeout: Optional[float]) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _status_error(self, response: httpx.Response) -> HttpStatusError:
        status = response.status_code
        retry_after = response.headers.get("Retry-After", "")
        message = f"{self.provider_id} returned HTTP {status}"
        if response.text:
            message = f"{message}: {response.text[:200]}"
        return HttpStatusError(
            message,
            status_code=status,
            provider_id=self.provider_id,
            retry_after=int(retry_after) if retry_after.isdigit() else None,
        )

    def _transport_error(self, exc: httpx.RequestError, timeout: Optional[float]) -> GatewayError:
        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeoutError(
                f"{self.provider_id} timed out after {timeout}s",
                provider_id=self.provider_id,
            )
        return TransportFailure(
            f"{self.provider_id} unreachable: {str(exc) or type(exc).__name__}",
            provider_id=self.provider_id,
        )

    async def complete(self, request: CompletionRequest) -> SessionResult:
        url = self._codec.url(self.base_url)
        payload = self._codec.encode(request, self._selection(), stream=False)
        timeout = self._settings.timeout_seconds

        start_time = time.time()
        try:
            async with self._client(timeout) as client:
                response = await client.post(url, headers=self._headers(), json=payload)
        except httpx.RequestError as e:
            raise self._transport_error(e, timeout) from e

        latency_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"{self.provider_id} answered HTTP {response.status_code} in {latency_ms}ms")

        if response.status_code >= 400:
            raise self._status_error(response)

        try:
            data: Any = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.provider_id} returned a non-JSON body",
                provider_id=self.provider_id,
            ) from e

        try:
            answer, reasoning = self._codec.decode_response(data)
        except MalformedResponseError as e:
            e.provider_id = self.provider_id
            raise

        return SessionResult(
            answer_text=answer,
            reasoning_text=reasoning,
            provider_used=self.provider_id,
        )

    async def stream(self, request: CompletionRequest) -> AsyncIterator[Delta]:
        url = self._codec.url(self.base_url)
        payload = self._codec.encode(request, self._selection(), stream=True)
        timeout = self._settings.stream_timeout_seconds

        try:
            async with self._client(timeout) as client:
                async with client.stream(
                    "POST", url, headers=self._headers(), json=payload
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise self._status_error(response)

                    lines = self._codec.adecode_lines(response.aiter_lines())
                    async with aclosing(lines) as deltas:
                        async for delta in deltas:
                            yield delta
        except httpx.RequestError as e:
            raise self._transport_error(e, timeout) from e
