"""Minimal HTTP server for the coach gateway.

Exposes the four gateway operations to a web front end. Streaming endpoints
answer with newline-delimited JSON, one canonical event per line:

    {"type":"typing","state":"start"|"end"}
    {"type":"sentence","text":"..."}
    {"type":"reasoning","text":"..."}
    {"type":"error","message":"..."}

Prompt text is opaque here; the caller builds system and user content.

Usage:
    pip install "coach-gateway[http]"
    coach-gateway

Or programmatically:
    from coach_gateway.http_server import create_app
    import uvicorn
    uvicorn.run(create_app(), host="127.0.0.1", port=8787)
"""

import logging
import os
from typing import AsyncIterator, Optional, Union

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from coach_gateway.config import get_effective_config
from coach_gateway.gateway import CanonicalEvent, CoachGateway, GatewayError, to_ndjson

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


class CompletionBody(BaseModel):
    """Request body shared by coach and taunt endpoints."""

    system_prompt: str = Field(..., description="Persona/system text, passed through as-is")
    user_content: str = Field(..., description="Engine state and question, passed through as-is")
    reasoning_effort: Optional[str] = Field(
        default=None, description="off | low | medium | high (omit for provider default)"
    )
    llm_source: Optional[str] = Field(
        default=None, description="local | lan | remote"
    )
    lan_host: Optional[str] = Field(default=None, description="Host or URL when llm_source=lan")
    lan_port: Optional[Union[int, str]] = Field(default=None, description="Port when llm_source=lan")


class CompletionResponse(BaseModel):
    """One-shot answer."""

    answer_text: str
    reasoning_text: str
    provider_used: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


async def _ndjson_lines(events: AsyncIterator[CanonicalEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield to_ndjson(event)


def _stream_response(events: AsyncIterator[CanonicalEvent]) -> StreamingResponse:
    return StreamingResponse(
        _ndjson_lines(events),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache"},
    )


def create_app(gateway: Optional[CoachGateway] = None) -> FastAPI:
    """Build the FastAPI app around a gateway.

    Args:
        gateway: Gateway to serve. Built from the effective configuration
                 when None.
    """
    if gateway is None:
        gateway = CoachGateway(get_effective_config())

    app = FastAPI(
        title="Coach Gateway",
        description="Streaming narration gateway for the chess coach",
        version="1.0.0",
    )
    app.state.gateway = gateway

    async def _complete(body: CompletionBody, taunt: bool) -> CompletionResponse:
        operation = gateway.complete_taunt if taunt else gateway.complete_coach_reply
        try:
            result = await operation(
                body.system_prompt,
                body.user_content,
                reasoning_effort=body.reasoning_effort,
                llm_source=body.llm_source,
                lan_host=body.lan_host,
                lan_port=body.lan_port,
            )
        except GatewayError as e:
            logger.error(f"LLM request failed: {e}")
            raise HTTPException(status_code=502, detail=f"LLM request failed: {e}")
        return CompletionResponse(**result.to_dict())

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="coach-gateway")

    @app.post("/v1/coach/reply", response_model=CompletionResponse, tags=["Coach"])
    async def coach_reply(body: CompletionBody) -> CompletionResponse:
        """One-shot coaching narration."""
        return await _complete(body, taunt=False)

    @app.post("/v1/coach/reply/stream", tags=["Coach"])
    async def coach_reply_stream(body: CompletionBody) -> StreamingResponse:
        """Stream coaching narration as NDJSON canonical events."""
        return _stream_response(
            gateway.stream_coach_reply(
                body.system_prompt,
                body.user_content,
                reasoning_effort=body.reasoning_effort,
                llm_source=body.llm_source,
                lan_host=body.lan_host,
                lan_port=body.lan_port,
            )
        )

    @app.post("/v1/taunt", response_model=CompletionResponse, tags=["Taunt"])
    async def taunt(body: CompletionBody) -> CompletionResponse:
        """One-shot persona-voiced remark."""
        return await _complete(body, taunt=True)

    @app.post("/v1/taunt/stream", tags=["Taunt"])
    async def taunt_stream(body: CompletionBody) -> StreamingResponse:
        """Stream a persona-voiced remark as NDJSON canonical events."""
        return _stream_response(
            gateway.stream_taunt(
                body.system_prompt,
                body.user_content,
                reasoning_effort=body.reasoning_effort,
                llm_source=body.llm_source,
                lan_host=body.lan_host,
                lan_port=body.lan_port,
            )
        )

    return app


def main() -> None:
    """Run the server with uvicorn (COACH_GATEWAY_HOST / COACH_GATEWAY_PORT)."""
    import uvicorn

    logging.basicConfig(level=os.environ.get("COACH_GATEWAY_LOG_LEVEL", "INFO"))
    uvicorn.run(
        create_app(),
        host=os.environ.get("COACH_GATEWAY_HOST", "127.0.0.1"),
        port=int(os.environ.get("COACH_GATEWAY_PORT", "8787")),
    )
