"""Coach Gateway - streaming narration for a chess coach and taunting opponent.

Usage:
    from coach_gateway import CoachGateway, get_effective_config

    gateway = CoachGateway(get_effective_config())
    result = await gateway.complete_coach_reply(system_prompt, user_content)
    print(result.answer_text)

For the HTTP server:
    pip install "coach-gateway[http]"
    coach-gateway
"""

from coach_gateway.config import GatewayConfig, get_effective_config, load_config
from coach_gateway.gateway import (
    CanonicalEvent,
    CoachGateway,
    CompletionRequest,
    GatewayError,
    SessionResult,
    to_ndjson,
)

__all__ = [
    "CanonicalEvent",
    "CoachGateway",
    "CompletionRequest",
    "GatewayConfig",
    "GatewayError",
    "SessionResult",
    "get_effective_config",
    "load_config",
    "to_ndjson",
]
