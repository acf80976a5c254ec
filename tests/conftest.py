"""Shared test configuration and fixtures."""
from typing import Optional

import pytest

from tests.transcripts import ProviderStub

# =============================================================================
# Environment Reset
# =============================================================================

GATEWAY_ENV_VARS = [
    "LLM_BASE_URL",
    "LLM_MODEL",
    "LLM_MAX_TOKENS",
    "OPENROUTER_BASE_URL",
    "OPENROUTER_API_KEY",
    "OPENROUTER_REFERER",
    "OPENROUTER_APP_NAME",
    "OPENROUTER_TIER",
    "LOCAL_API_KEY",
    "COACH_GATEWAY_CONFIG",
    "COACH_GATEWAY_FALLBACK_ORDERING",
    "COACH_GATEWAY_RETRY_ON",
]


@pytest.fixture(autouse=True)
def reset_env(monkeypatch):
    """Clear environment variables before each test."""
    for name in GATEWAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# Provider stubs
# =============================================================================


@pytest.fixture
def stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def make_gateway():
    """Build a CoachGateway over a ProviderStub with an optional config."""
    from coach_gateway.config import GatewayConfig
    from coach_gateway.gateway import CoachGateway

    def _make(stub: ProviderStub, config: Optional[GatewayConfig] = None) -> CoachGateway:
        return CoachGateway(config or GatewayConfig(), transport=stub.transport())

    return _make


# =============================================================================
# Custom Pytest Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
