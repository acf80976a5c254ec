"""Unified YAML configuration for the coach gateway.

Configuration Priority: Environment Variables > YAML > Defaults

The configuration is built once at process start with get_effective_config()
and handed to CoachGateway explicitly. It is read-only afterwards and safe
to share between concurrent sessions.

Example YAML configuration (coach_gateway.yaml):

    coach_gateway:
      providers:
        local:
          wire_format: responses
          base_url: http://127.0.0.1:1234/v1
          model: smollm3-3b-128k
        openrouter:
          wire_format: chat
          api_key: ${OPENROUTER_API_KEY}
          default_tier: fast
          tiers:
            fast: {model: openai/gpt-4o-mini, max_tokens: 4096}
      fallback:
        ordering: primary_then_secondary
        retry_on: [network-error, timeout, http-5xx, http-429, empty-output]
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from .gateway.errors import FailureKind
from .gateway.openrouter import DEFAULT_APP_NAME
from .gateway.types import ModelSelection, Ordering, WireFormat

DEFAULT_LOCAL_BASE_URL = "http://127.0.0.1:1234/v1"
DEFAULT_LOCAL_MODEL = "smollm3-3b-128k"
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPENROUTER_MODEL = "openai/gpt-4o-mini"

DEFAULT_MODELS = {
    WireFormat.RESPONSES: DEFAULT_LOCAL_MODEL,
    WireFormat.CHAT: DEFAULT_OPENROUTER_MODEL,
}

DEFAULT_RETRY_ON = [
    FailureKind.NETWORK_ERROR,
    FailureKind.TIMEOUT,
    FailureKind.HTTP_5XX,
    FailureKind.HTTP_429,
    FailureKind.EMPTY_OUTPUT,
    FailureKind.MALFORMED_RESPONSE,
]


# =============================================================================
# Sub-configuration Models
# =============================================================================


class ModelTierConfig(BaseModel):
    """A named model choice within a provider's tier table."""

    model: str
    max_tokens: int = Field(default=4096, ge=1)


class ProviderConfig(BaseModel):
    """Connection and sampling settings for one provider."""

    wire_format: WireFormat
    base_url: str
    model: Optional[str] = None
    default_tier: Optional[str] = None
    tiers: Dict[str, ModelTierConfig] = Field(default_factory=dict)
    max_tokens: int = Field(default=4096, ge=1)
    temperature: float = Field(default=0.6, ge=0.0, le=2.0)
    top_p: float = Field(default=0.95, gt=0.0, le=1.0)
    # None means no timeout; local reasoning models can legitimately run long.
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    stream_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    api_key: Optional[str] = None
    referer: Optional[str] = None
    app_name: Optional[str] = None

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def select_model(self, tier: Optional[str] = None) -> ModelSelection:
        """Resolve the model and sampling parameters for a call.

        A tier table entry wins over the flat model/max_tokens settings.
        """
        tier_name = tier or self.default_tier
        tier_config = self.tiers.get(tier_name) if tier_name else None

        if tier_config is not None:
            model = tier_config.model
            max_tokens = tier_config.max_tokens
        else:
            model = self.model or DEFAULT_MODELS[self.wire_format]
            max_tokens = self.max_tokens

        return ModelSelection(
            model=model,
            max_tokens=max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
        )


class FallbackConfig(BaseModel):
    """Primary/secondary ordering and the failures that justify a retry."""

    primary: str = "local"
    secondary: Optional[str] = "openrouter"
    ordering: Ordering = Ordering.PRIMARY_THEN_SECONDARY
    retry_on: List[FailureKind] = Field(default_factory=lambda: list(DEFAULT_RETRY_ON))

    @field_validator("ordering", mode="before")
    @classmethod
    def normalize_ordering(cls, v: Any) -> Any:
        """Accept primary-then-secondary as well as primary_then_secondary."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @property
    def triggers(self) -> frozenset:
        return frozenset(self.retry_on)


class CredentialsConfig(BaseModel):
    """Configuration for API credentials."""

    local: Optional[str] = None
    openrouter: Optional[str] = None


class ObservabilityConfig(BaseModel):
    """Configuration for observability settings."""

    log_gateway_fallbacks: bool = True
    log_provider_errors: bool = True


def _default_providers() -> Dict[str, ProviderConfig]:
    return {
        "local": ProviderConfig(
            wire_format=WireFormat.RESPONSES,
            base_url=DEFAULT_LOCAL_BASE_URL,
            model=DEFAULT_LOCAL_MODEL,
        ),
        "openrouter": ProviderConfig(
            wire_format=WireFormat.CHAT,
            base_url=DEFAULT_OPENROUTER_BASE_URL,
            default_tier="fast",
            tiers={"fast": ModelTierConfig(model=DEFAULT_OPENROUTER_MODEL, max_tokens=4096)},
            timeout_seconds=60.0,
            app_name=DEFAULT_APP_NAME,
        ),
    }


# =============================================================================
# Main Configuration
# =============================================================================


class GatewayConfig(BaseModel):
    """Read-only configuration consumed by CoachGateway."""

    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @model_validator(mode="after")
    def ensure_default_providers(self) -> "GatewayConfig":
        """Install the standard local and openrouter providers if absent."""
        for name, provider in _default_providers().items():
            if name not in self.providers:
                self.providers[name] = provider
        return self

    @model_validator(mode="after")
    def check_fallback_providers(self) -> "GatewayConfig":
        fallback = self.fallback
        if fallback.primary not in self.providers:
            raise ValueError(f"unknown primary provider '{fallback.primary}'")
        if fallback.secondary is not None and fallback.secondary not in self.providers:
            raise ValueError(f"unknown secondary provider '{fallback.secondary}'")
        return self

    def get_api_key(self, provider_name: str) -> Optional[str]:
        """Provider api_key first, then the credentials section."""
        provider = self.providers.get(provider_name)
        if provider is not None and provider.api_key:
            return provider.api_key
        return getattr(self.credentials, provider_name, None)

    def to_yaml(self) -> str:
        config_dict = {"coach_gateway": self.to_dict()}
        return yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} references."""
    if isinstance(value, str):
        for var_name in re.findall(r"\$\{([^}]+)\}", value):
            value = value.replace(f"${{{var_name}}}", os.getenv(var_name, ""))
        return value
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def load_config(
    config_path: Optional[Path] = None,
    strict: bool = False,
) -> GatewayConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file. If None, uses defaults.
        strict: If True, raise ValueError on invalid configuration. If False,
                fall back to defaults.

    Returns:
        GatewayConfig object

    Raises:
        ValueError: If strict=True and configuration is invalid
    """
    if config_path is None or not config_path.exists():
        return GatewayConfig()

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            return GatewayConfig()

        raw_config = _substitute_env_vars(raw_config)
        return GatewayConfig(**(raw_config.get("coach_gateway") or {}))

    except yaml.YAMLError as e:
        if strict:
            raise ValueError(f"Invalid YAML: {e}")
        return GatewayConfig()
    except Exception as e:
        if strict:
            raise ValueError(f"Configuration error: {e}")
        return GatewayConfig()


def _find_config_file() -> Optional[Path]:
    """Find configuration file in standard locations.

    Search order:
    1. COACH_GATEWAY_CONFIG environment variable
    2. ./coach_gateway.yaml (current directory)
    3. ~/.config/coach-gateway/coach_gateway.yaml
    """
    env_path = os.getenv("COACH_GATEWAY_CONFIG")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    cwd_path = Path.cwd() / "coach_gateway.yaml"
    if cwd_path.exists():
        return cwd_path

    home_path = Path.home() / ".config" / "coach-gateway" / "coach_gateway.yaml"
    if home_path.exists():
        return home_path

    return None


def _apply_env_overrides(config: GatewayConfig) -> GatewayConfig:
    """Apply environment variable overrides to configuration."""
    config_dict = config.to_dict()
    providers = config_dict.setdefault("providers", {})

    # Local Responses provider
    local = providers.setdefault("local", {})
    if os.getenv("LLM_BASE_URL"):
        local["base_url"] = os.getenv("LLM_BASE_URL")
    if os.getenv("LLM_MODEL"):
        local["model"] = os.getenv("LLM_MODEL")
    max_tokens_env = os.getenv("LLM_MAX_TOKENS")
    if max_tokens_env and max_tokens_env.strip().isdigit():
        local["max_tokens"] = int(max_tokens_env)

    # OpenRouter provider
    openrouter = providers.setdefault("openrouter", {})
    if os.getenv("OPENROUTER_BASE_URL"):
        openrouter["base_url"] = os.getenv("OPENROUTER_BASE_URL")
    if os.getenv("OPENROUTER_REFERER"):
        openrouter["referer"] = os.getenv("OPENROUTER_REFERER")
    if os.getenv("OPENROUTER_APP_NAME"):
        openrouter["app_name"] = os.getenv("OPENROUTER_APP_NAME")
    if os.getenv("OPENROUTER_TIER"):
        openrouter["default_tier"] = os.getenv("OPENROUTER_TIER")

    # Fallback policy
    ordering_env = os.getenv("COACH_GATEWAY_FALLBACK_ORDERING")
    if ordering_env:
        config_dict.setdefault("fallback", {})["ordering"] = ordering_env.strip().lower()
    retry_env = os.getenv("COACH_GATEWAY_RETRY_ON")
    if retry_env is not None:
        kinds = [k.strip() for k in retry_env.split(",") if k.strip()]
        config_dict.setdefault("fallback", {})["retry_on"] = kinds

    # Credential overrides (always from env for security)
    for cred_name in ["local", "openrouter"]:
        env_var = f"{cred_name.upper()}_API_KEY"
        if os.getenv(env_var):
            config_dict.setdefault("credentials", {})[cred_name] = os.getenv(env_var)

    return GatewayConfig(**config_dict)


def get_effective_config(config_path: Optional[Path] = None) -> GatewayConfig:
    """Get the effective configuration with all overrides applied.

    Priority: Environment Variables > YAML > Defaults

    Args:
        config_path: Optional explicit path to configuration file.
                    If None, searches standard locations.

    Returns:
        GatewayConfig with all overrides applied
    """
    load_dotenv()

    if config_path is None:
        config_path = _find_config_file()

    config = load_config(config_path)
    return _apply_env_overrides(config)
