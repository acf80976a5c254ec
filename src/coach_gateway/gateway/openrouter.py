"""OpenRouter adapter for the coach gateway.

Provides the remote chat-completions provider. The model comes from the
provider's tier table (default_tier, OPENROUTER_TIER); OpenRouter
attribution headers are added to every request.
"""

from typing import Dict

from .base import HttpProviderAdapter
from .types import WireFormat

DEFAULT_APP_NAME = "PizzaRAT Chess Coach"


class OpenRouterAdapter(HttpProviderAdapter):
    """Provider adapter for ``POST {base}/chat/completions`` on OpenRouter."""

    wire_format = WireFormat.CHAT

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self._settings.referer:
            headers["HTTP-Referer"] = self._settings.referer
        headers["X-Title"] = self._settings.app_name or DEFAULT_APP_NAME
        return headers
