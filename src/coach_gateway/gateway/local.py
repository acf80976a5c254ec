"""Local Responses API adapter for the coach gateway.

Talks to a single-prompt Responses endpoint such as LM Studio running a
small reasoning model on this machine or on a LAN host. No credentials are
needed by default; an api_key is sent as a bearer token when configured.
"""

from .base import HttpProviderAdapter
from .types import WireFormat


class LocalResponsesAdapter(HttpProviderAdapter):
    """Provider adapter for ``POST {base}/responses``."""

    wire_format = WireFormat.RESPONSES
