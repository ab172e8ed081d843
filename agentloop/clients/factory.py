"""Transport selection from settings."""

from agentloop.clients.anthropic import AnthropicTransport
from agentloop.clients.base import ChatTransport
from agentloop.clients.openai import OpenAITransport
from agentloop.config import AgentSettings


def create_transport(settings: AgentSettings) -> ChatTransport:
    """Build the transport selected by ``settings.provider``."""
    if settings.provider == "openai":
        return OpenAITransport(api_key=settings.api_key, base_url=settings.base_url)
    return AnthropicTransport(api_key=settings.api_key, base_url=settings.base_url)
