"""Service configuration loaded from the environment."""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Literal

from agentloop.models.llm import DEFAULT_TEMPERATURE
from agentloop.services.agent import DEFAULT_MAX_ITERATIONS

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

Provider = Literal["anthropic", "openai"]


@dataclass
class McpServerConfig:
    """One MCP server: ``command`` for stdio servers, ``url`` for HTTP ones."""

    name: str
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] | None = None
    url: str | None = None
    tools: list[str] | None = None

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "McpServerConfig":
        if bool(data.get("command")) == bool(data.get("url")):
            raise ValueError(f"MCP server '{name}' needs exactly one of 'command' or 'url'")
        return cls(
            name=name,
            command=data.get("command"),
            args=list(data.get("args", [])),
            env=data.get("env"),
            url=data.get("url"),
            tools=data.get("tools"),
        )


@dataclass
class AgentSettings:
    """Agent service settings."""

    provider: Provider = "anthropic"
    model: str = "claude-sonnet-4-5"
    api_key: str | None = None
    base_url: str | None = None
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    temperature: float = DEFAULT_TEMPERATURE
    brave_api_key: str | None = None
    mcp_servers: list[McpServerConfig] = field(default_factory=list)
    session_timeout_minutes: int = 60

    @classmethod
    def from_env(cls) -> "AgentSettings":
        """Build settings from ``AGENTLOOP_*`` environment variables."""
        provider = os.getenv("AGENTLOOP_PROVIDER", "anthropic").lower()
        if provider not in ("anthropic", "openai"):
            raise ValueError(f"Configuration value is invalid: AGENTLOOP_PROVIDER={provider}")

        fallback_key = "ANTHROPIC_API_KEY" if provider == "anthropic" else "OPENAI_API_KEY"
        default_model = "claude-sonnet-4-5" if provider == "anthropic" else "gpt-4.1-mini"

        servers_raw = os.getenv("AGENTLOOP_MCP_SERVERS")
        servers = json.loads(servers_raw) if servers_raw else {}
        if not isinstance(servers, dict):
            raise ValueError("Configuration value is invalid: AGENTLOOP_MCP_SERVERS must be a JSON object")

        return cls(
            provider=provider,  # type: ignore[arg-type]
            model=os.getenv("AGENTLOOP_MODEL", default_model),
            api_key=os.getenv("AGENTLOOP_API_KEY") or os.getenv(fallback_key),
            base_url=os.getenv("AGENTLOOP_BASE_URL") or None,
            system_prompt=os.getenv("AGENTLOOP_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
            max_iterations=int(os.getenv("AGENTLOOP_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS)),
            temperature=float(os.getenv("AGENTLOOP_TEMPERATURE", DEFAULT_TEMPERATURE)),
            brave_api_key=os.getenv("BRAVE_API_KEY") or None,
            mcp_servers=[McpServerConfig.from_dict(name, data) for name, data in servers.items()],
            session_timeout_minutes=int(os.getenv("AGENTLOOP_SESSION_TIMEOUT_MINUTES", 60)),
        )


_settings: AgentSettings | None = None


def get_settings() -> AgentSettings:
    """Get or load settings instance."""
    global _settings
    if _settings is None:
        _settings = AgentSettings.from_env()
    return _settings
