"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

Environment variables use double underscore (__) as delimiters for nested properties.
For example: AGENT__MAX_TURNS maps to settings.agent.max_turns
"""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are toolpilot, an AI agent that can help users accomplish tasks.\n"
    "You have access to various tools to interact with files, browsers, and other systems.\n"
    "Always explain your reasoning and ask for clarification when needed."
)

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class AgentSettings(BaseModel):
    """Agent loop configuration."""

    model: str = Field(
        default="anthropic:claude-sonnet-4-0",
        description="Default model identifier passed to the model client (pydantic-ai '<provider>:<model>' form)",
    )
    max_turns: int = Field(default=50, ge=1, description="Turn budget for a single run")
    working_directory: str = Field(default="/workspace", description="Root directory handed to tools")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="Base system prompt")
    unconfirmed_gate: Literal["allow", "deny"] = Field(
        default="allow",
        description=(
            "What to do with a tool that requires confirmation when no confirmation handler "
            "is configured: 'allow' runs it, 'deny' refuses it"
        ),
    )


class ConfirmationSettings(BaseModel):
    """Confirmation channel configuration."""

    timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="How long a pending confirmation waits before it expires",
    )
    display_value_limit: int = Field(
        default=100,
        ge=1,
        description="String parameter values longer than this are truncated in broadcasts",
    )


class CORSConfig(BaseModel):
    """CORS configuration."""

    origins: list[str] = Field(default=["*"], description="Allowed CORS origins (use * for all)")
    allow_credentials: bool = Field(default=True, description="Allow credentials in CORS requests")
    allow_methods: list[str] = Field(default=["*"], description="Allowed HTTP methods (use * for all)")
    allow_headers: list[str] = Field(default=["*"], description="Allowed HTTP headers (use * for all)")


class ServerSettings(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Server host address to bind to")
    port: int = Field(default=8000, description="Server port number")
    cors: CORSConfig = Field(default_factory=CORSConfig)


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    toolpilot_log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    agent: AgentSettings = Field(default_factory=AgentSettings, description="Agent loop configuration")
    confirmation: ConfirmationSettings = Field(
        default_factory=ConfirmationSettings,
        description="Confirmation channel configuration",
    )
    server: ServerSettings = Field(default_factory=ServerSettings, description="HTTP server configuration")


settings = Settings()
