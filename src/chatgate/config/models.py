"""Pydantic models for application configuration."""

from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant in a WhatsApp group chat. "
    "Provide concise, friendly, and helpful responses. "
    "Keep your answers brief and to the point."
)


class ChatConfig(BaseModel):
    """Group chat routing configuration."""

    allowed_groups: list[str] = Field(
        default_factory=list,
        description="Chat identifiers the bot is permitted to act within.",
    )
    trigger_words: list[str] = Field(
        default_factory=list,
        description=(
            "Ordered list of prefixes that must lead a message for the bot to "
            "engage. The first matching entry wins."
        ),
    )
    context_messages: int = Field(
        default=10,
        description="Number of recent messages retained per chat as LLM context.",
    )


class WebhookConfig(BaseModel):
    """Sub-trigger webhook routing rule."""

    sub_trigger: str
    url: str
    timeout: str | None = Field(
        default=None,
        description="Per-call timeout as a duration string (e.g. '60s', '2m').",
    )


class LLMConfig(BaseModel):
    """LLM configuration for LiteLLM."""

    model_id: str
    params: dict[str, Any] = Field(default_factory=dict)
    client_args: dict[str, Any] = Field(default_factory=dict)
    timeout: float = Field(
        default=30.0,
        description="Seconds to wait for a generated response.",
    )
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


class BridgeConfig(BaseModel):
    """Messaging bridge connection configuration."""

    base_url: str = Field(
        ...,
        description="Base URL of the HTTP bridge in front of the messaging network.",
    )
    token: str | None = Field(
        default=None,
        description="Bearer token sent with every bridge request.",
    )
    timeout: float = Field(
        default=15.0,
        description="Seconds to wait for a bridge request to complete.",
    )


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = Field(
        default="sqlite+aiosqlite:///./data/chatgate.db",
        description=(
            "SQLAlchemy-style database connection URL "
            "(e.g., 'sqlite+aiosqlite:///path/to/db')."
        ),
    )


class SchedulerConfig(BaseModel):
    """Schedule evaluator configuration."""

    enabled: bool = True
    timezone: str | None = Field(
        default=None,
        description="IANA zone used for calendar matching; process local zone if unset.",
    )
    webhook_timeout: float = Field(
        default=30.0,
        description="Default seconds to wait for a webhook call.",
    )

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value:
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"Unknown timezone: {value}") from e
        return value


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"


class AppConfig(BaseModel):
    """Application configuration."""

    llm: LLMConfig
    bridge: BridgeConfig
    chat: ChatConfig = Field(default_factory=ChatConfig)
    webhooks: list[WebhookConfig] = Field(default_factory=list)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
