"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="chatpulse", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/chatpulse",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== B2Chat API ==========
    b2chat_api_url: str = Field(
        default="https://api.b2chat.io",
        description="B2Chat API base URL"
    )
    b2chat_username: str = Field(default="", description="B2Chat client username")
    b2chat_password: str = Field(default="", description="B2Chat client password")
    b2chat_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for B2Chat API calls",
        ge=1,
        le=300
    )
    b2chat_max_requests_per_second: int = Field(
        default=5,
        description="Max B2Chat API calls per rolling second",
        ge=1
    )
    b2chat_max_requests_per_day: int = Field(
        default=10000,
        description="Max B2Chat API calls per rolling 24 hours",
        ge=1
    )

    # ========== Sync ==========
    sync_batch_size: int = Field(
        default=1000,
        description="Records requested per export page",
        ge=1,
        le=1000
    )
    sync_interval_seconds: int = Field(
        default=0,
        description="Seconds between scheduled incremental extracts (0 disables)",
        ge=0
    )

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA configuration YAML file"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class ChatStatus(str):
    """B2Chat chat lifecycle statuses."""
    BOT_CHATTING = "BOT_CHATTING"
    OPENED = "OPENED"
    PICKED_UP = "PICKED_UP"
    RESPONDED_BY_AGENT = "RESPONDED_BY_AGENT"
    CLOSED = "CLOSED"
    COMPLETING_POLL = "COMPLETING_POLL"
    COMPLETED_POLL = "COMPLETED_POLL"
    ABANDONED_POLL = "ABANDONED_POLL"


class ChatProvider(str):
    """Messaging channels chats arrive through."""
    WHATSAPP = "whatsapp"
    FACEBOOK = "facebook"
    TELEGRAM = "telegram"
    LIVECHAT = "livechat"
    B2CBOTAPI = "b2cbotapi"


class ChatPriority(str):
    """Chat priority levels used for SLA overrides."""
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class EntityType(str):
    """Exportable B2Chat collections."""
    CONTACTS = "contacts"
    CHATS = "chats"


class ExtractStatus(str):
    """Extract run states."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MessageSender(str):
    """Who sent a chat message."""
    CUSTOMER = "customer"
    AGENT = "agent"
    BOT = "bot"
    SYSTEM = "system"


class SLAMetricType(str):
    """SLA metric kinds."""
    PICKUP = "pickup"
    FIRST_RESPONSE = "first_response"
    AVG_RESPONSE = "avg_response"
    RESOLUTION = "resolution"


# ========== Lists for validation ==========

VALID_CHAT_STATUSES = [
    ChatStatus.BOT_CHATTING, ChatStatus.OPENED, ChatStatus.PICKED_UP,
    ChatStatus.RESPONDED_BY_AGENT, ChatStatus.CLOSED,
    ChatStatus.COMPLETING_POLL, ChatStatus.COMPLETED_POLL,
    ChatStatus.ABANDONED_POLL
]
VALID_PROVIDERS = [
    ChatProvider.WHATSAPP, ChatProvider.FACEBOOK, ChatProvider.TELEGRAM,
    ChatProvider.LIVECHAT, ChatProvider.B2CBOTAPI
]
VALID_PRIORITIES = [
    ChatPriority.URGENT, ChatPriority.HIGH,
    ChatPriority.NORMAL, ChatPriority.LOW
]
VALID_ENTITY_TYPES = [EntityType.CONTACTS, EntityType.CHATS]
VALID_SLA_METRICS = [
    SLAMetricType.PICKUP, SLAMetricType.FIRST_RESPONSE,
    SLAMetricType.AVG_RESPONSE, SLAMetricType.RESOLUTION
]
