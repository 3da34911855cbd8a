from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="BandSync Fan Chat API", env="APP_NAME", description="Human readable service name")
    environment: str = Field(default="development", env="ENVIRONMENT", description="Deployment environment name")
    debug: bool = Field(default=False, env="DEBUG", description="Enable debug mode")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1",
        ],
        env="CORS_ORIGINS",
        description="List of allowed CORS origins",
    )

    database_url_override: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full SQLAlchemy URL; takes precedence over the individual DB_* settings",
    )
    database_user: str = Field(default="fanchat", validation_alias="DB_USER")
    database_password: str = Field(default="fanchat", validation_alias="DB_PASSWORD")
    database_host: str = Field(default="db", validation_alias="DB_HOST")
    database_port: int = Field(default=3306, validation_alias="DB_PORT")
    database_name: str = Field(default="fanchat", validation_alias="DB_NAME")

    jwt_secret_key: str = Field(default="changeme", env="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, env="ACCESS_TOKEN_EXPIRE_MINUTES")

    chat_history_default_limit: int = Field(default=50, env="CHAT_HISTORY_DEFAULT_LIMIT")
    chat_history_max_limit: int = Field(default=200, env="CHAT_HISTORY_MAX_LIMIT")
    chat_message_max_length: int = Field(default=500, env="CHAT_MESSAGE_MAX_LENGTH")
    message_edit_window_seconds: int = Field(
        default=15 * 60,
        env="MESSAGE_EDIT_WINDOW_SECONDS",
        description="How long after sending a message its author may still edit it.",
    )

    warning_ban_threshold: int = Field(
        default=3,
        env="WARNING_BAN_THRESHOLD",
        description="Number of active warnings that triggers an automatic temporary ban.",
    )
    auto_ban_duration_seconds: int = Field(
        default=24 * 60 * 60,
        env="AUTO_BAN_DURATION_SECONDS",
        description="Length of the temporary ban synthesized after too many warnings.",
    )
    default_temp_ban_seconds: int = Field(default=24 * 60 * 60, env="DEFAULT_TEMP_BAN_SECONDS")
    default_mute_seconds: int = Field(default=60 * 60, env="DEFAULT_MUTE_SECONDS")
    moderation_announcements_enabled: bool = Field(
        default=True,
        env="MODERATION_ANNOUNCEMENTS_ENABLED",
        description="Post a system message into the chat for every sanction.",
    )

    spam_window_seconds: int = Field(default=60, env="SPAM_WINDOW_SECONDS")
    spam_max_messages: int = Field(
        default=10,
        env="SPAM_MAX_MESSAGES",
        description="Maximum messages one sender may post to a chat per spam window. Zero disables the check.",
    )
    require_rules_acceptance: bool = Field(
        default=False,
        env="REQUIRE_RULES_ACCEPTANCE",
        description="Block fans from writing to group chats until they accept the chat rules.",
    )

    push_notifications_enabled: bool = Field(
        default=False,
        env="PUSH_NOTIFICATIONS_ENABLED",
        description="Forward chat notifications to the push dispatcher webhook.",
    )
    notification_webhook_url: AnyHttpUrl | None = Field(
        default=None,
        env="NOTIFICATION_WEBHOOK_URL",
        description="Endpoint of the external push-notification dispatcher.",
    )
    notification_timeout_seconds: float = Field(default=5.0, env="NOTIFICATION_TIMEOUT_SECONDS")

    metrics_enabled: bool = Field(
        default=True,
        env="METRICS_ENABLED",
        description="Serve Prometheus metrics on /metrics.",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+pymysql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("notification_webhook_url", mode="before")
    @classmethod
    def empty_webhook_is_none(cls, value):  # type: ignore[override]
        if value in ("", Ellipsis):
            return None
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
