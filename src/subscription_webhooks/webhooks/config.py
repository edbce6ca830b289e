"""
Webhook service configuration.
Loaded from environment variables (``WEBHOOK_`` prefix) and an optional .env file.
"""

from typing import Any

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STORE_FACTORY = (
    "subscription_webhooks.subscriptions.memory:MemorySubscriptionStore"
)


class WebhookConfig(BaseSettings):
    """
    Webhook service configuration.

    Priority order:
    1. Keyword arguments
    2. Environment variables
    3. .env file
    4. Default values
    """

    # === Server Configuration ===
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON log records")
    debug: bool = Field(default=False, description="Debug mode")
    service_name: str = Field(
        default="subscription-webhooks", description="Service name used in logs"
    )

    # === Notification Endpoint ===
    notification_path: str = Field(
        default="/notifications", description="Path notifications are POSTed to"
    )
    store_factory: str = Field(
        default=DEFAULT_STORE_FACTORY,
        description="Import path of the subscription store factory (module:callable)",
    )

    # === Metrics ===
    enable_metrics: bool = Field(
        default=True, description="Expose Prometheus metrics at /metrics"
    )

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("notification_path")
    @classmethod
    def validate_notification_path(cls, v):
        """Paths are mounted as-is, so they must be absolute."""
        if not v.startswith("/"):
            raise ValueError(f"Notification path must start with '/', got: {v}")
        return v.rstrip("/") or "/"

    def log_configuration(self):
        """Log configuration."""
        logger.info("=== WEBHOOK SERVICE CONFIGURATION ===")
        logger.info(f"Server: {self.host}:{self.port}")
        logger.info(f"Log Level: {self.log_level}")
        logger.info(f"Notification Path: {self.notification_path}")
        logger.info(f"Store Factory: {self.store_factory}")
        logger.info(f"Metrics: {self.enable_metrics}")
        logger.info("=====================================")

    def validate_config(self) -> dict[str, Any]:
        """Validate configuration and return validation result."""
        errors = []
        warnings = []

        if not self.host:
            errors.append("Server host is required")

        if self.port < 1 or self.port > 65535:
            errors.append("Server port must be between 1 and 65535")

        if ":" not in self.store_factory:
            errors.append(
                "Store factory must look like 'package.module:callable'"
            )
        elif self.store_factory == DEFAULT_STORE_FACTORY:
            warnings.append(
                "Using the in-memory subscription store - subscriptions are lost on restart"
            )

        if self.notification_path in ("/health", "/metrics", "/"):
            errors.append(
                f"Notification path {self.notification_path} collides with a built-in route"
            )

        if self.debug:
            warnings.append("Debug mode is enabled")

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
        }


def get_config(**overrides: Any) -> WebhookConfig:
    """Get webhook configuration."""
    return WebhookConfig(**overrides)
