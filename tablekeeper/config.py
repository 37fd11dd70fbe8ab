"""Configuration management for TableKeeper using Pydantic."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TABLEKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    database_path: str = Field(
        default="reservations.db",
        description="SQLite file for reservations and capacity config (':memory:' keeps them in-process)",
    )
    tables_path: str | None = Field(
        default=None,
        description="JSON file listing the restaurant tables of every tenant",
    )

    # Server Configuration
    server_host: str = Field(default="0.0.0.0", description="Server host")
    server_port: int = Field(default=8080, description="Server port")
    server_url: str = Field(
        default="http://localhost:8080",
        description="Server URL for CLI to connect to API",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")

    # Engine Configuration
    verify_table_reassignment: bool = Field(
        default=False,
        description="Reject manual table changes that collide with other bookings",
    )

    def model_post_init(self, __context) -> None:
        """Warn about settings that weaken guarantees."""
        if self.database_path == ":memory:":
            logger.warning("TABLEKEEPER_DATABASE_PATH is ':memory:' - reservations are not persisted")

        if self.tables_path is None:
            logger.info("TABLEKEEPER_TABLES_PATH not set - no tables available for assignment")

        if not self.verify_table_reassignment:
            logger.info("Manual table reassignment is treated as an owner override")


# Global settings instance
settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def setup_logging(cfg: Settings | None = None) -> None:
    """Configure logging for the application."""
    if cfg is None:
        cfg = get_settings()

    log_level = getattr(logging, cfg.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
