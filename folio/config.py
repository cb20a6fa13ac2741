"""Process configuration from environment variables."""

import logging
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class FolioConfig(BaseSettings):
    """Configuration loaded from FOLIO_* environment variables or .env."""

    model_config = SettingsConfigDict(env_prefix="FOLIO_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Storage
    database_path: Path = Path("data/folio.db")

    # Logging
    log_level: str = "INFO"


def setup_logging(config: FolioConfig | None = None) -> None:
    """Configure root logging the same way for every entry point."""
    config = config or FolioConfig()
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO), format=LOG_FORMAT)
