"""Configuration loader for the Sefaria export importer."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class AppInfo(BaseModel):
    """Application metadata."""

    name: str = "Seforim Index"
    version: str = "1.0.0"
    language: str = "he"


class ImportConfig(BaseModel):
    """Import pipeline tuning."""

    file_parallelism: int = Field(default=8, ge=1)
    line_batch_size: int = Field(default=5000, ge=1)
    link_batch_size: int = Field(default=2000, ge=1)
    link_queue_size: int = Field(default=10000, ge=1)


class StorageConfig(BaseModel):
    """Storage paths configuration."""

    export_root: str = "./data/sefaria"
    sqlite_path: str = "./db/seforim.db"
    priority_file: str | None = "./data/priority.txt"
    default_commentators_file: str | None = "./data/default_commentators.json"
    default_targumim_file: str | None = "./data/default_targumim.json"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class AppConfig(BaseModel):
    """Root application configuration."""

    app: AppInfo = Field(default_factory=AppInfo)
    ingestion: ImportConfig = Field(default_factory=ImportConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: str | Path = "config.yaml") -> AppConfig:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Fully populated AppConfig instance.
    """
    load_dotenv()

    yaml_data: dict = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

    config = AppConfig(**yaml_data)

    # Override storage paths from environment
    export_root = os.getenv("SEFORIM_EXPORT_ROOT")
    if export_root:
        config.storage.export_root = export_root
    db_path = os.getenv("SEFORIM_DB_PATH")
    if db_path:
        config.storage.sqlite_path = db_path

    return config
