"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from seforim_index.config import AppConfig, ImportConfig, load_config


class TestAppConfigDefaults:
    """Test that AppConfig provides sensible defaults."""

    def test_default_config_creates_successfully(self) -> None:
        config = AppConfig()
        assert config.app.name == "Seforim Index"
        assert config.app.language == "he"

    def test_default_import_config(self) -> None:
        config = AppConfig()
        assert config.ingestion.file_parallelism == 8
        assert config.ingestion.line_batch_size == 5000
        assert config.ingestion.link_batch_size == 2000
        assert config.ingestion.link_queue_size == 10000

    def test_default_storage_config(self) -> None:
        config = AppConfig()
        assert config.storage.sqlite_path == "./db/seforim.db"
        assert config.storage.priority_file == "./data/priority.txt"

    def test_parallelism_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ImportConfig(file_parallelism=0)


class TestLoadConfig:
    """Test loading config from YAML files."""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        yaml_data = {
            "app": {"name": "Test App", "version": "0.1.0"},
            "ingestion": {"link_batch_size": 50},
        }
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump(yaml_data))

        config = load_config(config_file)
        assert config.app.name == "Test App"
        assert config.app.version == "0.1.0"
        assert config.ingestion.link_batch_size == 50
        # Other fields keep defaults
        assert config.ingestion.file_parallelism == 8

    def test_load_missing_yaml_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config.app.name == "Seforim Index"

    def test_env_vars_override_paths(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("{}")

        monkeypatch.setenv("SEFORIM_EXPORT_ROOT", "/exports/sefaria")
        monkeypatch.setenv("SEFORIM_DB_PATH", "/tmp/out.db")

        config = load_config(config_file)
        assert config.storage.export_root == "/exports/sefaria"
        assert config.storage.sqlite_path == "/tmp/out.db"

    def test_load_project_config_yaml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading the actual project config.yaml."""
        monkeypatch.delenv("SEFORIM_DB_PATH", raising=False)
        config = load_config(Path(__file__).parent.parent / "config.yaml")
        assert config.app.name == "Seforim Index"
        assert config.storage.sqlite_path == "./db/seforim.db"
