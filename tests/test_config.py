"""Tests for configuration loading and migration."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from yunhubot.config import loader
from yunhubot.config.schema import CURRENT_SCHEMA_VERSION, Config, YunhuConfig


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "config.json"
    monkeypatch.setattr(loader, "CONFIG_FILE", path)
    return path


class TestSchema:
    """Test defaults and derived values."""

    def test_defaults(self) -> None:
        config = Config()
        assert config.yunhu.endpoint == "https://chat-go.jwzhd.com"
        assert config.yunhu.path == "/yunhu"
        assert config.media.image_ceiling == 10 * 1024 * 1024
        assert config.api_base == "https://chat-go.jwzhd.com/open-apis/v1"

    def test_api_base_strips_slash(self) -> None:
        config = Config(yunhu=YunhuConfig(endpoint="https://example.com/"))
        assert config.api_base == "https://example.com/open-apis/v1"

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("YUNHUBOT_YUNHU__TOKEN", "from-env")
        monkeypatch.setenv("YUNHUBOT_GATEWAY__PORT", "9000")
        config = Config()
        assert config.yunhu.token == "from-env"
        assert config.gateway.port == 9000


class TestLoader:
    """Test file I/O."""

    def test_missing_file_gives_defaults(self, config_file: Path) -> None:
        assert loader.load_config() == Config()

    def test_round_trip(self, config_file: Path) -> None:
        loader.save_config(Config(yunhu=YunhuConfig(token="t1", path="/hook")))

        config = loader.load_config()
        assert config.yunhu.token == "t1"
        assert config.yunhu.path == "/hook"
        assert json.loads(config_file.read_text())["schema_version"] == CURRENT_SCHEMA_VERSION

    def test_corrupted_file_gives_defaults(self, config_file: Path) -> None:
        config_file.write_text("{oops")
        assert loader.load_config().yunhu.token == ""

    def test_v0_migration(self, config_file: Path) -> None:
        config_file.write_text(json.dumps({"token": "old", "path": "/legacy"}))

        config = loader.load_config()

        assert config.yunhu.token == "old"
        assert config.yunhu.path == "/legacy"
        assert config_file.with_suffix(".json.bak").exists()
        migrated = json.loads(config_file.read_text())
        assert migrated["schema_version"] == 1
        assert "token" not in migrated
