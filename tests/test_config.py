"""Tests for the Config system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from linkvault.config import Config, reset_config


@pytest.fixture(autouse=True)
def _clean_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(data_dir=tmp_path)


class TestConfig:
    def test_default_values(self, config: Config) -> None:
        assert config.max_workers == 1
        assert config.compression_level == 6
        assert config.preserve_timestamps
        assert not config.validate_before_backup
        assert config.freshness_tolerance == 2.0
        assert config.freshness_step_delay == pytest.approx(0.05)
        assert config.max_entry_size == 500 * 1024 * 1024

    def test_set_and_get(self, config: Config) -> None:
        config.set("freshness.tolerance_seconds", 5)
        assert config.get("freshness.tolerance_seconds") == 5
        assert config.freshness_tolerance == 5.0

    def test_get_missing_key(self, config: Config) -> None:
        assert config.get("backup.nope", "fallback") == "fallback"
        assert config.get("nothing.at.all") is None

    def test_batch_update_atomic(self, config: Config, tmp_path: Path) -> None:
        with config.batch_update():
            config.set("backup.max_workers", 4)
            config.set("archive.compression_level", 9)
        saved = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
        assert saved["backup"]["max_workers"] == 4
        assert saved["archive"]["compression_level"] == 9

    def test_persists_across_instances(self, config: Config, tmp_path: Path) -> None:
        config.validate_before_backup = True
        reloaded = Config(data_dir=tmp_path)
        assert reloaded.validate_before_backup

    def test_user_file_merged_with_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "config.json").write_text(json.dumps({"archive": {"compression_level": 1}}))
        config = Config(data_dir=tmp_path)
        assert config.compression_level == 1
        assert config.max_entry_size == 500 * 1024 * 1024

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "config.json").write_text("{not json")
        assert Config(data_dir=tmp_path).max_workers == 1

    def test_compression_level_clamped(self, config: Config) -> None:
        config.compression_level = 42
        assert config.compression_level == 9
        config.compression_level = -3
        assert config.compression_level == 0

    def test_max_workers_floor(self, config: Config) -> None:
        config.set("backup.max_workers", 0)
        assert config.max_workers == 1
