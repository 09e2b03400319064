"""
Tests for YAML configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from studiobook.config import AppConfig, GridConfig


class TestGridConfig:
    def test_defaults_build_studio_day(self):
        grid = GridConfig().build()

        assert len(grid) == 22
        assert grid[0].clock_label == "09:00"

    def test_unquoted_yaml_times(self):
        """YAML reads 20:00 as the sexagesimal integer 1200."""
        config = GridConfig(start_time=540, end_time=1200)

        assert config.start_time == "09:00"
        assert config.end_time == "20:00"

    def test_closing_at_midnight(self):
        config = GridConfig(start_time="22:00", end_time="24:00", step_minutes=60)

        assert config.end_minute == 24 * 60
        assert len(config.build()) == 2

    @pytest.mark.parametrize(
        "fields",
        [
            {"start_time": "20:00", "end_time": "09:00"},
            {"step_minutes": 0},
            {"step_minutes": 45},
            {"start_time": "nine"},
            {"start_time": "25:00"},
        ],
    )
    def test_invalid_grid(self, fields):
        with pytest.raises(ValidationError):
            GridConfig(**fields)


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()

        assert config.timezone == "Asia/Manila"
        assert config.reference_prefix == "IOS"
        assert config.retry.attempts == 3
        assert config.store_path == Path("studiobook.json")

    def test_prefix_is_normalized(self):
        assert AppConfig(reference_prefix=" abc ").reference_prefix == "ABC"
        with pytest.raises(ValidationError):
            AppConfig(reference_prefix="IO-S")

    @pytest.mark.parametrize(
        "fields",
        [
            {"timezone": "Mars/Olympus"},
            {"log_level": "LOUD"},
            {"retry": {"attempts": 0}},
            {"retry": {"base_delay_seconds": -1}},
        ],
    )
    def test_invalid_settings(self, fields):
        with pytest.raises(ValidationError):
            AppConfig(**fields)

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "studio_name: Test Studio\n"
            "grid:\n"
            "  start_time: 10:00\n"
            "  end_time: '18:00'\n"
            "  step_minutes: 60\n"
            "store_path: data/store.json\n"
            "log_level: debug\n",
            encoding="utf-8",
        )

        config = AppConfig.load_from_yaml(path)

        assert config.studio_name == "Test Studio"
        assert config.grid.start_time == "10:00"
        assert len(config.grid.build()) == 8
        assert config.store_path == tmp_path / "data" / "store.json"
        assert config.log_level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "config.yaml")

    @pytest.mark.parametrize("content", ["grid: [unclosed", "- just\n- a list\n"])
    def test_invalid_yaml(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(path)

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        config = AppConfig.load_from_yaml(path)

        assert config.grid.step_minutes == 30
        assert config.store_path == tmp_path / "studiobook.json"
