"""
Tests for the Configuration Module

Run with: pytest tests/test_config.py -v
"""

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from seam import config as config_module
from seam.config import (
    DEFAULTS,
    apply_defaults,
    get_capture_config,
    get_config,
    get_project_root,
    get_section,
    get_server_config,
    get_timeouts_config,
    load_config,
)


@pytest.fixture(autouse=True)
def reset_singleton():
    """Each test starts without a cached configuration."""
    with patch.object(config_module, "_config_instance", None):
        yield


def write_config(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data) if data is not None else "")
    return str(path)


class TestApplyDefaults:
    """Tests for apply_defaults()."""

    def test_fills_missing_sections_and_keys(self):
        config = apply_defaults({"timeouts": {"detection_sec": 3}})

        assert config["timeouts"] == {"detection_sec": 3, "verification_sec": 20.0}
        assert config["verifier"]["backend"] == "placeholder"
        assert config["capture"] == DEFAULTS["capture"]

    def test_defaults_are_not_shared(self):
        config = apply_defaults(None)
        config["capture"]["device_id"] = 7
        assert DEFAULTS["capture"]["device_id"] == 0

    def test_unknown_sections_are_kept(self):
        assert apply_defaults({"extra": {"a": 1}})["extra"] == {"a": 1}

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="timeouts"):
            apply_defaults({"timeouts": 5})

    def test_config_must_be_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            apply_defaults(["not", "a", "mapping"])

    def test_storage_paths_resolved_against_base_dir(self, tmp_path):
        config = apply_defaults(
            {"storage": {"db_path": "data/attempts.sqlite", "models_dir": "/opt/models"}},
            base_dir=tmp_path,
        )
        assert config["storage"]["db_path"] == str(tmp_path / "data" / "attempts.sqlite")
        assert config["storage"]["models_dir"] == "/opt/models"

    def test_memory_database_untouched(self, tmp_path):
        config = apply_defaults({"storage": {"db_path": ":memory:"}}, base_dir=tmp_path)
        assert config["storage"]["db_path"] == ":memory:"


class TestLoadConfig:
    """Tests for load_config()."""

    def test_load_from_file(self, tmp_path):
        config = load_config(write_config(tmp_path, {"timeouts": {"detection_sec": 3}}))
        assert config["timeouts"]["detection_sec"] == 3

    def test_empty_file_gives_defaults(self, tmp_path):
        config = load_config(write_config(tmp_path, None))
        assert config["timeouts"] == DEFAULTS["timeouts"]
        assert config["storage"]["db_path"] == str(tmp_path / "storage" / "attempts.sqlite")

    def test_relative_paths_follow_config_file(self, tmp_path):
        other_dir = tmp_path / "deploy"
        other_dir.mkdir()
        config = load_config(write_config(other_dir, {"storage": {"db_path": "attempts.sqlite"}}))
        assert config["storage"]["db_path"] == str(other_dir / "attempts.sqlite")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_project_config(self):
        config = load_config()
        root = get_project_root()
        assert (root / "config.yaml").exists()
        assert Path(config["storage"]["db_path"]) == root / "storage" / "attempts.sqlite"


class TestGetConfig:
    """Tests for the configuration singleton and section helpers."""

    def test_cached_until_reload(self, tmp_path):
        path = write_config(tmp_path, {"verifier": {"backend": "placeholder"}})

        first = get_config(config_path=path)
        write_config(tmp_path, {"verifier": {"backend": "http"}})

        assert get_config() is first
        assert get_config(reload=True, config_path=path)["verifier"]["backend"] == "http"

    def test_section_helpers(self, tmp_path):
        get_config(config_path=write_config(tmp_path, {"capture": {"device_id": 2}}))

        assert get_capture_config()["device_id"] == 2
        assert get_capture_config()["jpeg_quality"] == 90
        assert get_timeouts_config() == DEFAULTS["timeouts"]

    def test_missing_section(self):
        with patch.object(config_module, "_config_instance", apply_defaults({})):
            with pytest.raises(KeyError, match="logging"):
                get_section("logging")


class TestServerConfig:
    """Tests for get_server_config()."""

    @pytest.mark.parametrize("base_url,expected", [
        ("http://localhost:8000", {"host": "0.0.0.0", "port": 8000}),
        ("http://10.0.0.5:9100/", {"host": "10.0.0.5", "port": 9100}),
        ("http://localhost", {"host": "0.0.0.0", "port": 8000}),
    ])
    def test_server_config(self, base_url, expected):
        config = apply_defaults({"api": {"base_url": base_url}})
        with patch.object(config_module, "_config_instance", config):
            assert get_server_config() == expected
