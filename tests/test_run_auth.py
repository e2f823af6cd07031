"""
Tests for the command-line authentication script

The detection engine is replaced by a fake; the placeholder verifier runs
with no delay.

Run with: pytest tests/test_run_auth.py -v
"""

import os
import sys
from unittest.mock import patch

import pytest
import yaml

from conftest import FakeEngine, make_jpeg
from seam import config as config_module
from seam.face_detector import EngineHandle

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "scripts"))

import run_auth  # noqa: E402


@pytest.fixture(autouse=True)
def reset_singleton():
    with patch.object(config_module, "_config_instance", None):
        yield


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "face.jpg"
    path.write_bytes(make_jpeg())
    return str(path)


def write_config(directory, data) -> str:
    path = directory / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def fake_engine_handle(config=None):
    return EngineHandle(lambda: FakeEngine())


class TestRunAuth:
    """Tests for run_auth.main()."""

    def test_successful_attempt(self, tmp_path, image_file, capsys):
        config_path = write_config(tmp_path, {"verifier": {"placeholder_delay_sec": 0}})

        with patch.object(run_auth, "create_engine_handle", side_effect=fake_engine_handle):
            code = run_auth.main(["--config", config_path, "--image", image_file, "--no-log"])

        assert code == 0
        assert "AUTHENTICATED" in capsys.readouterr().out

    def test_http_backend_without_url_reports_error(self, tmp_path, image_file, capsys):
        config_path = write_config(tmp_path, {})

        code = run_auth.main(
            ["--verifier", "http", "--config", config_path, "--image", image_file, "--no-log"]
        )

        out = capsys.readouterr().out
        assert code == 1
        assert "ERROR: verifier.base_url is required" in out
        assert "Traceback" not in out

    def test_missing_config_file_reports_error(self, tmp_path, image_file, capsys):
        code = run_auth.main(["--config", str(tmp_path / "nope.yaml"), "--image", image_file])

        assert code == 1
        assert "ERROR: Configuration file not found" in capsys.readouterr().out

    def test_missing_image_reports_error(self, tmp_path, capsys):
        config_path = write_config(tmp_path, {"verifier": {"placeholder_delay_sec": 0}})

        code = run_auth.main(["--config", config_path, "--image", str(tmp_path / "none.jpg")])

        assert code == 1
        assert "ERROR: Failed to read image" in capsys.readouterr().out

    def test_relative_db_path_follows_config_file(self, tmp_path, image_file, monkeypatch):
        config_dir = tmp_path / "deploy"
        config_dir.mkdir()
        config_path = write_config(config_dir, {
            "verifier": {"placeholder_delay_sec": 0},
            "storage": {"db_path": "logs/a.sqlite"},
        })
        # A different working directory must not change where the log lands
        monkeypatch.chdir(tmp_path)

        with patch.object(run_auth, "create_engine_handle", side_effect=fake_engine_handle):
            code = run_auth.main(["--config", config_path, "--image", image_file])

        assert code == 0
        assert (config_dir / "logs" / "a.sqlite").exists()
        assert not (tmp_path / "logs").exists()
