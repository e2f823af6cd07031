"""
Configuration for SEAM Face Authentication

Settings live in ``config.yaml`` at the project root (or in a file given
explicitly, e.g. ``run_auth.py --config``). Every section the components
read is filled with defaults, so a config file only needs the keys it
changes:

    face_detection  MediaPipe detector thresholds and model location
    capture         camera device, resolution, JPEG quality
    verifier        identity backend ("placeholder" or "http")
    timeouts        per-stage deadlines in seconds
    storage         attempt database and model cache
    api             public base URL of the FastAPI server

Relative storage paths are resolved against the directory of the config
file they came from.

Usage:
    from seam.config import get_timeouts_config
    timeouts = get_timeouts_config()
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import yaml


CONFIG_FILENAME = "config.yaml"

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "face_detection": {
        "min_detection_confidence": 0.5,
        "min_suppression_threshold": 0.3,
    },
    "capture": {
        "device_id": 0,
        "width": 640,
        "height": 480,
        "jpeg_quality": 90,
    },
    "verifier": {
        "backend": "placeholder",
        "placeholder_delay_sec": 1.5,
        "placeholder_identity": "1",
        "timeout_sec": 10.0,
    },
    "timeouts": {
        "detection_sec": 15.0,
        "verification_sec": 20.0,
    },
    "storage": {
        "db_path": "storage/attempts.sqlite",
        "models_dir": "storage/models",
    },
    "api": {
        "base_url": "http://localhost:8000",
    },
}

# Keys in the storage section holding filesystem paths
_STORAGE_PATH_KEYS = ("db_path", "models_dir")

_config_instance: Optional[Dict[str, Any]] = None


def get_project_root() -> Path:
    """
    Directory holding the default config.yaml, searched upwards from this package.

    Raises:
        FileNotFoundError: If no parent directory contains config.yaml.
    """
    here = Path(__file__).resolve().parent
    for directory in (here, *here.parents):
        if (directory / CONFIG_FILENAME).exists():
            return directory
    raise FileNotFoundError(f"No {CONFIG_FILENAME} found above {here}")


def apply_defaults(raw: Optional[Dict[str, Any]], base_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Merge a raw config mapping over DEFAULTS.

    Args:
        raw: Parsed YAML (None for an empty file).
        base_dir: Directory relative storage paths are resolved against.
                  If None, they are left as given.

    Returns:
        A new dict with every known section present.

    Raises:
        ValueError: If the file or one of its sections is not a mapping.
    """
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration must be a mapping, got {type(raw).__name__}")

    config = {key: value for key, value in raw.items() if key not in DEFAULTS}
    for section, defaults in DEFAULTS.items():
        values = raw.get(section) or {}
        if not isinstance(values, dict):
            raise ValueError(f"Configuration section '{section}' must be a mapping")
        merged = copy.deepcopy(defaults)
        merged.update(values)
        config[section] = merged

    if base_dir is not None:
        storage = config["storage"]
        for key in _STORAGE_PATH_KEYS:
            value = storage.get(key)
            if value and value != ":memory:" and not Path(value).is_absolute():
                storage[key] = str(base_dir / value)

    return config


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read a config file and fill in defaults.

    Args:
        config_path: File to read; the project's config.yaml if None.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the file is not a mapping of sections.
    """
    path = Path(config_path) if config_path else get_project_root() / CONFIG_FILENAME
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    return apply_defaults(raw, base_dir=path.resolve().parent)


def get_config(reload: bool = False, config_path: Optional[str] = None) -> Dict[str, Any]:
    """Process-wide configuration, loaded on first use or when ``reload`` is set."""
    global _config_instance

    if _config_instance is None or reload:
        _config_instance = load_config(config_path)

    return _config_instance


def get_section(section_name: str) -> Dict[str, Any]:
    """
    Raises:
        KeyError: If the section is neither in the file nor a known section.
    """
    config = get_config()
    if section_name not in config:
        raise KeyError(
            f"Configuration section '{section_name}' not found. "
            f"Available sections: {sorted(config)}"
        )
    return config[section_name]


def get_face_detection_config() -> Dict[str, Any]:
    return get_section("face_detection")


def get_capture_config() -> Dict[str, Any]:
    return get_section("capture")


def get_verifier_config() -> Dict[str, Any]:
    return get_section("verifier")


def get_timeouts_config() -> Dict[str, Any]:
    return get_section("timeouts")


def get_storage_config() -> Dict[str, Any]:
    return get_section("storage")


def get_api_config() -> Dict[str, Any]:
    return get_section("api")


def get_server_config() -> Dict[str, Any]:
    """
    Host and port uvicorn binds to, derived from ``api.base_url``.

    A localhost URL binds all interfaces; the port defaults to 8000.
    """
    parts = urlsplit(get_api_config()["base_url"])
    try:
        port = parts.port or 8000
    except ValueError:
        port = 8000

    host = parts.hostname
    if host in (None, "localhost"):
        host = "0.0.0.0"

    return {"host": host, "port": port}
