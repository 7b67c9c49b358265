"""
config.py - Settings for the preview renderer.

Three groups of settings, each with a built-in default:

- ``resources``: where the inlined stylesheet and script are read from
- ``preview``: JPEG quality and frame cap of the built-in pydicom parser
- ``upstream``: whether the upstream parser may be called concurrently

The YAML file is looked up in this order: the ``DICOM_PREVIEW_CONFIG``
environment variable, then ``config.yaml`` at the repository root.  A
regular (non-editable) install has no repository root, so without the
environment variable it runs on the defaults.  The CLI's ``--config``
option swaps the settings in place through apply_config().
"""

import logging
import os
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DICOM_PREVIEW_CONFIG"

_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_REPO_CONFIG = os.path.join(_REPO_ROOT, "config.yaml")

_DEFAULTS: dict[str, Any] = {
    "resources": {
        "directory": None,
        "stylesheet": "styles.css",
        "script": "scripts.js",
    },
    "preview": {
        "jpeg_quality": 60,
        "max_frames": None,
    },
    "upstream": {
        "reentrant": True,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Return *base* with *override* laid over it, merging nested sections."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def default_config_path() -> str:
    return os.environ.get(CONFIG_ENV_VAR) or _REPO_CONFIG


def load_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    Read the YAML settings and lay them over the built-in defaults.

    Parameters
    ----------
    config_path : str, optional
        YAML file to read.  Defaults to default_config_path().  A missing
        file means "use the defaults".

    Raises
    ------
    ValueError
        If the file does not hold a mapping at the top level.
    """
    path = config_path or default_config_path()
    if not os.path.exists(path):
        logger.debug("No config file at %s, using defaults", path)
        return _deep_merge(_DEFAULTS, {})

    with open(path, "r", encoding="utf-8") as f:
        user_config = yaml.safe_load(f) or {}
    if not isinstance(user_config, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(user_config).__name__}")

    logger.debug("Loaded config from %s", path)
    return _deep_merge(_DEFAULTS, user_config)


def apply_config(config_path: str) -> dict[str, Any]:
    """Replace the contents of CONFIG with the settings read from *config_path*."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")
    settings = load_config(config_path)
    CONFIG.clear()
    CONFIG.update(settings)
    return CONFIG


# Shared by every module; apply_config() updates it in place
CONFIG = load_config()
