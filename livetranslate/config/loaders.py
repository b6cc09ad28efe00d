"""
Locating and reading ``livetranslate.yaml``.

Relative paths are taken from the project root so ``livetranslate serve`` works
from any working directory. ``${VAR}`` references are expanded before parsing so
regions and hosts can come from the environment; API keys never do (see
``security``).
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml

# Project root (the directory holding livetranslate/ and config/)
_PROJ_DIR = Path(__file__).parent.parent.parent.resolve()

DEFAULT_CONFIG_PATH = "config/livetranslate.yaml"


def resolve_config_path(path: str) -> str:
    """Absolute form of ``path``; relative paths are joined to the project root."""
    if os.path.isabs(path):
        return path
    return os.path.join(_PROJ_DIR, path)


def load_yaml_with_env_expansion(path: str) -> Dict[str, Any]:
    """
    Read ``path``, expand environment references and parse it as a YAML mapping.

    An empty file yields ``{}``.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If parsing fails or the document is not a mapping
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")

    try:
        data = yaml.safe_load(os.path.expandvars(raw))
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error parsing {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise yaml.YAMLError(f"Top-level YAML configuration must be a mapping, got {type(data).__name__}")
    return data
