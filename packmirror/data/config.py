from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from packmirror.domain.errors import ConfigError
from packmirror.domain.models import MirrorConfig

logger = logging.getLogger(__name__)

DATA_ROOT_ENV_VAR = "PACKMIRROR_DATA_DIR"

# Resolve repository root (project root, not the Python package root)
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"

CONFIG_FILENAMES = ("mirror.json", "mirror.yaml", "mirror.yml")


def get_data_dir() -> Path:
    """
    Determine the data directory path.

    Priority:
    1. Environment variable PACKMIRROR_DATA_DIR
    2. '<project root>/data'
    """
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        d = Path(env_path).expanduser()
    else:
        d = _DEFAULT_DATA_DIR
    d.mkdir(parents=True, exist_ok=True)
    return d


def find_config_file(data_dir: Path) -> Optional[Path]:
    for filename in CONFIG_FILENAMES:
        path = data_dir / filename
        if path.exists():
            return path
    return None


def read_config_file(path: Path) -> Dict[str, Any]:
    """
    Parse a JSON or YAML config file into a plain dict.
    """
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(text) or {}
        else:
            raw = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain an object")
    return raw


def load_config(data_dir: Path) -> MirrorConfig:
    """
    Load the mirror configuration, falling back to defaults when no file exists.
    """
    path = find_config_file(data_dir)
    if path is None:
        logger.info(f"No config file in {data_dir}, using defaults")
        return MirrorConfig()

    try:
        config = MirrorConfig(**read_config_file(path))
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    logger.debug(f"Loaded config from {path}")
    return config


def resolve_output_dir(config: MirrorConfig, data_dir: Path) -> Path:
    """
    Output directory from the config, relative paths taken from the data dir.
    """
    if config.output_dir:
        path = Path(config.output_dir).expanduser()
        if not path.is_absolute():
            path = data_dir / path
        return path
    return data_dir / "public"
