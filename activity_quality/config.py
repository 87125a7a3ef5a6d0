from pathlib import Path
from typing import Any, Dict, Union

import yaml


REQUIRED_SECTIONS = [
    "data",
    "preprocessing",
    "training",
    "tuning",
    "model",
    "lgbm",
    "xgb",
    "output",
]


def load_config(config_path: Union[str, Path] = "config.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file.

    Relative data and output paths are resolved against the directory the
    config file lives in, which is stored under ``base_path``.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    missing = [section for section in REQUIRED_SECTIONS if section not in config]
    if missing:
        raise KeyError(f"Missing config sections: {missing}")

    config["base_path"] = str(config_path.resolve().parent)
    return config


def resolve_path(config: Dict[str, Any], path: Union[str, Path]) -> Path:
    """Resolve ``path`` relative to the config's base path."""
    path = Path(path)
    if path.is_absolute():
        return path
    return Path(config.get("base_path", ".")) / path
