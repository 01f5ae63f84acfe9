"""Registry configuration loader.

Settings live in a YAML file (config/config.yaml unless REGISTRY_CONFIG or
an explicit path says otherwise) and are validated with the Pydantic models
in config_schema on every load or override.

Usage:
    from src.config import load_config, get, get_validated_config

    load_config()                       # once, at startup
    get("storage.backend")              # raw value by dot-path
    get_validated_config().registry     # typed RegistryConfig
"""

from __future__ import annotations

import os
import yaml
from pathlib import Path
from typing import Any

from .config_schema import AppConfig, load_validated_config, validate_config_dict

CONFIG_ENV_VAR = "REGISTRY_CONFIG"
DEFAULT_CONFIG_PATH: Path = Path(__file__).parent.parent / "config" / "config.yaml"

# Raw dict as read from YAML (plus overrides) and its validated form
_raw: dict[str, Any] | None = None
_validated: AppConfig | None = None


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Explicit path, else $REGISTRY_CONFIG, else the repo default."""
    if config_path:
        return Path(config_path)
    from_env = os.environ.get(CONFIG_ENV_VAR)
    return Path(from_env) if from_env else DEFAULT_CONFIG_PATH


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Read and validate a config file, replacing any loaded config.

    Raises:
        FileNotFoundError: The file does not exist.
        pydantic.ValidationError: A key is unknown or a value out of range.
    """
    global _raw, _validated

    path = resolve_config_path(config_path)
    _validated = load_validated_config(path)
    with open(path) as f:
        data = yaml.safe_load(f)
    _raw = data if isinstance(data, dict) else {}
    return _raw


def _ensure_loaded() -> tuple[dict[str, Any], AppConfig]:
    if _raw is None or _validated is None:
        load_config()
    assert _raw is not None and _validated is not None
    return _raw, _validated


def get_config() -> dict[str, Any]:
    """Raw config dict; prefer get_validated_config() for typed access."""
    return _ensure_loaded()[0]


def get_validated_config() -> AppConfig:
    return _ensure_loaded()[1]


def get(key: str, default: Any = None) -> Any:
    """Value at a dot-separated path, e.g. get("registry.supply_cap_by_type.genesis")."""
    node: Any = get_config()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def set_config_value(key: str, value: Any) -> None:
    """Override one value (CLI flags) and re-validate the whole config.

    The raw dict keeps the override even if validation fails, so callers
    should treat a ValidationError here as fatal.
    """
    global _validated

    node = get_config()
    *parents, leaf = key.split(".")
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value
    _validated = validate_config_dict(get_config())


def reset_config() -> None:
    """Forget any loaded config. Mainly for tests."""
    global _raw, _validated
    _raw = None
    _validated = None
