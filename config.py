"""Config loader and validator.

Provides `load_config` which accepts either a path to a YAML file,
a dictionary or None and returns a normalized configuration dict
using DEFAULTS for missing values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


DEFAULTS: dict[str, Any] = {
    "program_path": "input.txt",
    "tick_limit": 1_000_000,
    "phase_settings": [0, 1, 2, 3, 4],
    "lenient_log": False,
}


class ConfigError(ValueError):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def _convert_types(cfg: dict[str, Any]) -> None:
    """Normalize types for configuration values in-place.

    Raises ConfigError on conversion failure.
    """
    try:
        cfg["program_path"] = str(cfg.get("program_path", DEFAULTS["program_path"]))

        # tick_limit should not be None because DEFAULTS provides a value
        cfg["tick_limit"] = int(cfg.get("tick_limit", DEFAULTS["tick_limit"]))

        phases = cfg.get("phase_settings")
        if phases is None:
            phases = DEFAULTS["phase_settings"]
        if isinstance(phases, str):
            phases = [p for p in phases.split(",") if p.strip()]
        cfg["phase_settings"] = [int(p) for p in phases]

        # lenient_log (bool coercion)
        cfg["lenient_log"] = bool(cfg.get("lenient_log", DEFAULTS["lenient_log"]))
    except (TypeError, ValueError) as e:
        msg = f"Bad types in config: {e}"
        raise ConfigError(msg) from e


def _validate_cfg(cfg: dict[str, Any]) -> None:
    """Perform semantic validation on normalized config dict.

    Raises ConfigError on invalid values.
    """
    if not cfg["program_path"]:
        msg = "program_path must not be empty"
        raise ConfigError(msg)

    if cfg["tick_limit"] <= 0:
        msg = "tick_limit must be positive"
        raise ConfigError(msg)

    phases = cfg["phase_settings"]
    if len(phases) < 2:
        msg = "phase_settings needs at least 2 values"
        raise ConfigError(msg)
    if len(set(phases)) != len(phases):
        msg = f"phase_settings must be distinct: {phases}"
        raise ConfigError(msg)


def load_config(path_or_dict: str | dict[str, Any] | None = None) -> dict[str, Any]:
    """Load and normalize configuration.

    Accepts:
      - None -> returns DEFAULTS copy
      - dict -> overlay DEFAULTS with provided dict
      - str (path) -> load YAML and overlay DEFAULTS

    Returns a normalized dict or raises ConfigError.
    """
    if path_or_dict is None:
        cfg: dict[str, Any] = dict(DEFAULTS)
    elif isinstance(path_or_dict, dict):
        cfg = dict(DEFAULTS)
        cfg.update(path_or_dict)
    elif isinstance(path_or_dict, str):
        p = Path(path_or_dict)
        if not p.exists():
            msg = f"Config file not found: {path_or_dict}"
            raise ConfigError(msg)
        try:
            with p.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            msg = f"Failed to load config file {path_or_dict}: {e}"
            raise ConfigError(msg) from e
        if not isinstance(data, dict):
            msg = f"Config file {path_or_dict} does not contain a mapping"
            raise ConfigError(msg)
        cfg = dict(DEFAULTS)
        cfg.update(data)
    else:
        msg = "Unsupported config input"
        raise ConfigError(msg)

    # convert types and validate semantics
    _convert_types(cfg)
    _validate_cfg(cfg)

    return cfg
