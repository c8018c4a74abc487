"""Configuration loaded from ``gridfn.yaml``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from gridfn.errors import ConfigError

CONFIG_FILENAME = "gridfn.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "mode": "dev",
    "on_duplicate_function": "error",
    "disabled_categories": [],
    "implementation_error_message": None,  # default: pipeline.IMPLEMENTATION_ERROR_MESSAGE
    "log_dir": None,  # structured events are discarded when unset
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

_MODES = ("dev", "prod")
_DUPLICATE_POLICIES = ("error", "replace")


def _flatten_logging_block(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten a nested ``logging:`` block into flat config keys.

    Supports::

        logging:
          dir: .gridfn/logs
          fsync: true
          tail_bytes: 1048576

    Maps to ``log_dir``, ``logging_fsync``, ``logging_tail_bytes``.
    """
    block = user_config.pop("logging", None)
    if not isinstance(block, dict):
        return user_config

    mapping = {
        "dir": "log_dir",
        "fsync": "logging_fsync",
        "tail_bytes": "logging_tail_bytes",
    }
    for short_key, flat_key in mapping.items():
        if short_key in block:
            user_config[flat_key] = block[short_key]
    return user_config


def load_config(config_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from ``gridfn.yaml``, with defaults.

    Args:
        config_dir: Directory holding ``gridfn.yaml``.  ``None`` returns the
            defaults.

    Returns:
        Merged, validated configuration dict.  A relative ``log_dir`` is
        resolved against *config_dir*.

    Raises:
        ConfigError: If the file is not a mapping or a value is invalid.
    """
    config = dict(DEFAULT_CONFIG)
    if config_dir is not None:
        config_path = Path(config_dir) / CONFIG_FILENAME
        if config_path.exists():
            user_config = yaml.safe_load(config_path.read_text()) or {}
            if not isinstance(user_config, dict):
                raise ConfigError(f"{config_path} must contain a mapping")
            config.update(_flatten_logging_block(user_config))
            if config.get("log_dir") is not None:
                log_dir = Path(config["log_dir"])
                if not log_dir.is_absolute():
                    log_dir = Path(config_dir) / log_dir
                config["log_dir"] = str(log_dir)
    return validate_config(config)


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Normalize and check a merged config dict."""
    mode = str(config.get("mode", "dev")).lower()
    if mode not in _MODES:
        raise ConfigError(f"Invalid mode {config.get('mode')!r}; expected one of {_MODES}")
    config["mode"] = mode

    policy = str(config.get("on_duplicate_function", "error")).lower()
    if policy not in _DUPLICATE_POLICIES:
        raise ConfigError(
            f"Invalid on_duplicate_function {config.get('on_duplicate_function')!r}; "
            f"expected one of {_DUPLICATE_POLICIES}"
        )
    # Name collisions between function modules must surface during development
    if mode == "dev":
        policy = "error"
    config["on_duplicate_function"] = policy

    disabled = config.get("disabled_categories") or []
    if isinstance(disabled, str):
        disabled = [disabled]
    if not isinstance(disabled, list):
        raise ConfigError("disabled_categories must be a list of category names")
    config["disabled_categories"] = [str(c) for c in disabled]

    try:
        config["logging_tail_bytes"] = int(config["logging_tail_bytes"])
    except (TypeError, ValueError):
        raise ConfigError(
            f"logging_tail_bytes must be an integer, got {config['logging_tail_bytes']!r}"
        )
    config["logging_fsync"] = bool(config.get("logging_fsync", False))
    return config


def configure_logging(config: dict[str, Any]) -> None:
    """Point the structured event sink at ``config["log_dir"]`` (or disable it)."""
    from gridfn.logging import set_log_dir

    set_log_dir(
        config.get("log_dir"),
        fsync=config.get("logging_fsync", False),
        tail_bytes=config.get("logging_tail_bytes"),
    )
