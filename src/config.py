"""Unified configuration loaded from .worklog.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".worklog.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "worklog" / "config.toml"


class StorageConfig(BaseModel):
    """[storage] section."""

    data_dir: str = "~/.local/share/worklog"

    @property
    def path(self) -> Path:
        return Path(self.data_dir).expanduser()


class SummarizerConfig(BaseModel):
    """[summarizer] section."""

    model: str | None = None
    timeout: int = 120
    max_tokens: int = 2048


class LoggingConfig(BaseModel):
    """[logging] section."""

    level: str = "WARNING"


class WorklogConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path | None = None) -> WorklogConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .worklog.toml in CWD
    3. ~/.config/worklog/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged WorklogConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = WorklogConfig.model_validate(data) if data else WorklogConfig()
    return _apply_env_vars(config)


def merge_cli_overrides(config: WorklogConfig, **cli_kwargs: object) -> WorklogConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "data_dir": ("storage", "data_dir"),
        "model": ("summarizer", "model"),
        "timeout": ("summarizer", "timeout"),
        "log_level": ("logging", "level"),
    }

    for key, value in cli_kwargs.items():
        if value is None or key not in mapping:
            continue
        section, field = mapping[key]
        data[section][field] = str(value) if isinstance(value, Path) else value

    return WorklogConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: WorklogConfig) -> WorklogConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "WORKLOG_DATA_DIR": ("storage", "data_dir"),
        "WORKLOG_MODEL": ("summarizer", "model"),
        "WORKLOG_LOG_LEVEL": ("logging", "level"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    timeout_raw = os.environ.get("WORKLOG_TIMEOUT")
    if timeout_raw is not None:
        try:
            data["summarizer"]["timeout"] = int(timeout_raw)
        except ValueError:
            logger.warning("Ignoring non-integer WORKLOG_TIMEOUT=%r", timeout_raw)

    return WorklogConfig.model_validate(data)
