"""
Configuration for gedtree.

All tunable parameters in one place. Loaded from:
1. Defaults (this file)
2. Config file (~/.config/gedtree/config.toml) if exists
3. Environment variables (GEDTREE_*) override file
4. CLI flags and explicit arguments override everything
"""

from __future__ import annotations

import contextlib
import logging
import os
import tomllib  # stdlib in 3.11+
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class SourceConfig:
    """How source files are decoded."""
    encoding: str = "utf-8"


@dataclass
class IndexConfig:
    """Storage mode and persisted offset file."""
    default_mode: int = 6  # read + write offset file, retain in core
    suffix: str = ".idx"


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class Config:
    """Root config with all settings."""
    source: SourceConfig = field(default_factory=SourceConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_path() -> Path:
    """Get config file path, respecting XDG."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "gedtree" / "config.toml"
    return Path.home() / ".config" / "gedtree" / "config.toml"


def load_config() -> Config:
    """Load config from file if exists, else return defaults."""
    config = Config()
    path = get_config_path()

    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            config = _apply_toml(config, data)
        except (OSError, tomllib.TOMLDecodeError, ValueError) as exc:
            logger.warning("Ignoring config file %s: %s", path, exc)

    # env var overrides
    config = _apply_env(config)

    return config


def _apply_toml(config: Config, data: dict) -> Config:
    """Apply toml data to config."""
    if "source" in data:
        s = data["source"]
        if "encoding" in s:
            config.source.encoding = str(s["encoding"])

    if "index" in data:
        i = data["index"]
        if "default_mode" in i:
            config.index.default_mode = int(i["default_mode"])
        if "suffix" in i:
            config.index.suffix = str(i["suffix"])

    if "logging" in data:
        lg = data["logging"]
        if "level" in lg:
            config.logging.level = str(lg["level"]).upper()

    return config


def _apply_env(config: Config) -> Config:
    """Apply environment variable overrides."""
    env_map: dict[str, tuple[str, str, type]] = {
        "GEDTREE_ENCODING": ("source", "encoding", str),
        "GEDTREE_DEFAULT_MODE": ("index", "default_mode", int),
        "GEDTREE_INDEX_SUFFIX": ("index", "suffix", str),
        "GEDTREE_LOG_LEVEL": ("logging", "level", str.upper),
    }

    for env_key, (section, attr, conv) in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            with contextlib.suppress(ValueError, AttributeError):
                setattr(getattr(config, section), attr, conv(val))

    return config


# Module-level config instance, loaded once on first use
_config: Config | None = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached config so the next get_config() reloads it."""
    global _config
    _config = None
