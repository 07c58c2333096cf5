"""
Configuration management for SongVault.

This module loads storage and scanner settings from TOML files. There is no
process-wide configuration object: callers load a `LibraryConfig` once and
hand it to whatever they construct (see `LibraryDb.from_config`).
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent


class ConfigError(ValueError):
    """Raised when a configuration file has values of the wrong type."""


@dataclass(frozen=True, slots=True)
class LibraryConfig:
    """Loaded library configuration."""

    db_path: Path = Path("songvault.db")
    case_sensitive_like: bool = False
    purge_orphan_genres: bool = True
    busy_timeout_ms: int = 5000
    scan_max_concurrency: int = 8
    scan_follow_symlinks: bool = False


def _get(section: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = section.get(key, default)
    # bool is an int subclass; keep the two apart
    if kind is int and isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if not isinstance(value, kind):
        raise ConfigError(f"{key} must be {kind.__name__}, got {value!r}")
    return value


def parse_library_config(data: dict[str, Any]) -> LibraryConfig:
    """Build a LibraryConfig from already-parsed TOML data."""
    defaults = LibraryConfig()
    library = data.get("library", {})
    scanner = data.get("scanner", {})

    return LibraryConfig(
        db_path=Path(_get(library, "db_path", str, str(defaults.db_path))),
        case_sensitive_like=_get(
            library, "case_sensitive_like", bool, defaults.case_sensitive_like
        ),
        purge_orphan_genres=_get(
            library, "purge_orphan_genres", bool, defaults.purge_orphan_genres
        ),
        busy_timeout_ms=_get(library, "busy_timeout_ms", int, defaults.busy_timeout_ms),
        scan_max_concurrency=_get(
            scanner, "max_concurrency", int, defaults.scan_max_concurrency
        ),
        scan_follow_symlinks=_get(
            scanner, "follow_symlinks", bool, defaults.scan_follow_symlinks
        ),
    )


def load_library_config(config_path: Path | None = None) -> LibraryConfig:
    """
    Load library configuration from a TOML file.

    Args:
        config_path: Path to a TOML file. If None, uses the bundled library.toml.

    Returns:
        Loaded LibraryConfig instance.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "library.toml"

    logger.debug("Loading library config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    return parse_library_config(data)
