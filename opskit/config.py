"""Configuration for the component finder and the power monitor.

Defaults live here and nowhere else.  A TOML file can override them:
``.components.toml`` in the working directory, or whatever path the
``OPSKIT_CONFIG`` environment variable points at.

Example::

    [components]
    source_paths = ["src", "modules/billing/src"]
    exclude_paths = ["test/", "qa/", "dev/"]
    earliest = "main"

    [monitor]
    interval = 5
    output = "~/power_metrics.csv"
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".components.toml"
CONFIG_ENV_VAR = "OPSKIT_CONFIG"

DEFAULT_LATEST = "HEAD"
DEFAULT_EARLIEST = "master"
DEFAULT_SOURCE_PATHS = ["src"]
DEFAULT_EXCLUDE_PATHS = ["test/", "qa/"]
DEFAULT_TIMEOUT = 300
TIMEOUT_MIN = 10
TIMEOUT_MAX = 600

LANGUAGE_EXTENSIONS: Dict[str, str] = {
    "clojure": ".clj",
    "python": ".py",
}

THERMAL_ZONES = 7


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


@dataclass
class FinderConfig:
    latest: str = DEFAULT_LATEST
    earliest: str = DEFAULT_EARLIEST
    source_paths: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_PATHS))
    exclude_paths: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS))
    language: str = "clojure"
    extension: str = ""
    timeout: int = DEFAULT_TIMEOUT
    repo_root: str = "."

    def __post_init__(self) -> None:
        if self.language not in LANGUAGE_EXTENSIONS:
            raise ConfigError(
                f"Unknown language '{self.language}'. "
                f"Choose one of: {', '.join(sorted(LANGUAGE_EXTENSIONS))}"
            )
        if not self.extension:
            self.extension = LANGUAGE_EXTENSIONS[self.language]

    def is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.exclude_paths)


@dataclass
class MonitorConfig:
    interval: int = 1
    duration: Optional[int] = None
    output: str = "power_metrics.csv"
    proc_root: str = "/proc"
    thermal_paths: List[str] = field(
        default_factory=lambda: [
            f"/sys/class/thermal/thermal_zone{i}/temp" for i in range(THERMAL_ZONES)
        ]
    )


def config_path(explicit: Optional[Path] = None) -> Path:
    """Resolve which config file applies (it may not exist)."""
    if explicit is not None:
        return explicit.expanduser()
    env_value = os.environ.get(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    return Path.cwd() / CONFIG_FILE_NAME


def load_raw_config(path: Path) -> Dict[str, Any]:
    """Read the TOML file at *path*; a missing file means no overrides."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc


_INT_KEYS = {"timeout", "interval", "duration"}
_PATH_LIST_KEYS = {"source_paths", "exclude_paths", "thermal_paths"}


def _check_type(key: str, value: Any, section_name: str) -> None:
    if key in _INT_KEYS:
        ok = isinstance(value, int) and not isinstance(value, bool)
        expected = "an integer"
    elif key in _PATH_LIST_KEYS:
        ok = isinstance(value, list) and all(isinstance(item, str) for item in value)
        expected = "a list of strings"
    else:
        ok = isinstance(value, str)
        expected = "a string"
    if not ok:
        raise ConfigError(f"[{section_name}] {key} must be {expected}, got {value!r}")


def _overrides(section: Dict[str, Any], cls: type, section_name: str) -> Dict[str, Any]:
    known = {f.name for f in fields(cls)}
    result = {}
    for key, value in section.items():
        if key in known:
            _check_type(key, value, section_name)
            result[key] = value
        else:
            logger.warning("Ignoring unknown key '%s' in [%s]", key, section_name)
    return result


def load_finder_config(path: Optional[Path] = None) -> FinderConfig:
    raw = load_raw_config(config_path(path))
    section = raw.get("components", {})
    if not isinstance(section, dict):
        raise ConfigError("[components] must be a table")
    return FinderConfig(**_overrides(section, FinderConfig, "components"))


def load_monitor_config(path: Optional[Path] = None) -> MonitorConfig:
    raw = load_raw_config(config_path(path))
    section = raw.get("monitor", {})
    if not isinstance(section, dict):
        raise ConfigError("[monitor] must be a table")
    return MonitorConfig(**_overrides(section, MonitorConfig, "monitor"))


def with_cli_overrides(
    base: FinderConfig,
    latest: Optional[str] = None,
    earliest: Optional[str] = None,
    extra_excludes: Optional[List[str]] = None,
    source_paths: Optional[List[str]] = None,
    timeout: Optional[int] = None,
) -> FinderConfig:
    """Layer command-line values on top of *base*.

    Excludes accumulate on top of the configured ones; everything else
    replaces the configured value when given.
    """
    excludes = list(base.exclude_paths)
    for prefix in extra_excludes or []:
        if prefix not in excludes:
            excludes.append(prefix)
    return replace(
        base,
        latest=latest or base.latest,
        earliest=earliest or base.earliest,
        exclude_paths=excludes,
        source_paths=list(source_paths) if source_paths else list(base.source_paths),
        timeout=timeout if timeout is not None else base.timeout,
    )
