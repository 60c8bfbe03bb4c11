"""
Configuration for local builds.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .exceptions import InvalidConfigError

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "app_config_file": ".platform.app.yaml",
    "applications_file": ".platform/applications.yaml",
    "local_dir": ".platform/local",
    "build_dir": ".platform/local/builds",
    "shared_dir": ".platform/local/shared",
    "deps_dir": ".platform/local/deps",
    "web_root": "_www",
    "project_config_file": ".platform/local/project.yaml",
    "events_file": ".platform/local/build-events.ndjson",
    "max_search_depth": 5,
}

ENV_PREFIX = "KILN_"


class Config:
    """
    Settings for locating and building applications.

    Values come from DEFAULTS, then from KILN_<KEY> environment variables,
    then from explicit overrides.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None, environ: Optional[Dict[str, str]] = None):
        self._values: Dict[str, Any] = dict(DEFAULTS)
        env = os.environ if environ is None else environ
        for key, default in DEFAULTS.items():
            raw = env.get(ENV_PREFIX + key.upper())
            if raw is None:
                continue
            if isinstance(default, int):
                try:
                    self._values[key] = int(raw)
                except ValueError:
                    raise InvalidConfigError(f"{ENV_PREFIX + key.upper()} must be an integer, got {raw!r}")
            else:
                self._values[key] = raw
        for key, value in (overrides or {}).items():
            self.override(key, value)

    def get(self, key: str) -> Any:
        if key not in self._values:
            raise InvalidConfigError(f"Unknown configuration key: {key}")
        return self._values[key]

    def override(self, key: str, value: Any) -> None:
        if key not in DEFAULTS:
            raise InvalidConfigError(f"Unknown configuration key: {key}")
        self._values[key] = value

    def __getattr__(self, name: str) -> Any:
        values = self.__dict__.get("_values", {})
        if name in values:
            return values[name]
        raise AttributeError(name)


def load_project_config(project_root: str, config: Config) -> Dict[str, Any]:
    """
    Read the per-project local configuration file, if any.

    Args:
        project_root: Project root directory
        config: Active configuration

    Returns:
        The parsed mapping, or an empty dict when the file does not exist
    """
    path = Path(project_root) / config.project_config_file
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Failed to parse project config {path}: {e}")
    if not isinstance(data, dict):
        raise InvalidConfigError(f"Project config {path} must contain a mapping")
    logger.debug("Loaded project config from %s", path)
    return data
