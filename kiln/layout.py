"""
Paths of the local build layout inside a project.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config
from .ids import slugify_app_id


def get_local_dir(project_root: str, config: Config) -> Path:
    return Path(project_root) / config.local_dir


def get_build_dir(project_root: str, app_id: str, config: Config) -> Path:
    """
    Get the private build directory for an application.

    Args:
        project_root: Project root directory
        app_id: Application ID
        config: Active configuration

    Returns:
        Path: Build directory (not created)
    """
    return Path(project_root) / config.build_dir / slugify_app_id(app_id)


def get_deps_dir(project_root: str, app_id: str, config: Config) -> Path:
    return Path(project_root) / config.deps_dir / slugify_app_id(app_id)


def get_shared_dir(project_root: str, app_id: str, config: Config, multiple: bool = False) -> Path:
    """
    Get the local stand-in for an application's shared persistent storage.

    A single application uses the shared dir itself; with several
    applications each gets its own subdirectory.
    """
    base = Path(project_root) / config.shared_dir
    return base / slugify_app_id(app_id) if multiple else base


def get_web_root(
    project_root: str,
    app_id: str,
    config: Config,
    multiple: bool = False,
    project_config: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Get the location an application's document root is published at.

    Args:
        project_root: Project root directory
        app_id: Application ID
        config: Active configuration
        multiple: Whether the project has more than one application
        project_config: Project local config; its 'mapping' overrides the default

    Returns:
        Path: Publish location
    """
    mapping = (project_config or {}).get("mapping") or {}
    if isinstance(mapping, dict) and mapping.get(app_id):
        return Path(project_root) / str(mapping[app_id]).strip("/")
    base = Path(project_root) / config.web_root
    return base / slugify_app_id(app_id) if multiple else base


def get_events_file(project_root: str, config: Config) -> Path:
    return Path(project_root) / config.events_file


def get_published_paths(project_root: str, config: Config, project_config: Optional[Dict[str, Any]] = None) -> List[Path]:
    """
    Every location web roots may be published at: the web root dir and each
    'mapping' target of the project local config.
    """
    paths = [Path(project_root) / config.web_root]
    mapping = (project_config or {}).get("mapping") or {}
    if isinstance(mapping, dict):
        paths.extend(Path(project_root) / str(target).strip("/") for target in mapping.values() if target)
    return paths
