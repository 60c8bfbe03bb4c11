from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from kiln.config import Config, load_project_config
from kiln.exceptions import InvalidConfigError
from kiln.ids import unique_id
from kiln.layout import get_published_paths
from .application import Application
from .descriptor import parse_applications_file, parse_descriptor
from .walk import iter_named_files

logger = logging.getLogger(__name__)

ROOT_APP_ID = "default"


def _candidate_id(descriptor: Dict[str, Any], app_root: Path, repository_root: Path) -> str:
    name = descriptor.get("name")
    if name:
        return str(name)
    if app_root == repository_root:
        return ROOT_APP_ID
    return app_root.name


def _find_descriptors(root: Path, config: Config) -> List[Tuple[Path, Dict[str, Any], Optional[str]]]:
    skip = [root / config.local_dir, root / config.build_dir]
    skip.extend(get_published_paths(str(root), config, load_project_config(str(root), config)))
    found: List[Tuple[Path, Dict[str, Any], Optional[str]]] = []
    for descriptor_file in iter_named_files(root, config.app_config_file, config.max_search_depth, skip):
        found.append((descriptor_file.parent.resolve(), parse_descriptor(descriptor_file), str(descriptor_file)))

    apps_file = root / config.applications_file
    if apps_file.is_file():
        for descriptor in parse_applications_file(apps_file):
            source = descriptor.get("source") or {}
            rel = source.get("root") if isinstance(source, dict) else None
            app_root = (root / str(rel).strip("/")).resolve() if rel else root
            if not app_root.is_dir():
                raise InvalidConfigError(f"{apps_file}: application root not found: {rel}")
            found.append((app_root, descriptor, str(apps_file)))
    return found


def locate(repository_root: str | Path, config: Optional[Config] = None, implicit_root: bool = False) -> Dict[str, Application]:
    """
    Find the applications in a repository.

    Returns an ordered mapping of application root -> Application, in
    discovery order (depth-first, lexicographic). A root descriptor and any
    nested descriptors each yield their own application.
    """
    config = config or Config()
    root = Path(repository_root).resolve()

    applications: Dict[str, Application] = {}
    taken: List[str] = []
    for app_root, descriptor, config_file in _find_descriptors(root, config):
        key = str(app_root)
        if key in applications:
            logger.warning("Ignoring second application definition for %s (from %s)", key, config_file)
            continue
        app_id = unique_id(_candidate_id(descriptor, app_root, root), taken)
        taken.append(app_id)
        applications[key] = Application(
            root=key,
            id=app_id,
            config=descriptor,
            source_dir=str(root),
            config_file=config_file,
        )

    if not applications and implicit_root:
        logger.info("No application descriptor found; treating %s as one application", root)
        applications[str(root)] = Application(root=str(root), id=ROOT_APP_ID, config={}, source_dir=str(root))

    for key, app in applications.items():
        app.nested_roots = [
            other for other in applications
            if other != key and Path(other).is_relative_to(Path(key))
        ]

    logger.debug("Located %d application(s) in %s", len(applications), root)
    return applications


def get_application(repository_root: str | Path, app_id: str, config: Optional[Config] = None) -> Application:
    """Find one application by ID or name."""
    return find_application(locate(repository_root, config), app_id)


def find_application(apps: Dict[str, Application], app_id: str) -> Application:
    for app in apps.values():
        if app.id == app_id:
            return app
    for app in apps.values():
        if app.name == app_id:
            return app
    raise InvalidConfigError(f"Application not found: {app_id}")
