"""
Mount table normalization and lookup.

A mount maps an application-relative path to storage. Definitions arrive
either in the legacy string form ("shared:files/uploads") or as mappings
({"source": "local", "source_path": "uploads"}).
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .exceptions import AmbiguousOrUnknownMountError, InvalidMountError

LEGACY_SHARED_FILES = re.compile(r"^shared:files/(.+)$")

SHARED_SOURCES = {"local", "service"}


@dataclass(frozen=True)
class MountDefinition:
    path: str
    source: str
    source_path: Optional[str] = None
    service: Optional[str] = None

    @property
    def is_shared(self) -> bool:
        if self.source == "local":
            return self.source_path is not None
        if self.source == "service":
            return self.service == "files"
        return False

    def describe(self) -> str:
        if self.source == "local" and self.source_path:
            return f"{self.path}: shared:files/{self.source_path}"
        if self.source == "local":
            return self.path
        if self.service:
            return f"{self.path}: {self.source} ({self.service})"
        return f"{self.path}: {self.source}"


def normalize_path(path: str) -> str:
    return str(path).strip().strip("/")


def _normalize_definition(path: str, definition: Any) -> MountDefinition:
    if isinstance(definition, MountDefinition):
        return MountDefinition(path, definition.source, definition.source_path, definition.service)
    if isinstance(definition, str):
        match = LEGACY_SHARED_FILES.match(definition.strip())
        if not match:
            raise InvalidMountError(f"Invalid mount definition for '{path}': {definition!r}")
        return MountDefinition(path, "local", match.group(1).lstrip("/"))
    if isinstance(definition, Mapping):
        if not definition.get("source"):
            raise InvalidMountError(f"Invalid mount definition for '{path}': missing 'source'")
        source_path = definition.get("source_path")
        if source_path is not None:
            source_path = str(source_path).strip().lstrip("/")
        service = definition.get("service")
        return MountDefinition(path, str(definition["source"]), source_path, str(service) if service else None)
    raise InvalidMountError(f"Invalid mount definition for '{path}': {definition!r}")


def normalize_mounts(mounts: Mapping[str, Any]) -> Dict[str, MountDefinition]:
    """Normalize a raw mount table. Normalizing twice gives the same result."""
    normalized: Dict[str, MountDefinition] = {}
    for path, definition in (mounts or {}).items():
        key = normalize_path(path)
        normalized[key] = _normalize_definition(key, definition)
    return normalized


def match_mount_path(partial: str, mounts: Mapping[str, Any]) -> str:
    """
    Find the mount matching a user-supplied path.

    Raises:
        AmbiguousOrUnknownMountError: If no mount has exactly that path
    """
    table = normalize_mounts(mounts)
    wanted = normalize_path(partial)
    if wanted in table:
        return wanted
    raise AmbiguousOrUnknownMountError(partial, table.keys())


def shared_file_mounts(mounts: Mapping[str, Any]) -> Dict[str, str]:
    """Map each shared-storage mount path to its path inside shared storage."""
    shared: Dict[str, str] = {}
    for path, definition in normalize_mounts(mounts).items():
        if definition.is_shared:
            shared[path] = definition.source_path or "files"
    return shared


def default_local_source(mount_path: str, mounts: Mapping[str, Any], app_root: str, shared_base: str) -> Optional[str]:
    """
    Pick a local directory to sync a mount with.

    The application's own copy of the mount directory is preferred, then the
    local stand-in for its shared storage.
    """
    in_app = Path(app_root) / mount_path
    if in_app.is_dir() and not in_app.is_symlink():
        return str(in_app)
    shared = shared_file_mounts(mounts)
    if mount_path in shared:
        candidate = Path(shared_base) / shared[mount_path]
        if candidate.exists():
            return str(candidate)
    return None


def get_mounts(application) -> Dict[str, MountDefinition]:
    return application.mounts
