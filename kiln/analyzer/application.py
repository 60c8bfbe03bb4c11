from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kiln.mounts import MountDefinition, normalize_mounts, shared_file_mounts
from .descriptor import normalize_stack, split_type


@dataclass
class Application:
    # Core identity
    root: str
    id: str
    config: Dict[str, Any]
    source_dir: str

    # Where the descriptor came from (None for implicit or listed apps)
    config_file: Optional[str] = None

    # Roots of other applications located inside this one
    nested_roots: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return str(self.config.get("name") or self.id)

    @property
    def type(self) -> Optional[str]:
        value = self.config.get("type")
        return str(value) if value is not None else None

    @property
    def stack(self) -> str:
        return normalize_stack(split_type(self.type)[0])

    @property
    def version(self) -> Optional[str]:
        return split_type(self.type)[1]

    @property
    def flavor(self) -> Optional[str]:
        build = self.config.get("build") or {}
        flavor = build.get("flavor") if isinstance(build, dict) else None
        if not flavor or str(flavor) == "default":
            return None
        return str(flavor)

    @property
    def mounts(self) -> Dict[str, MountDefinition]:
        return normalize_mounts(self.config.get("mounts") or {})

    @property
    def shared_file_mounts(self) -> Dict[str, str]:
        return shared_file_mounts(self.mounts)

    @property
    def document_root(self) -> str:
        """The web document root, relative to the application root ('' = the root itself)."""
        web = self.config.get("web") or {}
        if not isinstance(web, dict):
            return ""
        locations = web.get("locations")
        if isinstance(locations, dict) and locations:
            roots = {
                path: str(location["root"]) for path, location in locations.items()
                if isinstance(location, dict) and location.get("root") is not None
            }
            if roots:
                return roots.get("/", next(iter(roots.values()))).strip("/")
        document_root = web.get("document_root")
        return str(document_root).strip("/") if document_root else ""

    @property
    def build_hook(self) -> Optional[str]:
        hooks = self.config.get("hooks") or {}
        hook = hooks.get("build") if isinstance(hooks, dict) else None
        return str(hook) if hook else None

    @property
    def dependencies(self) -> Dict[str, Dict[str, str]]:
        deps = self.config.get("dependencies") or {}
        if not isinstance(deps, dict):
            return {}
        return {str(stack): dict(pkgs or {}) for stack, pkgs in deps.items() if isinstance(pkgs, dict) or pkgs is None}

    def set_config(self, config: Dict[str, Any]) -> None:
        """Replace the descriptor (used to test flavor detection)."""
        self.config = dict(config)
