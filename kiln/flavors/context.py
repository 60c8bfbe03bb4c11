"""
Per-build state handed to build flavors, and the results they produce.
"""

import os
import sys
import threading
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TextIO

from ..exceptions import BuildError, BuildHookFailure, DependencyInstallFailure, PublishFailure


class ResultKind(Enum):
    """Outcome of one application build."""
    SUCCESS = "success"
    DEPENDENCY_INSTALL_FAILURE = "dependency_install_failure"
    BUILD_HOOK_FAILURE = "build_hook_failure"
    PUBLISH_FAILURE = "publish_failure"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class BuildSettings:
    no_clean: bool = False          # build on top of the previous build dir
    copy: bool = False              # publish by copying instead of symlinking
    abslinks: bool = False          # absolute symlinks
    no_deps: bool = False           # skip dependency installation
    no_dev: bool = False            # skip development dependencies
    lock: bool = False              # missing lock file is fatal
    no_build_hooks: bool = False
    stop_on_failure: bool = False
    timeout: Optional[float] = None  # per subprocess, in seconds

    @classmethod
    def from_mapping(cls, settings: Optional[Mapping[str, Any]] = None) -> "BuildSettings":
        """Build from a mapping keyed like the CLI flags ("no-clean": True)."""
        if isinstance(settings, BuildSettings):
            return settings
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in (settings or {}).items():
            name = str(key).replace("-", "_")
            if name not in known:
                raise ValueError(f"Unknown build setting: {key}")
            values[name] = value
        return cls(**values)

    def fingerprint(self) -> Dict[str, Any]:
        """Settings that change build output, for the tree ID."""
        return {"no_dev": self.no_dev, "no_deps": self.no_deps, "no_build_hooks": self.no_build_hooks}


@dataclass
class BuildContext:
    app: Any
    build_dir: Path
    settings: BuildSettings
    executor: Any
    output: TextIO = field(default_factory=lambda: sys.stderr)
    env: Dict[str, str] = field(default_factory=lambda: dict(os.environ))
    cancel_event: Optional[threading.Event] = None
    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failure: Optional[ResultKind] = None
    failure_message: Optional[str] = None

    def say(self, message: str) -> None:
        """Write a progress line for this application."""
        line = f"[{self.app.id}] {message}"
        self.messages.append(message)
        self.output.write(line + "\n")
        self.output.flush()

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        self.say(f"Warning: {message}")

    def fail(self, kind: ResultKind, message: str) -> bool:
        """Record why this build failed. Always returns False."""
        self.failure = kind
        self.failure_message = f"[{self.app.id}] {message}"
        self.say(message)
        return False

    def prepend_path(self, directory: Path) -> None:
        current = self.env.get("PATH", "")
        self.env["PATH"] = str(directory) + (os.pathsep + current if current else "")


@dataclass(frozen=True)
class BuildResult:
    app_id: str
    root: str
    success: bool
    kind: ResultKind
    build_dir: Optional[str] = None
    web_root: Optional[str] = None
    flavor: Optional[str] = None
    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    duration: float = 0.0

    def as_error(self) -> Optional[BuildError]:
        """The failure as an exception, or None for a successful build."""
        if self.success:
            return None
        error_type = FAILURE_ERRORS.get(self.kind, BuildError)
        return error_type(self.app_id, self.messages[-1] if self.messages else self.kind.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "app_id": self.app_id,
            "root": self.root,
            "success": self.success,
            "kind": self.kind.value,
            "build_dir": self.build_dir,
            "web_root": self.web_root,
            "flavor": self.flavor,
            "messages": list(self.messages),
            "warnings": list(self.warnings),
            "duration": round(self.duration, 3),
        }


FAILURE_ERRORS = {
    ResultKind.DEPENDENCY_INSTALL_FAILURE: DependencyInstallFailure,
    ResultKind.BUILD_HOOK_FAILURE: BuildHookFailure,
    ResultKind.PUBLISH_FAILURE: PublishFailure,
}
