"""
Exception types raised by the build core.
"""

from typing import Iterable, List, Optional


class KilnError(Exception):
    """Base class for all kiln errors."""


class InvalidConfigError(KilnError):
    pass


class DescriptorParseError(KilnError):
    """An application descriptor could not be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to parse application descriptor {self.path}: {reason}")


class NoApplicationsFoundError(KilnError):
    def __init__(self, root: str):
        self.root = str(root)
        super().__init__(f"No applications found in {self.root}")


class InvalidMountError(KilnError):
    pass


class AmbiguousOrUnknownMountError(KilnError):
    def __init__(self, path: str, known: Optional[Iterable[str]] = None):
        self.path = path
        self.known: List[str] = sorted(known or [])
        message = f"Mount not found: {path}"
        if self.known:
            message += f" (available: {', '.join(self.known)})"
        super().__init__(message)


class BuildError(KilnError):
    """A failure attributable to one application build."""

    def __init__(self, app_id: str, message: str):
        self.app_id = app_id
        self.message = message
        super().__init__(f"[{app_id}] {message}")


class DependencyInstallFailure(BuildError):
    pass


class BuildHookFailure(BuildError):
    pass


class PublishFailure(BuildError):
    pass


class BuildCancelled(KilnError):
    pass


class BuildFailed(KilnError):
    """Raised when a build stops at the first failing application."""

    def __init__(self, results):
        self.results = list(results)
        failed = [r for r in self.results if not r.success]
        self.error: Optional[BuildError] = failed[-1].as_error() if failed else None
        if self.error is None:
            super().__init__("Build stopped")
        else:
            super().__init__(f"Build stopped: {self.error}")
