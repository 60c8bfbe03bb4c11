"""
Build flavors for the application stacks kiln knows how to build.
"""

from .base import BuildFlavor
from .context import BuildContext, BuildResult, BuildSettings, ResultKind
from .registry import FlavorRegistry, default_registry

__all__ = [
    "BuildFlavor",
    "BuildContext",
    "BuildResult",
    "BuildSettings",
    "FlavorRegistry",
    "ResultKind",
    "default_registry",
]
