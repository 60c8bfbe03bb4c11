"""
Flavor for applications with nothing to build.
"""

from .base import BuildFlavor
from .context import BuildContext


class PassThroughFlavor(BuildFlavor):
    """Builds nothing; static or unrecognized applications are published as they are."""

    name = "none"
    keys = frozenset({"none"})

    def install(self, context: BuildContext) -> bool:
        context.say("No build steps for this application type")
        return True
