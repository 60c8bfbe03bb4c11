"""
Flavor registry: maps application types and build flavors to BuildFlavor objects.
"""

from typing import Dict, List, Optional
import logging

from ..analyzer.descriptor import normalize_stack, split_type
from .base import BuildFlavor
from .composer import ComposerFlavor
from .drupal import DrupalFlavor
from .nodejs import NodeJsFlavor
from .passthrough import PassThroughFlavor
from .symfony import SymfonyFlavor

logger = logging.getLogger(__name__)


class FlavorRegistry:
    """Dispatch table from keys ("php", "symfony", "nodejs:default", ...) to flavors."""

    def __init__(self, passthrough: Optional[BuildFlavor] = None):
        self._flavors: List[BuildFlavor] = []
        self._by_key: Dict[str, BuildFlavor] = {}
        self.passthrough = passthrough or PassThroughFlavor()
        self.register(self.passthrough)

    def register(self, flavor: BuildFlavor) -> BuildFlavor:
        for key in flavor.get_keys():
            if key in self._by_key:
                raise ValueError(f"Flavor key '{key}' already registered by {self._by_key[key].name}")
        for key in flavor.get_keys():
            self._by_key[key] = flavor
        self._flavors.append(flavor)
        return flavor

    def flavors(self) -> List[BuildFlavor]:
        return list(self._flavors)

    def get(self, key: str) -> Optional[BuildFlavor]:
        return self._by_key.get(key)

    def resolve(self, type_string: Optional[str], flavor: Optional[str] = None) -> BuildFlavor:
        """
        Select the flavor for an application type.

        An explicit flavor wins when it is registered for the type's stack;
        otherwise the stack's default flavor is used, and unknown stacks get
        the pass-through flavor.
        """
        stack, _version = split_type(type_string)
        stack = normalize_stack(stack)

        if flavor and flavor != "default":
            for key in (f"{stack}:{flavor}", flavor):
                candidate = self._by_key.get(key)
                if candidate is not None and candidate.accepts_stack(stack):
                    logger.debug("Resolved %s (flavor %s) to %s", type_string, flavor, candidate.name)
                    return candidate
            logger.warning("Build flavor '%s' is not available for type '%s'; using the default", flavor, type_string)

        default = self._by_key.get(stack) if stack else None
        if default is not None and default.accepts_stack(stack):
            logger.debug("Resolved %s to %s", type_string, default.name)
            return default

        logger.info("Unknown flavor for type '%s' handled as pass-through", type_string)
        return self.passthrough

    def resolve_application(self, app) -> BuildFlavor:
        return self.resolve(app.type, app.flavor)


def default_registry() -> FlavorRegistry:
    """Registry with the standard flavors."""
    registry = FlavorRegistry()
    composer = registry.register(ComposerFlavor())
    registry.register(SymfonyFlavor(parent=composer))
    registry.register(DrupalFlavor(parent=composer))
    registry.register(NodeJsFlavor())
    return registry


def list_available_flavors(registry: FlavorRegistry) -> List[str]:
    return [flavor.name for flavor in registry.flavors()]
