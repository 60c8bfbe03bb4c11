from __future__ import annotations

from .application import Application
from .descriptor import STACK_ALIASES, normalize_stack, parse_descriptor, split_type
from .locator import find_application, get_application, locate

__all__ = [
    "Application",
    "find_application",
    "STACK_ALIASES",
    "get_application",
    "locate",
    "normalize_stack",
    "parse_descriptor",
    "split_type",
]
