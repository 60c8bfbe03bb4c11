from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from kiln.exceptions import DescriptorParseError


# Legacy runtime names and the stack that builds them today
STACK_ALIASES: Dict[str, str] = {
    "hhvm": "php",
}


def parse_descriptor(path: str | Path) -> Dict[str, Any]:
    """Read an application descriptor file into a mapping."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DescriptorParseError(str(p), str(e))
    return parse_descriptor_text(text, str(p))


def parse_descriptor_text(text: str, origin: str) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DescriptorParseError(origin, str(e))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DescriptorParseError(origin, f"expected a mapping, got {type(data).__name__}")
    return {str(k): v for k, v in data.items()}


def parse_applications_file(path: str | Path) -> List[Dict[str, Any]]:
    """
    Read a multi-application file.

    Accepts a list of descriptors, or a mapping of name -> descriptor (the
    name fills in a missing 'name' key).
    """
    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise DescriptorParseError(str(p), str(e))
    if data is None:
        return []
    if isinstance(data, dict):
        entries = []
        for name, descriptor in data.items():
            if not isinstance(descriptor, dict):
                raise DescriptorParseError(str(p), f"application '{name}' must be a mapping")
            entries.append({"name": str(name), **descriptor})
        return entries
    if isinstance(data, list):
        for i, descriptor in enumerate(data):
            if not isinstance(descriptor, dict):
                raise DescriptorParseError(str(p), f"entry {i} must be a mapping")
        return list(data)
    raise DescriptorParseError(str(p), "expected a list or mapping of applications")


def split_type(type_string: Optional[str]) -> Tuple[str, Optional[str]]:
    """Split "php:7.0" into ("php", "7.0"); a missing version gives None."""
    if not type_string:
        return "", None
    stack, _, version = str(type_string).strip().partition(":")
    return stack.strip().lower(), (version.strip() or None)


def normalize_stack(stack: str) -> str:
    return STACK_ALIASES.get(stack, stack)
