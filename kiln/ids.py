"""
Build run and application ID utilities.
"""

import random
import re
import string
from datetime import datetime
from typing import Iterable


def new_run_id() -> str:
    """
    Generate a new build run ID in format: b-YYYYMMDD-hhmmss-XXXX

    Returns:
        str: Unique run ID
    """
    now = datetime.now()
    date_str = now.strftime("%Y%m%d")
    time_str = now.strftime("%H%M%S")

    random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))

    return f"b-{date_str}-{time_str}-{random_suffix}"


def slugify_app_id(app_id: str) -> str:
    """
    Make an application ID safe to use as a single directory name.

    Args:
        app_id: Application ID

    Returns:
        str: The ID with runs of unsafe characters replaced by '-'
    """
    slug = re.sub(r"[^a-zA-Z0-9\-_]+", "-", app_id).strip("-")
    return slug or "default"


def unique_id(candidate: str, taken: Iterable[str]) -> str:
    """
    Return candidate, or candidate-2, candidate-3, ... if already taken.

    IDs are compared by slug: "my app" is taken when "my-app" is.
    """
    slugs = {slugify_app_id(t) for t in taken}
    if slugify_app_id(candidate) not in slugs:
        return candidate
    n = 2
    while slugify_app_id(f"{candidate}-{n}") in slugs:
        n += 1
    return f"{candidate}-{n}"
