from __future__ import annotations

import os
from pathlib import Path
from typing import Generator, Iterable, Optional


IGNORE_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "vendor",
    "bower_components",
    ".venv",
    "venv",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    ".idea",
    ".DS_Store",
}


def iter_named_files(
    root: str | Path,
    filename: str,
    max_depth: int = 5,
    skip_paths: Optional[Iterable[str | Path]] = None,
) -> Generator[Path, None, None]:
    """Yield every file called `filename` below root, depth-first, sorted by path."""
    root_path = Path(root).resolve()
    skipped = {Path(p).resolve() for p in (skip_paths or [])}

    def _walk(directory: Path, depth: int) -> Generator[Path, None, None]:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            if entry.is_file() and entry.name == filename:
                yield Path(entry.path)
        if depth >= max_depth:
            return
        for entry in entries:
            if not entry.is_dir(follow_symlinks=False) or entry.name in IGNORE_DIRS:
                continue
            child = Path(entry.path)
            if child.resolve() in skipped:
                continue
            yield from _walk(child, depth + 1)

    yield from _walk(root_path, 0)
