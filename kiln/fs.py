"""
Filesystem helpers for staging builds.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def unresolved_path(path: PathLike) -> str:
    """Absolute path with its parent resolved but the last component left as is (it may be a symlink)."""
    head, tail = os.path.split(os.path.abspath(path))
    return os.path.join(os.path.realpath(head), tail)


def exists(path: PathLike) -> bool:
    """True for existing paths and for dangling symlinks."""
    p = Path(path)
    return p.exists() or p.is_symlink()


def remove(path: PathLike) -> None:
    """Remove a file, symlink or directory tree, if present."""
    p = Path(path)
    if p.is_symlink() or p.is_file():
        p.unlink()
    elif p.is_dir():
        shutil.rmtree(p)


def copy_tree(
    source: PathLike,
    destination: PathLike,
    ignore_names: Iterable[str] = (),
    exclude_paths: Iterable[PathLike] = (),
) -> None:
    """
    Copy a directory tree, merging into an existing destination.

    Symlinks are copied as symlinks. Directory entries named in ignore_names
    and the absolute paths in exclude_paths are skipped.
    """
    src = Path(source).resolve()
    names = set(ignore_names)
    excluded = {unresolved_path(p) for p in exclude_paths}

    def _ignore(directory: str, entries: list) -> set:
        skipped = set()
        for entry in entries:
            if entry in names:
                skipped.add(entry)
            elif os.path.abspath(os.path.join(directory, entry)) in excluded:
                skipped.add(entry)
        return skipped

    shutil.copytree(src, destination, symlinks=True, ignore=_ignore, dirs_exist_ok=True)


def symlink(target: PathLike, link: PathLike, relative: bool = True) -> bool:
    """
    Create link pointing at target, replacing whatever is at link.

    Returns:
        False when the platform does not support symlinks, so the caller can
        fall back to copying. Other OS errors propagate.
    """
    link_path = Path(link)
    link_path.parent.mkdir(parents=True, exist_ok=True)
    remove(link_path)
    pointer = os.path.relpath(Path(target), link_path.parent) if relative else str(Path(target).resolve())
    try:
        os.symlink(pointer, link_path, target_is_directory=Path(target).is_dir())
    except NotImplementedError:
        return False
    except OSError as e:
        # Windows without the symlink privilege
        if getattr(e, "winerror", None) == 1314:
            return False
        raise
    return True


def publish(source: PathLike, target: PathLike, copy: bool = False, relative: bool = True) -> str:
    """
    Make source available at target, by symlink or by copy.

    Returns:
        "symlink" or "copy", whichever was used
    """
    if not copy and symlink(source, target, relative=relative):
        return "symlink"
    remove(target)
    Path(target).parent.mkdir(parents=True, exist_ok=True)
    if Path(source).is_dir():
        # relative links inside the build would break at the new location
        shutil.copytree(source, target, symlinks=False, ignore_dangling_symlinks=True)
    else:
        shutil.copy2(source, target)
    return "copy"


def format_path_for_display(path: PathLike, base: Optional[PathLike] = None) -> str:
    """Show path relative to base (default: cwd) when it is inside it."""
    p = Path(path).absolute()
    root = Path(base or os.getcwd()).absolute()
    try:
        return str(p.relative_to(root)) or "."
    except ValueError:
        return str(p)
