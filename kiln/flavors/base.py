"""
Base build flavor and the helpers every flavor shares.
"""

import logging
import shutil
from pathlib import Path
from typing import Callable, FrozenSet, List, Optional, Sequence, Set

from ..exceptions import BuildCancelled
from .context import BuildContext, ResultKind

logger = logging.getLogger(__name__)

RESOURCES_DIR = Path(__file__).parent / "resources"


class BuildFlavor:
    """
    One way of building an application.

    install() runs pre_install, then either the parent flavor's install or
    this flavor's own install_dependencies, then post_install. Only the
    dependency step can fail the build; hook failures become warnings.
    """

    name: str = "base"
    keys: FrozenSet[str] = frozenset()
    stacks: FrozenSet[str] = frozenset()  # empty: any stack

    def __init__(self, parent: Optional["BuildFlavor"] = None):
        self.parent = parent

    def __repr__(self) -> str:
        chain = self.name if self.parent is None else f"{self.name} -> {self.parent!r}"
        return f"<{type(self).__name__} {chain}>"

    def get_keys(self) -> Set[str]:
        return set(self.keys)

    def accepts_stack(self, stack: str) -> bool:
        return not self.stacks or stack in self.stacks

    def lineage(self) -> List[str]:
        names = [self.name]
        parent = self.parent
        while parent is not None:
            names.append(parent.name)
            parent = parent.parent
        return names

    def install(self, context: BuildContext) -> bool:
        self._run_hook("pre-install", self.pre_install, context)
        if self.parent is not None:
            ok = self.parent.install(context)
        else:
            ok = self.install_dependencies(context)
        if not ok:
            return False
        self._run_hook("post-install", self.post_install, context)
        return True

    def pre_install(self, context: BuildContext) -> None:
        pass

    def install_dependencies(self, context: BuildContext) -> bool:
        return True

    def post_install(self, context: BuildContext) -> None:
        pass

    def _run_hook(self, label: str, hook: Callable[[BuildContext], None], context: BuildContext) -> None:
        try:
            hook(context)
        except BuildCancelled:
            raise
        except Exception as e:
            logger.warning("%s %s step failed for %s: %s", self.name, label, context.app.id, e)
            context.warn(f"{self.name} {label} step failed: {e}")

    # --- helpers for subclasses ---

    def run_package_manager(self, context: BuildContext, command: str, args: Sequence[str]) -> bool:
        context.say(f"Running {command} {' '.join(args)}")
        result = context.executor.run(
            command,
            list(args),
            str(context.build_dir),
            env=context.env,
            timeout=context.settings.timeout,
            cancel_event=context.cancel_event,
        )
        if not result.ok:
            for line in result.tail():
                context.messages.append(line)
            step = " ".join([command, *args[:1]])
            return context.fail(
                ResultKind.DEPENDENCY_INSTALL_FAILURE,
                f"{step} failed with exit code {result.exit_code}",
            )
        return True

    def check_lock_file(self, context: BuildContext, lock_file: str) -> bool:
        if (context.build_dir / lock_file).exists():
            return True
        if context.settings.lock:
            return context.fail(ResultKind.DEPENDENCY_INSTALL_FAILURE, f"Lock file not found: {lock_file}")
        context.warn(f"No {lock_file} found; dependency versions are not pinned")
        return True

    def copy_gitignore(self, context: BuildContext, template: str) -> None:
        """Seed the build's .gitignore from a template, or merge missing lines into it."""
        source = RESOURCES_DIR / template
        target = context.build_dir / ".gitignore"
        template_lines = source.read_text(encoding="utf-8").splitlines()
        if not target.exists():
            context.say("Creating a .gitignore file")
            shutil.copyfile(source, target)
            return
        existing = target.read_text(encoding="utf-8").splitlines()
        missing = [line for line in template_lines if line.strip() and line not in existing]
        if not missing:
            return
        with open(target, "a", encoding="utf-8") as f:
            if existing and existing[-1].strip():
                f.write("\n")
            f.write("\n".join(missing) + "\n")
        logger.debug("Merged %d line(s) from %s into %s", len(missing), template, target)
