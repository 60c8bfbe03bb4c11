"""
Installation of an application's global tool dependencies.

The descriptor's "dependencies" section names packages per stack, e.g.

    dependencies:
        php: {"drush/drush": "8.*"}
        nodejs: {"grunt-cli": "*"}

Each stack's packages are installed into a private prefix, and its bin dir
is put on the PATH of later build steps.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

from .context import BuildContext, ResultKind

logger = logging.getLogger(__name__)


class DependencyManager(ABC):
    stack = ""
    command = ""

    @abstractmethod
    def install_args(self, target: Path, packages: Dict[str, str]) -> List[str]:
        pass

    def bin_dir(self, target: Path) -> Path:
        return target / "bin"


class ComposerDependencies(DependencyManager):
    stack = "php"
    command = "composer"

    def install_args(self, target, packages):
        specs = [name if _any_version(v) else f"{name}:{v}" for name, v in packages.items()]
        return ["require", "--working-dir", str(target), "--no-interaction", "--no-progress", *specs]

    def bin_dir(self, target):
        return target / "vendor" / "bin"


class NpmDependencies(DependencyManager):
    stack = "nodejs"
    command = "npm"

    def install_args(self, target, packages):
        specs = [name if _any_version(v) else f"{name}@{v}" for name, v in packages.items()]
        return ["install", "--global", "--prefix", str(target), *specs]


class PipDependencies(DependencyManager):
    stack = "python"
    command = "pip"

    def install_args(self, target, packages):
        specs = []
        for name, v in packages.items():
            if _any_version(v):
                specs.append(name)
            elif v[0] in "<>=!~":
                specs.append(f"{name}{v}")
            else:
                specs.append(f"{name}=={v}")
        return ["install", "--prefix", str(target), *specs]


class BundlerDependencies(DependencyManager):
    stack = "ruby"
    command = "gem"

    def install_args(self, target, packages):
        specs = [name if _any_version(v) else f"{name}:{v}" for name, v in packages.items()]
        return ["install", "--install-dir", str(target), "--bindir", str(self.bin_dir(target)), *specs]


MANAGERS: Dict[str, DependencyManager] = {
    "php": ComposerDependencies(),
    "nodejs": NpmDependencies(),
    "python": PipDependencies(),
    "python2": PipDependencies(),
    "python3": PipDependencies(),
    "ruby": BundlerDependencies(),
}


def _any_version(version) -> bool:
    return version is None or str(version).strip() in ("", "*")


def install_global_dependencies(context: BuildContext, deps_root: Path) -> bool:
    """
    Install the application's declared global dependencies.

    Returns False (with the context marked failed) when a package manager
    exits non-zero.
    """
    dependencies = context.app.dependencies
    if not dependencies:
        return True
    if context.settings.no_deps:
        context.say("Skipping global dependencies")
        return True

    for stack, packages in dependencies.items():
        manager = MANAGERS.get(stack)
        if manager is None:
            context.warn(f"Unsupported dependency stack '{stack}'; skipping")
            continue
        if not packages:
            continue
        target = deps_root / manager.stack
        target.mkdir(parents=True, exist_ok=True)
        packages = {str(k): ("" if v is None else str(v)) for k, v in packages.items()}
        context.say(f"Installing global {stack} dependencies: {', '.join(packages)}")
        result = context.executor.run(
            manager.command,
            manager.install_args(target, packages),
            str(target),
            env=context.env,
            timeout=context.settings.timeout,
            cancel_event=context.cancel_event,
        )
        if not result.ok:
            context.messages.extend(result.tail())
            return context.fail(
                ResultKind.DEPENDENCY_INSTALL_FAILURE,
                f"Failed to install global {stack} dependencies (exit code {result.exit_code})",
            )
        context.prepend_path(manager.bin_dir(target))
        logger.debug("Installed %s dependencies for %s into %s", stack, context.app.id, target)
    return True
