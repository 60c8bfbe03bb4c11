"""
Node.js flavor: installs dependencies with npm.
"""

from .base import BuildFlavor
from .context import BuildContext


class NodeJsFlavor(BuildFlavor):

    name = "nodejs"
    keys = frozenset({"nodejs", "nodejs:default"})
    stacks = frozenset({"nodejs"})

    def install_dependencies(self, context: BuildContext) -> bool:
        if not (context.build_dir / "package.json").exists():
            context.say("No package.json found; skipping npm")
            return True
        if context.settings.no_deps:
            context.say("Skipping dependency installation")
            return True
        if not self.check_lock_file(context, "package-lock.json"):
            return False
        if (context.build_dir / "package-lock.json").exists():
            args = ["ci"]
        else:
            args = ["install"]
        if context.settings.no_dev:
            args.append("--production")
        return self.run_package_manager(context, "npm", args)

    def post_install(self, context: BuildContext) -> None:
        self.copy_gitignore(context, "gitignore-nodejs")
