"""
Generic PHP flavor: installs dependencies with Composer.
"""

from .base import BuildFlavor
from .context import BuildContext

COMPOSER_ARGS = ["install", "--no-progress", "--prefer-dist", "--optimize-autoloader", "--no-interaction"]


class ComposerFlavor(BuildFlavor):

    name = "composer"
    keys = frozenset({"php", "composer", "php:composer"})
    stacks = frozenset({"php"})

    def install_dependencies(self, context: BuildContext) -> bool:
        if not (context.build_dir / "composer.json").exists():
            context.say("No composer.json found; skipping Composer")
            return True
        if context.settings.no_deps:
            context.say("Skipping dependency installation")
            return True
        if not self.check_lock_file(context, "composer.lock"):
            return False
        args = list(COMPOSER_ARGS)
        if context.settings.no_dev:
            args.append("--no-dev")
        return self.run_package_manager(context, "composer", args)

    def post_install(self, context: BuildContext) -> None:
        self.copy_gitignore(context, "gitignore-composer")
