"""
Symfony flavor: Composer plus Symfony scaffolding.
"""

import shutil

from .base import BuildFlavor
from .context import BuildContext

PARAMETERS_DIST = "app/config/parameters.yml.dist"
PARAMETERS = "app/config/parameters.yml"


class SymfonyFlavor(BuildFlavor):

    name = "symfony"
    keys = frozenset({"symfony"})
    stacks = frozenset({"php"})

    def pre_install(self, context: BuildContext) -> None:
        dist = context.build_dir / PARAMETERS_DIST
        target = context.build_dir / PARAMETERS
        if dist.exists() and not target.exists():
            context.say(f"Creating {PARAMETERS} from {PARAMETERS_DIST}")
            shutil.copyfile(dist, target)

    def post_install(self, context: BuildContext) -> None:
        self.copy_gitignore(context, "symfony/gitignore-standard")
