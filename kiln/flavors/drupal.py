"""
Drupal flavor: Composer plus local Drupal settings.
"""

import shutil

from .base import RESOURCES_DIR, BuildFlavor
from .context import BuildContext


class DrupalFlavor(BuildFlavor):

    name = "drupal"
    keys = frozenset({"drupal"})
    stacks = frozenset({"php"})

    def post_install(self, context: BuildContext) -> None:
        self.copy_gitignore(context, "drupal/gitignore")
        sites_default = context.build_dir / context.app.document_root / "sites" / "default"
        settings_local = sites_default / "settings.local.php"
        if sites_default.is_dir() and not settings_local.exists():
            context.say("Creating sites/default/settings.local.php")
            shutil.copyfile(RESOURCES_DIR / "drupal" / "settings.local.php", settings_local)
