"""
Local build orchestration: locate applications, build each one in a private
directory, and publish the results into the project's local layout.
"""

import hashlib
import json
import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO, Tuple

from . import fs
from .analyzer import Application, locate
from .config import Config, load_project_config
from .events import EventTypes, emit_event
from .exceptions import (
    BuildCancelled, BuildFailed, InvalidConfigError, KilnError, NoApplicationsFoundError, PublishFailure,
)
from .executor import SubprocessExecutor
from .flavors import BuildContext, BuildResult, BuildSettings, FlavorRegistry, ResultKind, default_registry
from .flavors.dependencies import install_global_dependencies
from .ids import new_run_id
from .layout import (
    get_build_dir, get_deps_dir, get_events_file, get_local_dir, get_published_paths, get_shared_dir, get_web_root,
)

logger = logging.getLogger(__name__)

BUILD_METADATA_FILE = ".kiln-build.json"

# Never copied into a build directory
COPY_IGNORE = {".git", ".hg", ".svn"}


def compute_tree_id(app: Application, settings: BuildSettings, exclude_paths: Iterable[Path] = ()) -> str:
    """
    Hash an application's source files, descriptor and output-relevant settings.

    The ID only depends on content, so unchanged sources give the same ID.
    """
    root = Path(app.root)
    excluded = {fs.unresolved_path(p) for p in exclude_paths}
    digest = hashlib.sha1()
    digest.update(json.dumps(app.config, sort_keys=True, default=str).encode())
    digest.update(json.dumps(settings.fingerprint(), sort_keys=True).encode())
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in COPY_IGNORE and os.path.abspath(current / d) not in excluded
        )
        for filename in sorted(f for f in filenames if os.path.abspath(current / f) not in excluded):
            path = current / filename
            rel = path.relative_to(root).as_posix()
            digest.update(rel.encode() + b"\0")
            if path.is_symlink():
                digest.update(os.readlink(path).encode())
            elif path.is_file():
                with open(path, "rb") as f:
                    for chunk in iter(lambda: f.read(65536), b""):
                        digest.update(chunk)
    return digest.hexdigest()


class LocalBuild:
    """Builds every application in a repository, one at a time, in discovery order."""

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[FlavorRegistry] = None,
        executor=None,
        output: Optional[TextIO] = None,
    ):
        self.config = config or Config()
        self.registry = registry or default_registry()
        self.executor = executor or SubprocessExecutor()
        self.output = output or sys.stderr
        self.results: List[BuildResult] = []
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop the running subprocess and skip the remaining applications."""
        self._cancel.set()

    def build(self, repository_root: str, settings: Any = None, require_applications: bool = True,
              app_ids: Optional[List[str]] = None) -> bool:
        success, _ = self.build_with_results(repository_root, settings, require_applications, app_ids)
        return success

    def build_with_results(
        self,
        repository_root: str,
        settings: Any = None,
        require_applications: bool = True,
        app_ids: Optional[List[str]] = None,
    ) -> Tuple[bool, List[BuildResult]]:
        """
        Build the applications in a repository.

        Args:
            repository_root: Repository root directory
            settings: BuildSettings, or a mapping such as {"no-clean": True}
            require_applications: Raise NoApplicationsFoundError if none are found
            app_ids: Only build these applications

        Returns:
            Tuple of (overall success, one BuildResult per application)
        """
        settings = BuildSettings.from_mapping(settings)
        root = Path(repository_root).resolve()
        run_id = new_run_id()
        events_file = get_events_file(str(root), self.config)
        self.results = []
        self._cancel.clear()

        apps = locate(root, self.config)
        if not apps:
            if require_applications:
                raise NoApplicationsFoundError(str(root))
            return True, []
        multiple = len(apps) > 1

        selected = list(apps.values())
        if app_ids:
            known = {app.id for app in selected}
            unknown = [a for a in app_ids if a not in known]
            if unknown:
                raise InvalidConfigError(f"Application(s) not found: {', '.join(unknown)}")
            selected = [app for app in selected if app.id in app_ids]

        project_config = load_project_config(str(root), self.config)
        emit_event(events_file, run_id, EventTypes.BUILD_START, {"root": str(root), "settings": vars(settings)})
        emit_event(events_file, run_id, EventTypes.APPS_LOCATED, {"apps": [app.id for app in selected]})

        for app in selected:
            if self._cancel.is_set():
                result = BuildResult(app_id=app.id, root=app.root, success=False, kind=ResultKind.CANCELLED,
                                     messages=["Skipped: build cancelled"])
            else:
                result = self._build_app(app, settings, root, multiple, project_config, run_id, events_file)
            self.results.append(result)
            if not result.success and settings.stop_on_failure:
                emit_event(events_file, run_id, EventTypes.BUILD_DONE, {"success": False, "stopped": app.id})
                raise BuildFailed(self.results)

        success = all(r.success for r in self.results)
        emit_event(events_file, run_id, EventTypes.BUILD_DONE, {
            "success": success,
            "apps": {r.app_id: r.kind.value for r in self.results},
        })
        return success, list(self.results)

    def _build_app(self, app: Application, settings: BuildSettings, root: Path, multiple: bool,
                   project_config: Dict[str, Any], run_id: str, events_file: Path) -> BuildResult:
        started = time.monotonic()
        build_dir = get_build_dir(str(root), app.id, self.config)
        context = BuildContext(
            app=app,
            build_dir=build_dir,
            settings=settings,
            executor=self.executor,
            output=self.output,
            cancel_event=self._cancel,
        )
        emit_event(events_file, run_id, EventTypes.APP_START, {"app": app.id, "root": app.root, "type": app.type})

        flavor = None
        web_root = None
        try:
            context.say(f"Building application {app.id} (type: {app.type or 'none'})")
            self._prepare_build_dir(context, root, project_config)
            flavor = self.registry.resolve_application(app)
            emit_event(events_file, run_id, EventTypes.FLAVOR_SELECTED, {"app": app.id, "flavor": flavor.lineage()})
            context.say(f"Using build flavor: {flavor.name}")

            ok = (
                install_global_dependencies(context, get_deps_dir(str(root), app.id, self.config))
                and flavor.install(context)
                and self._run_build_hook(context)
            )
            if ok:
                self._process_shared_file_mounts(context, root, multiple)
                web_root = self._publish(context, root, multiple, project_config)
                if web_root:
                    emit_event(events_file, run_id, EventTypes.APP_PUBLISHED, {"app": app.id, "web_root": web_root})
        except BuildCancelled as e:
            context.fail(ResultKind.CANCELLED, f"Cancelled: {e}")
        except PublishFailure as e:
            context.fail(ResultKind.PUBLISH_FAILURE, e.message)
        except KilnError as e:
            logger.warning("Build of %s failed: %s", app.id, e)
            context.fail(ResultKind.ERROR, str(e))
        except OSError as e:
            logger.exception("Build of %s failed", app.id)
            context.fail(ResultKind.ERROR, f"Build failed: {e}")

        for warning in context.warnings:
            emit_event(events_file, run_id, EventTypes.WARNING, {"app": app.id, "message": warning})

        kind = context.failure or ResultKind.SUCCESS
        result = BuildResult(
            app_id=app.id,
            root=app.root,
            success=kind is ResultKind.SUCCESS,
            kind=kind,
            build_dir=str(build_dir),
            web_root=web_root,
            flavor=flavor.name if flavor else None,
            messages=list(context.messages),
            warnings=list(context.warnings),
            duration=time.monotonic() - started,
        )
        if result.success:
            context.say("Build complete")
            emit_event(events_file, run_id, EventTypes.APP_DONE, {"app": app.id, "web_root": web_root})
        else:
            emit_event(events_file, run_id, EventTypes.APP_FAILED, {
                "app": app.id,
                "kind": kind.value,
                "reason": context.failure_message,
            })
        return result

    def _excluded_paths(self, app: Application, root: Path, project_config: Dict[str, Any]) -> List[Path]:
        local = [
            get_local_dir(str(root), self.config),
            root / self.config.build_dir,
            root / self.config.shared_dir,
            root / self.config.deps_dir,
        ]
        local.extend(get_published_paths(str(root), self.config, project_config))
        return local + [Path(p) for p in app.nested_roots]

    def _prepare_build_dir(self, context: BuildContext, root: Path, project_config: Dict[str, Any]) -> None:
        app = context.app
        build_dir = context.build_dir
        if fs.exists(build_dir) and not context.settings.no_clean:
            logger.debug("Removing previous build %s", build_dir)
            fs.remove(build_dir)
        build_dir.mkdir(parents=True, exist_ok=True)

        excluded = self._excluded_paths(app, root, project_config)
        fs.copy_tree(app.root, build_dir, ignore_names=COPY_IGNORE, exclude_paths=excluded)

        metadata = {
            "app_id": app.id,
            "type": app.type,
            "flavor": app.flavor,
            "tree_id": compute_tree_id(app, context.settings, excluded),
        }
        (build_dir / BUILD_METADATA_FILE).write_text(json.dumps(metadata, indent=2, sort_keys=True) + "\n")

    def _run_build_hook(self, context: BuildContext) -> bool:
        hook = context.app.build_hook
        if not hook:
            return True
        if context.settings.no_build_hooks:
            context.say("Skipping build hook")
            return True
        context.say("Running build hook")
        result = self.executor.run(
            "sh",
            ["-c", hook],
            str(context.build_dir),
            env=context.env,
            timeout=context.settings.timeout,
            cancel_event=context.cancel_event,
        )
        for line in (result.stdout + result.stderr).splitlines():
            self.output.write(f"  {line}\n")
        if not result.ok:
            context.messages.extend(result.tail())
            return context.fail(ResultKind.BUILD_HOOK_FAILURE, f"Build hook failed with exit code {result.exit_code}")
        return True

    def _process_shared_file_mounts(self, context: BuildContext, root: Path, multiple: bool) -> None:
        app = context.app
        shared = app.shared_file_mounts
        if not shared:
            return
        shared_base = get_shared_dir(str(root), app.id, self.config, multiple)
        for mount_path, source_path in shared.items():
            target = shared_base / source_path
            link = context.build_dir / mount_path
            try:
                target.mkdir(parents=True, exist_ok=True)
                if not fs.symlink(target, link, relative=not context.settings.abslinks):
                    fs.remove(link)
                    link.mkdir(parents=True, exist_ok=True)
                    context.warn(f"Symlinks unsupported; created an empty directory for mount {mount_path}")
                    continue
            except OSError as e:
                raise PublishFailure(app.id, f"Could not set up mount {mount_path}: {e}")
            context.say(f"Mount {mount_path} -> {fs.format_path_for_display(target, root)}")

    def _publish(self, context: BuildContext, root: Path, multiple: bool, project_config: Dict[str, Any]) -> Optional[str]:
        app = context.app
        source = context.build_dir / app.document_root
        if not source.is_dir():
            context.warn(f"Document root not found: {app.document_root}; nothing published")
            return None
        target = get_web_root(str(root), app.id, self.config, multiple, project_config)
        try:
            if target.parent.is_symlink():
                fs.remove(target.parent)
            method = fs.publish(source, target, copy=context.settings.copy, relative=not context.settings.abslinks)
        except OSError as e:
            raise PublishFailure(app.id, f"Could not publish web root to {target}: {e}")
        context.say(f"Web root: {fs.format_path_for_display(target, root)} ({method})")
        return str(target)


def build(repository_root: str, settings: Any = None, config: Optional[Config] = None,
          registry: Optional[FlavorRegistry] = None, executor=None) -> Tuple[bool, List[BuildResult]]:
    """Build a repository with a one-off LocalBuild."""
    builder = LocalBuild(config=config, registry=registry, executor=executor)
    return builder.build_with_results(repository_root, settings)
