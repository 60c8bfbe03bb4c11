"""
Tests for the local build orchestration.
"""

import json
import os
from pathlib import Path

import pytest
import yaml

from kiln.events import EventTypes, read_events
from kiln.exceptions import (
    BuildCancelled, BuildFailed, BuildHookFailure, InvalidConfigError, NoApplicationsFoundError,
)
from kiln.flavors import ResultKind
from kiln.orchestrator import BUILD_METADATA_FILE, LocalBuild, build


def make_project(root, make_app):
    """Two applications: a Symfony API with a public/ docroot and a Node.js frontend."""
    make_app(root, "api", {
        "name": "api",
        "type": "php:7.0",
        "build": {"flavor": "symfony"},
        "web": {"locations": {"/": {"root": "public"}}},
    }, files={"composer.json": "{}", "composer.lock": "{}", "public/index.php": "<?php echo 'api';\n"})
    make_app(root, "web", {
        "name": "web",
        "type": "nodejs:10",
    }, files={"package.json": "{}", "index.html": "<h1>web</h1>\n"})


@pytest.fixture
def builder(config, fake_executor, output):
    return LocalBuild(config=config, executor=fake_executor, output=output)


def local(root, *parts):
    return root.resolve() / ".platform" / "local" / Path(*parts)


class TestMultiApplication:
    """Projects with several applications."""

    def test_builds_and_publishes_each_app(self, tmp_path, make_app, builder, fake_executor):
        make_project(tmp_path, make_app)
        success, results = builder.build_with_results(str(tmp_path))

        assert success
        assert [r.app_id for r in results] == ["api", "web"]
        assert [r.flavor for r in results] == ["symfony", "nodejs"]
        assert fake_executor.commands() == ["composer", "npm"]
        assert fake_executor.calls[0]["cwd"] == str(local(tmp_path, "builds", "api"))

        api_root = tmp_path / "_www" / "api"
        assert api_root.is_symlink()
        assert api_root.resolve() == local(tmp_path, "builds", "api", "public").resolve()
        assert (api_root / "index.php").exists()
        assert (tmp_path / "_www" / "web" / "index.html").exists()

    def test_sources_are_untouched(self, tmp_path, make_app, builder):
        make_project(tmp_path, make_app)
        builder.build(str(tmp_path))
        assert not (tmp_path / "api" / ".gitignore").exists()
        assert (local(tmp_path, "builds", "api") / ".gitignore").exists()

    def test_symfony_gitignore_merged_over_composer(self, tmp_path, make_app, builder):
        make_project(tmp_path, make_app)
        builder.build(str(tmp_path))
        lines = (local(tmp_path, "builds", "api") / ".gitignore").read_text().splitlines()
        assert "/web/bundles/" in lines
        assert "/app/config/parameters.yml" in lines
        assert lines.count("/vendor/") == 1

    def test_failure_does_not_stop_siblings(self, tmp_path, make_app, make_executor, config, output):
        make_project(tmp_path, make_app)
        executor = make_executor(exit_codes={"composer": 1})
        success, results = LocalBuild(config=config, executor=executor, output=output).build_with_results(str(tmp_path))

        assert not success
        api, web = results
        assert api.kind is ResultKind.DEPENDENCY_INSTALL_FAILURE
        assert api.web_root is None
        assert web.success
        assert not (tmp_path / "_www" / "api").exists()

    def test_stop_on_failure(self, tmp_path, make_app, make_executor, config, output):
        make_project(tmp_path, make_app)
        executor = make_executor(exit_codes={"composer": 1})
        with pytest.raises(BuildFailed) as exc:
            LocalBuild(config=config, executor=executor, output=output).build(str(tmp_path), {"stop-on-failure": True})
        assert [r.app_id for r in exc.value.results] == ["api"]
        assert executor.commands() == ["composer"]

    def test_select_apps(self, tmp_path, make_app, builder, fake_executor):
        make_project(tmp_path, make_app)
        success, results = builder.build_with_results(str(tmp_path), app_ids=["web"])
        assert success
        assert [r.app_id for r in results] == ["web"]
        assert fake_executor.commands() == ["npm"]

    def test_select_unknown_app(self, tmp_path, make_app, builder):
        make_project(tmp_path, make_app)
        with pytest.raises(InvalidConfigError):
            builder.build(str(tmp_path), app_ids=["nope"])

    def test_project_mapping_overrides_web_root(self, tmp_path, make_app, builder):
        make_project(tmp_path, make_app)
        project_config = local(tmp_path, "project.yaml")
        project_config.parent.mkdir(parents=True)
        project_config.write_text("mapping:\n  web: public_html\n")
        _, results = builder.build_with_results(str(tmp_path))
        assert results[1].web_root == str(tmp_path.resolve() / "public_html")
        assert (tmp_path / "public_html" / "index.html").exists()

    def test_events(self, tmp_path, make_app, builder):
        make_project(tmp_path, make_app)
        builder.build(str(tmp_path))
        events = read_events(local(tmp_path, "build-events.ndjson"))
        types = [e["type"] for e in events]
        assert types[0] == EventTypes.BUILD_START
        assert types[-1] == EventTypes.BUILD_DONE
        assert types.count(EventTypes.APP_DONE) == 2
        assert len({e["run_id"] for e in events}) == 1
        assert events[-1]["data"]["apps"] == {"api": "success", "web": "success"}


class TestSingleApplication:
    """Projects with one application at the root."""

    def test_passthrough_publishes_without_subprocesses(self, tmp_path, make_app, builder, fake_executor):
        make_app(tmp_path, "", {"type": "golang:1.11"}, files={"index.html": "hi\n"})
        success, results = builder.build_with_results(str(tmp_path))
        assert success
        assert results[0].flavor == "none"
        assert fake_executor.calls == []
        assert (tmp_path / "_www" / "index.html").read_text() == "hi\n"

    def test_no_applications(self, tmp_path, builder):
        with pytest.raises(NoApplicationsFoundError):
            builder.build(str(tmp_path))
        assert builder.build_with_results(str(tmp_path), require_applications=False) == (True, [])

    def test_rebuild_is_repeatable(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"type": "php:7.0"}, files={"index.php": "<?php\n"})
        builder.build(str(tmp_path))
        build_dir = local(tmp_path, "builds", "default")
        first = json.loads((build_dir / BUILD_METADATA_FILE).read_text())["tree_id"]
        (build_dir / "leftover.txt").write_text("stale")

        assert builder.build(str(tmp_path))
        second = json.loads((build_dir / BUILD_METADATA_FILE).read_text())["tree_id"]
        assert first == second
        assert not (build_dir / "leftover.txt").exists()
        assert not (build_dir / "_www").exists()
        assert not (build_dir / ".platform" / "local").exists()

    def test_tree_id_follows_sources(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"type": "php:7.0"}, files={"index.php": "<?php\n"})
        builder.build(str(tmp_path))
        metadata = local(tmp_path, "builds", "default", BUILD_METADATA_FILE)
        first = json.loads(metadata.read_text())["tree_id"]
        (tmp_path / "index.php").write_text("<?php echo 1;\n")
        builder.build(str(tmp_path))
        assert json.loads(metadata.read_text())["tree_id"] != first

    def test_no_clean_keeps_previous_files(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"type": "php:7.0"})
        builder.build(str(tmp_path))
        leftover = local(tmp_path, "builds", "default", "leftover.txt")
        leftover.write_text("stale")
        assert builder.build(str(tmp_path), {"no-clean": True})
        assert leftover.exists()

    def test_copy_mode(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"type": "php:7.0", "web": {"document_root": "/public"}},
                 files={"public/index.php": "<?php\n"})
        assert builder.build(str(tmp_path), {"copy": True})
        web_root = tmp_path / "_www"
        assert web_root.is_dir() and not web_root.is_symlink()
        assert (web_root / "index.php").exists()

    def test_absolute_links(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"type": "php:7.0"})
        builder.build(str(tmp_path), {"abslinks": True})
        link = tmp_path / "_www"
        assert os.path.isabs(os.readlink(link))

    def test_missing_document_root_is_a_warning(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"type": "php:7.0", "web": {"locations": {"/": {"root": "public"}}}})
        success, results = builder.build_with_results(str(tmp_path))
        assert success
        assert results[0].web_root is None
        assert any("public" in w for w in results[0].warnings)


class TestNestedApplications:
    """Applications inside other applications."""

    def test_nested_app_excluded_from_parent_build(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"name": "main", "type": "php:7.0"}, files={"nest/readme.txt": "x"})
        make_app(tmp_path, "nest/a", {"name": "a", "type": "php:7.0"}, files={"a.php": "<?php\n"})
        success, results = builder.build_with_results(str(tmp_path))
        assert success
        assert [r.app_id for r in results] == ["main", "a"]
        main_build = local(tmp_path, "builds", "main")
        assert (main_build / "nest" / "readme.txt").exists()
        assert not (main_build / "nest" / "a").exists()
        assert (local(tmp_path, "builds", "a") / "a.php").exists()


class TestBuildSteps:
    """Build hooks, mounts and global dependencies."""

    def test_build_hook_runs_in_build_dir(self, tmp_path, make_app, builder, fake_executor):
        make_app(tmp_path, "", {"type": "php:7.0", "hooks": {"build": "make assets"}})
        assert builder.build(str(tmp_path))
        call = fake_executor.calls[-1]
        assert call["command"] == "sh"
        assert call["args"] == ["-c", "make assets"]
        assert call["cwd"] == str(local(tmp_path, "builds", "default"))

    def test_build_hook_failure(self, tmp_path, make_app, make_executor, config, output):
        make_app(tmp_path, "", {"type": "php:7.0", "hooks": {"build": "exit 3"}})
        executor = make_executor(exit_codes={"sh": 3})
        success, results = LocalBuild(config=config, executor=executor, output=output).build_with_results(str(tmp_path))
        assert not success
        assert results[0].kind is ResultKind.BUILD_HOOK_FAILURE
        assert not (tmp_path / "_www").exists()

    def test_no_build_hooks(self, tmp_path, make_app, builder, fake_executor):
        make_app(tmp_path, "", {"type": "php:7.0", "hooks": {"build": "make assets"}})
        assert builder.build(str(tmp_path), {"no-build-hooks": True})
        assert "sh" not in fake_executor.commands()

    def test_shared_mounts_are_linked(self, tmp_path, make_app, builder):
        make_app(tmp_path, "", {"type": "php:7.0", "mounts": {"/tmp": "shared:files/tmp"}}, files={"tmp/old": "x"})
        assert builder.build(str(tmp_path))
        link = local(tmp_path, "builds", "default", "tmp")
        assert link.is_symlink()
        assert link.resolve() == local(tmp_path, "shared", "tmp").resolve()
        assert (tmp_path / "tmp" / "old").exists()

    def test_shared_dirs_per_app_when_several(self, tmp_path, make_app, builder):
        make_project(tmp_path, make_app)
        make_app(tmp_path, "api", {
            "name": "api",
            "type": "php:7.0",
            "mounts": {"/uploads": {"source": "local", "source_path": "uploads"}},
        })
        builder.build(str(tmp_path))
        assert local(tmp_path, "shared", "api", "uploads").is_dir()

    def test_global_dependencies_on_path(self, tmp_path, make_app, builder, fake_executor):
        make_app(tmp_path, "", {
            "type": "nodejs:10",
            "dependencies": {"nodejs": {"grunt-cli": "*"}},
            "hooks": {"build": "grunt"},
        })
        assert builder.build(str(tmp_path))
        assert fake_executor.commands() == ["npm", "sh"]
        bin_dir = local(tmp_path, "deps", "default", "nodejs", "bin")
        assert fake_executor.calls[1]["env"]["PATH"].startswith(str(bin_dir))


class TestCancellation:
    """Cancelling a running build."""

    def test_cancel_skips_remaining_apps(self, tmp_path, make_app, make_executor, config, output):
        make_project(tmp_path, make_app)
        holder = {}

        def cancel_on_composer(call):
            if call["command"] == "composer":
                holder["builder"].cancel()
                raise BuildCancelled("composer install: cancelled")

        executor = make_executor(on_run=cancel_on_composer)
        holder["builder"] = LocalBuild(config=config, executor=executor, output=output)
        success, results = holder["builder"].build_with_results(str(tmp_path))

        assert not success
        assert [r.kind for r in results] == [ResultKind.CANCELLED, ResultKind.CANCELLED]
        assert executor.commands() == ["composer"]


def test_module_level_build(tmp_path, make_app, fake_executor, config):
    make_app(tmp_path, "", {"type": "php:7.0"})
    success, results = build(str(tmp_path), config=config, executor=fake_executor)
    assert success
    assert results[0].app_id == "default"


def test_stop_on_failure_carries_typed_error(tmp_path, make_app, make_executor, config, output):
    make_app(tmp_path, "", {"type": "php:7.0", "hooks": {"build": "exit 3"}})
    executor = make_executor(exit_codes={"sh": 3})
    with pytest.raises(BuildFailed) as exc:
        LocalBuild(config=config, executor=executor, output=output).build(str(tmp_path), {"stop-on-failure": True})
    assert isinstance(exc.value.error, BuildHookFailure)
    assert exc.value.error.app_id == "default"
    assert "exit code 3" in str(exc.value)


class TestPublishedOutput:
    """Published web roots must not feed back into later builds."""

    def write_mapping(self, root, mapping):
        project_config = local(root, "project.yaml")
        project_config.parent.mkdir(parents=True, exist_ok=True)
        project_config.write_text(yaml.safe_dump({"mapping": mapping}))

    @pytest.mark.parametrize("settings", [{}, {"copy": True}])
    def test_mapped_web_root_rebuild(self, tmp_path, make_app, builder, settings):
        make_app(tmp_path, "", {"name": "main", "type": "php:7.0"}, files={"index.php": "<?php\n"})
        self.write_mapping(tmp_path, {"main": "public_html"})

        builder.build(str(tmp_path), settings)
        published = sorted(os.listdir(tmp_path / "public_html"))
        success, results = builder.build_with_results(str(tmp_path), settings)

        assert success
        assert [r.app_id for r in results] == ["main"]
        assert results[0].web_root == str(tmp_path.resolve() / "public_html")
        assert not (local(tmp_path, "builds", "main") / "public_html").exists()
        assert sorted(os.listdir(tmp_path / "public_html")) == published

    def test_similar_names_get_separate_directories(self, tmp_path, make_app, builder):
        make_app(tmp_path, "a", {"name": "my app", "type": "static"}, files={"index.html": "A"})
        make_app(tmp_path, "b", {"name": "my-app", "type": "static"}, files={"index.html": "B"})
        success, results = builder.build_with_results(str(tmp_path))

        assert success
        assert [r.app_id for r in results] == ["my app", "my-app-2"]
        assert len({r.build_dir for r in results}) == 2
        assert len({r.web_root for r in results}) == 2
        assert (tmp_path / "_www" / "my-app" / "index.html").read_text() == "A"
        assert (tmp_path / "_www" / "my-app-2" / "index.html").read_text() == "B"


def test_invalid_mount_fails_only_its_app(tmp_path, make_app, builder):
    make_app(tmp_path, "api", {"name": "api", "type": "static", "mounts": {"/tmp": "bogus"}})
    make_app(tmp_path, "web", {"name": "web", "type": "static"}, files={"index.html": "hi"})
    success, results = builder.build_with_results(str(tmp_path))

    assert not success
    api, web = results
    assert api.kind is ResultKind.ERROR
    assert "bogus" in api.messages[-1]
    assert web.success
    assert builder.results == results
    events = read_events(local(tmp_path, "build-events.ndjson"))
    assert events[-1]["type"] == EventTypes.BUILD_DONE
    assert events[-1]["data"]["apps"] == {"api": "error", "web": "success"}
