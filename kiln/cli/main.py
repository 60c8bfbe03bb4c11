"""Main CLI entrypoint for Kiln."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from ..analyzer import find_application, locate
from ..config import Config
from ..exceptions import BuildFailed, KilnError
from ..events import get_last_event, read_events
from ..fs import format_path_for_display
from ..layout import get_events_file, get_shared_dir
from ..mounts import default_local_source, match_mount_path, shared_file_mounts
from ..orchestrator import LocalBuild


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.pass_context
def main(ctx, verbose):
    """Kiln - build multi-application repositories locally."""
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj['config'] = Config()


def _json_output(data: Any) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=None))


def _fail(message: str, output_json: bool, code: int = 1) -> None:
    if output_json:
        _json_output({'error': message})
    else:
        click.echo(f"❌ {message}", err=True)
    sys.exit(code)


@main.command()
@click.argument('root', default='.', type=click.Path(exists=True, file_okay=False))
@click.option('--app', 'app_ids', multiple=True, help='Only build this application (repeatable)')
@click.option('--no-clean', is_flag=True, help='Build on top of the previous build directory')
@click.option('--copy', is_flag=True, help='Copy the web root instead of symlinking it')
@click.option('--abslinks', is_flag=True, help='Use absolute symlinks')
@click.option('--no-deps', is_flag=True, help='Skip dependency installation')
@click.option('--no-dev', is_flag=True, help='Skip development dependencies')
@click.option('--lock', is_flag=True, help='Fail when a dependency lock file is missing')
@click.option('--no-build-hooks', is_flag=True, help='Do not run build hooks')
@click.option('--stop-on-failure', is_flag=True, help='Stop at the first failing application')
@click.option('--timeout', type=float, help='Kill any build subprocess running longer than this (seconds)')
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.pass_context
def build(ctx, root, app_ids, no_clean, copy, abslinks, no_deps, no_dev, lock, no_build_hooks,
          stop_on_failure, timeout, output_json):
    """Build the applications in ROOT and publish their web roots."""
    settings: Dict[str, Any] = {
        'no-clean': no_clean,
        'copy': copy,
        'abslinks': abslinks,
        'no-deps': no_deps,
        'no-dev': no_dev,
        'lock': lock,
        'no-build-hooks': no_build_hooks,
        'stop-on-failure': stop_on_failure,
        'timeout': timeout,
    }
    builder = LocalBuild(config=ctx.obj['config'])
    try:
        success, results = builder.build_with_results(root, settings, app_ids=list(app_ids) or None)
    except BuildFailed as e:
        success, results = False, e.results
    except KeyboardInterrupt:
        builder.cancel()
        _fail("Build interrupted", output_json, code=130)
        return
    except KilnError as e:
        _fail(str(e), output_json)
        return

    if output_json:
        _json_output({'success': success, 'results': [r.to_dict() for r in results]})
    else:
        click.echo("")
        for r in results:
            mark = "✅" if r.success else "❌"
            line = f"{mark} {r.app_id}: {r.kind.value}"
            if r.web_root:
                line += f" -> {format_path_for_display(r.web_root)}"
            click.echo(line)
            if not r.success and r.messages:
                click.echo(f"   {r.messages[-1]}")
    sys.exit(0 if success else 1)


@main.command()
@click.argument('root', default='.', type=click.Path(exists=True, file_okay=False))
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.pass_context
def apps(ctx, root, output_json):
    """List the applications found in ROOT."""
    try:
        applications = locate(root, ctx.obj['config'])
    except KilnError as e:
        _fail(str(e), output_json)
        return

    if output_json:
        _json_output([
            {'id': app.id, 'name': app.name, 'type': app.type, 'root': path, 'flavor': app.flavor}
            for path, app in applications.items()
        ])
        return
    if not applications:
        click.echo("No applications found.")
        return
    for path, app in applications.items():
        click.echo(f"{app.id}\t{app.type or '-'}\t{format_path_for_display(path)}")


@main.command()
@click.argument('root', default='.', type=click.Path(exists=True, file_okay=False))
@click.option('--app', 'app_id', required=True, help='Application ID or name')
@click.option('--match', 'partial', help='Resolve this mount path')
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.pass_context
def mounts(ctx, root, app_id, partial, output_json):
    """List an application's mounts, or resolve one with --match."""
    config = ctx.obj['config']
    try:
        applications = locate(root, config)
        app = find_application(applications, app_id)
        table = app.mounts
        if partial:
            path = match_mount_path(partial, table)
            shared_base = get_shared_dir(str(Path(root).resolve()), app.id, config, len(applications) > 1)
            source = default_local_source(path, table, app.root, str(shared_base))
            if output_json:
                _json_output({'mount': path, 'local_source': source})
            else:
                click.echo(path)
                if source:
                    click.echo(f"Local source: {format_path_for_display(source)}")
            return
    except KilnError as e:
        _fail(str(e), output_json)
        return

    shared = shared_file_mounts(table)
    if output_json:
        _json_output({
            path: {'source': d.source, 'source_path': d.source_path, 'shared': path in shared}
            for path, d in table.items()
        })
        return
    if not table:
        click.echo(f"The application {app.id} doesn't define any mounts.")
        return
    for definition in table.values():
        click.echo(definition.describe())


@main.command()
@click.argument('root', default='.', type=click.Path(exists=True, file_okay=False))
@click.option('--run', 'run_id', help='Only show events of this build run')
@click.option('--last', is_flag=True, help='Only show the most recent event')
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.pass_context
def events(ctx, root, run_id, last, output_json):
    """Show the build event log of ROOT."""
    log_file = get_events_file(str(Path(root).resolve()), ctx.obj['config'])
    if last:
        event = get_last_event(log_file, run_id)
        selected = [event] if event else []
    else:
        selected = read_events(log_file, run_id)

    if output_json:
        _json_output(selected)
        return
    if not selected:
        click.echo("No build events recorded.")
        return
    for event in selected:
        data = event.get('data') or {}
        app = f" [{data['app']}]" if 'app' in data else ""
        click.echo(f"{event.get('ts', '')} {event.get('run_id', '')} {event.get('type', '')}{app}")


@main.command(name='dir')
@click.argument('subdir', required=False)
@click.option('--root', default='.', type=click.Path(exists=True, file_okay=False), help='Project root')
@click.pass_context
def dir_cmd(ctx, subdir: Optional[str], root):
    """Print the project root, or one of its local subdirectories."""
    config = ctx.obj['config']
    subdirs = {
        'builds': config.build_dir,
        'local': config.local_dir,
        'shared': config.shared_dir,
        'web': config.web_root,
        'web_root': config.web_root,
    }
    path = Path(root).resolve()
    if subdir:
        if subdir not in subdirs:
            click.echo(f"Unknown subdirectory: {subdir}", err=True)
            sys.exit(1)
        path = path / subdirs[subdir]
    if not path.is_dir():
        click.echo(f"Directory not found: {path}", err=True)
        sys.exit(1)
    click.echo(str(path))


if __name__ == '__main__':
    main()
