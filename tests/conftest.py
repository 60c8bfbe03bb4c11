import io
from pathlib import Path

import pytest
import yaml

from kiln.config import Config
from kiln.executor import CommandResult


class FakeExecutor:
    """Records commands instead of running them."""

    def __init__(self, exit_codes=None, on_run=None):
        self.calls = []
        self.exit_codes = exit_codes or {}
        self.on_run = on_run

    def run(self, command, args, working_dir, env=None, timeout=None, cancel_event=None):
        call = {"command": command, "args": list(args), "cwd": working_dir, "env": env}
        self.calls.append(call)
        if self.on_run:
            self.on_run(call)
        code = self.exit_codes.get(command, 0)
        return CommandResult(code, "", "" if code == 0 else f"{command} failed")

    def commands(self):
        return [c["command"] for c in self.calls]


def write_app(root: Path, rel: str, descriptor: dict, files: dict = None) -> Path:
    app_root = root / rel if rel else root
    app_root.mkdir(parents=True, exist_ok=True)
    (app_root / ".platform.app.yaml").write_text(yaml.safe_dump(descriptor))
    for name, content in (files or {}).items():
        p = app_root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
    return app_root


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def config():
    return Config(environ={})


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def make_app():
    return write_app


@pytest.fixture
def make_executor():
    return FakeExecutor
