"""
Subprocess execution for package managers and build hooks.
"""

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .exceptions import BuildCancelled

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def tail(self, lines: int = 20) -> List[str]:
        """Last lines of combined output, for diagnostics."""
        combined = [line for line in (self.stdout + "\n" + self.stderr).splitlines() if line.strip()]
        return combined[-lines:]


class SubprocessExecutor:
    """Runs external commands, blocking until they exit."""

    def run(
        self,
        command: str,
        args: Sequence[str],
        working_dir: str,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            command: Executable name or path
            args: Arguments
            working_dir: Directory to run in
            env: Environment; defaults to the current process environment
            timeout: Seconds before the process is killed
            cancel_event: When set, the process is killed

        Returns:
            CommandResult; exit code 127 when the executable is missing

        Raises:
            BuildCancelled: If the timeout expired or cancel_event was set
        """
        cmd = [command, *args]
        logger.debug("RUN: %s (cwd=%s)", " ".join(cmd), working_dir)
        try:
            process = subprocess.Popen(
                cmd,
                cwd=working_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env if env is not None else dict(os.environ),
                text=True,
            )
        except FileNotFoundError:
            return CommandResult(127, "", f"{command}: command not found")

        deadline = time.monotonic() + timeout if timeout else None
        while True:
            try:
                out, err = process.communicate(timeout=POLL_INTERVAL)
                return CommandResult(process.returncode, out or "", err or "")
            except subprocess.TimeoutExpired:
                reason = None
                if cancel_event is not None and cancel_event.is_set():
                    reason = "cancelled"
                elif deadline is not None and time.monotonic() >= deadline:
                    reason = f"timed out after {timeout}s"
                if reason:
                    process.kill()
                    process.communicate()
                    raise BuildCancelled(f"{' '.join(cmd)}: {reason}")
