"""
Interpreter dialects.

A dialect knows two things about one interactive interpreter: how to start it
so that it reads commands from stdin and writes everything it produces to a
single UTF-8 stream, and how to wrap a raw command so that its output is
followed by a marker line on that same stream.
"""

import logging
import os
import subprocess
from typing import Dict, List, Optional, Tuple

from shellgate.modules.session.errors import SpawnError

logger = logging.getLogger(__name__)


def split_marker(marker: str) -> Tuple[str, str]:
    """
    Split a marker into two halves.

    Wrapped commands print the halves back to back, so the marker is only
    ever produced by running the command, never by echoing its text.
    """
    middle = len(marker) // 2
    return marker[:middle], marker[middle:]


class ShellDialect:
    """Base class for interpreter dialects."""

    name = ""
    default_executable = ""

    def __init__(self, executable: Optional[str] = None):
        self.executable = executable or self.default_executable

    def argv(self) -> List[str]:
        """Command line used to start the interpreter."""
        return [self.executable]

    def environment(self) -> Dict[str, str]:
        """Environment for the interpreter process."""
        return dict(os.environ)

    def wrap(self, command: str, marker: str) -> str:
        """Wrap a raw command so its output is followed by the marker line."""
        raise NotImplementedError

    def spawn(self) -> subprocess.Popen:
        """
        Start the interpreter with stdin piped and stderr merged into stdout.

        Raises:
            SpawnError: If the process cannot be started or its pipes are missing
        """
        argv = self.argv()
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
                env=self.environment(),
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise SpawnError(f"failed to start {self.name} interpreter {self.executable!r}: {e}") from e

        if process.stdin is None or process.stdout is None:
            process.kill()
            process.wait()
            raise SpawnError(f"failed to attach pipes to {self.name} interpreter")

        logger.debug(f"Spawned {self.name} interpreter pid={process.pid}: {argv}")
        return process


class PowerShellDialect(ShellDialect):
    """Windows PowerShell or PowerShell Core reading commands from stdin."""

    name = "powershell"
    default_executable = "powershell.exe" if os.name == "nt" else "pwsh"

    # Force UTF-8 on every stream before the first command runs
    ENCODING_SETUP = (
        "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "
        "[Console]::InputEncoding = [System.Text.Encoding]::UTF8; "
        "$OutputEncoding = [System.Text.Encoding]::UTF8"
    )

    def argv(self) -> List[str]:
        return [
            self.executable,
            "-NoProfile",
            "-NoLogo",
            "-NoExit",
            "-InputFormat",
            "Text",
            "-OutputFormat",
            "Text",
            "-Command",
            self.ENCODING_SETUP,
        ]

    def wrap(self, command: str, marker: str) -> str:
        # *>&1 folds error, warning, verbose, debug and information streams into output
        head, tail = split_marker(marker)
        return f"& {{ {command} }} *>&1 | Out-String; Write-Host ('{head}' + '{tail}')"


class PosixShellDialect(ShellDialect):
    """A POSIX ``sh`` reading commands from stdin."""

    name = "posix"
    default_executable = "/bin/sh"

    def environment(self) -> Dict[str, str]:
        env = super().environment()
        env["LC_ALL"] = "C.UTF-8"
        env["LANG"] = "C.UTF-8"
        return env

    def wrap(self, command: str, marker: str) -> str:
        # The closing brace sits on its own line so a trailing comment cannot swallow it
        head, tail = split_marker(marker)
        return f"{{ {command}\n}} 2>&1; printf '%s%s\\n' '{head}' '{tail}'"


DIALECTS = {
    PowerShellDialect.name: PowerShellDialect,
    PosixShellDialect.name: PosixShellDialect,
}


def default_dialect_name() -> str:
    """PowerShell on Windows, sh everywhere else."""
    return PowerShellDialect.name if os.name == "nt" else PosixShellDialect.name


def get_dialect(name: str, executable: Optional[str] = None) -> ShellDialect:
    """
    Build a dialect by name.

    Raises:
        ValueError: If the dialect name is unknown
    """
    try:
        dialect_cls = DIALECTS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown shell dialect: {name!r}. Expected one of: {', '.join(sorted(DIALECTS))}"
        ) from None
    return dialect_cls(executable)
