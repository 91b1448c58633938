"""
Shared pytest fixtures for ShellGate tests.

This module provides common fixtures including:
- FakeDialect: A scripted interpreter answering wrapped commands over a real pipe
- Real /bin/sh sessions for end-to-end framing tests
- Static configuration for FastAPI test clients
"""

import itertools
import os
import queue
import shutil
import sys
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shellgate.config.provider import APIConfig, ShellConfig
from shellgate.modules.session import ShellSession
from shellgate.modules.shell import PosixShellDialect, ShellDialect


# =============================================================================
# Scripted Interpreter
# =============================================================================

# A script returning EXIT makes the fake interpreter close its output stream
EXIT = object()

SEPARATOR = "\x1f"


def default_script(command: str):
    """
    Tiny command language understood by the fake interpreter.

    - ``echo TEXT``  -> TEXT followed by LF
    - ``big N``      -> N bytes of ``x`` followed by LF
    - ``yes``        -> ``y`` lines forever, the command never finishes
    - ``exit``       -> interpreter exits
    - anything else  -> no output

    A script may return an iterable of chunks instead of bytes to stream.
    """
    if command.startswith("echo "):
        return command[len("echo "):].encode("utf-8") + b"\n"
    if command.startswith("big "):
        return b"x" * int(command[len("big "):]) + b"\n"
    if command == "yes":
        return itertools.repeat(b"y\n" * 512)
    if command == "exit":
        return EXIT
    return b""


class FakeStdin:
    """Input end of the fake interpreter: parses wrapped commands and queues answers."""

    def __init__(self, process: "FakeProcess"):
        self.process = process
        self.closed = False
        self.broken = False

    def write(self, data: bytes) -> int:
        if self.broken or self.closed or self.process.killed:
            raise BrokenPipeError(32, "Broken pipe")
        line = data.decode("utf-8").rstrip("\n")
        command, marker = line.split(SEPARATOR)
        self.process.commands.put((command, marker))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class FakeStdout:
    """Output end of the fake interpreter: a real pipe, optionally failing."""

    def __init__(self, raw):
        self.raw = raw
        self.fail = False

    def read(self, size: int) -> bytes:
        if self.fail:
            raise OSError(5, "Input/output error")
        return self.raw.read(size)

    def close(self) -> None:
        self.raw.close()


class FakeProcess:
    """
    Popen-like interpreter driven by a script function.

    A writer thread runs the script for each command in order and writes the
    answer followed by the marker line into a real OS pipe, so reads block and
    return partial data exactly like a child process pipe.
    """

    def __init__(self, script: Callable):
        self.script = script
        self.pid = 4242
        self.returncode = None
        self.killed = False
        self.commands = queue.Queue()
        # Guards the write fd; never held across a blocking write
        self._fd_lock = threading.Lock()
        self._writing = False

        read_fd, self._write_fd = os.pipe()
        self.stdin = FakeStdin(self)
        self.stdout = FakeStdout(os.fdopen(read_fd, "rb", buffering=0))

        self._writer = threading.Thread(target=self._run, daemon=True)
        self._writer.start()

    def _run(self) -> None:
        while True:
            command, marker = self.commands.get()
            answer = self.script(command)
            if answer is EXIT:
                with self._fd_lock:
                    self._close_fd()
                self.returncode = 0
                return
            chunks = [answer] if isinstance(answer, bytes) else answer
            for chunk in chunks:
                if not self._emit(chunk):
                    return
            if not self._emit(marker.encode("ascii") + b"\n"):
                return

    def _emit(self, data: bytes) -> bool:
        view = memoryview(data)
        while view:
            with self._fd_lock:
                if self._write_fd is None:
                    return False
                fd = self._write_fd
                self._writing = True
            try:
                written = os.write(fd, view)
            except OSError:
                written = 0
            finally:
                with self._fd_lock:
                    self._writing = False
                    # kill() leaves a busy fd to the writer
                    if self.killed:
                        self._close_fd()
            if not written:
                return False
            view = view[written:]
        return True

    def _close_fd(self) -> None:
        if self._write_fd is not None:
            fd, self._write_fd = self._write_fd, None
            os.close(fd)

    def kill(self) -> None:
        with self._fd_lock:
            self.killed = True
            # A writer blocked inside the script must not keep the pipe open
            if not self._writing:
                self._close_fd()
        if self.returncode is None:
            self.returncode = -9

    def wait(self, timeout: Optional[float] = None) -> int:
        return self.returncode

    def poll(self) -> Optional[int]:
        return self.returncode


class FakeDialect(ShellDialect):
    """Dialect spawning FakeProcess interpreters; records every marker it wraps."""

    name = "fake"
    default_executable = "fake-shell"

    def __init__(self, script: Callable = default_script):
        super().__init__()
        self.script = script
        self.markers: List[str] = []
        self.processes: List[FakeProcess] = []

    def spawn(self) -> FakeProcess:
        process = FakeProcess(self.script)
        self.processes.append(process)
        return process

    def wrap(self, command: str, marker: str) -> str:
        self.markers.append(marker)
        return f"{command}{SEPARATOR}{marker}"


class RecordingPosixDialect(PosixShellDialect):
    """Real /bin/sh dialect that remembers the markers it used."""

    def __init__(self, executable: Optional[str] = None):
        super().__init__(executable)
        self.markers: List[str] = []

    def wrap(self, command: str, marker: str) -> str:
        self.markers.append(marker)
        return super().wrap(command, marker)


@pytest.fixture
def fake_dialect():
    """Fake interpreter dialect with the default script."""
    return FakeDialect()


@pytest.fixture
def fake_session(fake_dialect):
    """Running session on the fake interpreter."""
    session = ShellSession.create(fake_dialect)
    yield session
    session.terminate()


# =============================================================================
# Real Shell Sessions
# =============================================================================

SH_PATH = shutil.which("sh") or "/bin/sh"

requires_sh = pytest.mark.skipif(
    os.name == "nt" or not os.path.exists(SH_PATH),
    reason="requires a POSIX sh",
)


@pytest.fixture
def sh_dialect():
    return RecordingPosixDialect(SH_PATH)


@pytest.fixture
def sh_session(sh_dialect):
    """Running session on a real /bin/sh."""
    session = ShellSession.create(sh_dialect)
    yield session
    session.terminate()


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class StaticConfigProvider:
    """Config provider returning fixed values, for FastAPI test apps."""

    api_config: APIConfig
    shell_config: ShellConfig

    def get_api_config(self) -> APIConfig:
        return self.api_config

    def get_shell_config(self) -> ShellConfig:
        return self.shell_config


def make_config_provider(**shell_overrides) -> StaticConfigProvider:
    shell_values = {
        "dialect": "posix",
        "executable": SH_PATH,
        "output_limit": 1024 * 1024,
        "read_chunk_size": 4096,
        "shutdown_grace_seconds": 1.0,
    }
    shell_values.update(shell_overrides)
    return StaticConfigProvider(
        api_config=APIConfig(
            host="127.0.0.1",
            port=8833,
            log_level="INFO",
            debug=False,
            worker_threads=100,
        ),
        shell_config=ShellConfig(**shell_values),
    )


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
