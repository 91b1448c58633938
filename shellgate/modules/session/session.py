import logging
import subprocess
import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional, Tuple

from .errors import NotRunningError, ReadError, WriteError

if TYPE_CHECKING:
    from shellgate.modules.shell import ShellDialect

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_LIMIT = 1024 * 1024
DEFAULT_READ_CHUNK_SIZE = 4096


@dataclass
class CommandOutput:
    """Output of one command."""

    text: str
    truncated: bool = False
    exited: bool = False


def strip_line_terminator(data: bytes) -> bytes:
    """Strip exactly one trailing CRLF, LF or CR."""
    if data.endswith(b"\r\n"):
        return data[:-2]
    if data.endswith((b"\n", b"\r")):
        return data[:-1]
    return data


def decode_output(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class ShellSession:
    """
    One live interactive interpreter.

    Commands are framed by writing a fresh marker line to the output stream
    after each command and reading until it shows up. Only one command runs
    at a time; concurrent callers queue on the command lock.
    """

    def __init__(
        self,
        session_id: str,
        process: subprocess.Popen,
        dialect: "ShellDialect",
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ):
        """
        Initialize a session around an already started interpreter.

        Args:
            session_id: Opaque session identifier
            process: Interpreter process with stdin and stdout pipes
            dialect: Dialect used to wrap commands
            output_limit: Size ceiling in bytes for one command's output
            read_chunk_size: Maximum bytes per read from the output stream
        """
        self.session_id = session_id
        self.dialect = dialect
        self.output_limit = output_limit
        self.read_chunk_size = read_chunk_size
        self.created_at = datetime.now(UTC)
        self.last_activity = self.created_at
        self.command_count = 0

        self._process = process
        self._stdin = process.stdin
        self._stdout = process.stdout
        self._running = True
        self._lock = threading.Lock()
        # Bytes read past the last marker line, owed to the next command
        self._residue = b""
        # Marker of a truncated command whose tail is still in the pipe
        self._stale_marker: Optional[bytes] = None

    @classmethod
    def create(
        cls,
        dialect: "ShellDialect",
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> "ShellSession":
        """
        Spawn an interpreter and wrap it in a running session.

        Raises:
            SpawnError: If the interpreter cannot be started
        """
        if output_limit < 1 or read_chunk_size < 1:
            raise ValueError("output_limit and read_chunk_size must be positive")

        process = dialect.spawn()

        session = cls(
            str(uuid.uuid4()),
            process,
            dialect,
            output_limit=output_limit,
            read_chunk_size=read_chunk_size,
        )
        logger.info(f"Created session: {session.session_id} ({dialect.name}, pid={session.pid})")
        return session

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pid(self) -> Optional[int]:
        return getattr(self._process, "pid", None)

    def submit_command(self, command: str) -> CommandOutput:
        """
        Run one command and return exactly the output it produced.

        Args:
            command: Raw command text for the interpreter

        Returns:
            CommandOutput with the decoded text. ``truncated`` is set when the
            output ceiling was hit, ``exited`` when the interpreter closed its
            output stream while the command ran.

        Raises:
            NotRunningError: If the session has been terminated
            WriteError: If the command cannot be written
            ReadError: If reading the output fails
        """
        if not self._running:
            raise NotRunningError(f"session is not running: {self.session_id}")

        with self._lock:
            if not self._running:
                raise NotRunningError(f"session is not running: {self.session_id}")

            if self._stale_marker is not None:
                stale_marker, self._stale_marker = self._stale_marker, None
                if not self._discard_through(stale_marker):
                    logger.warning(
                        f"Session {self.session_id}: truncated command still producing output after "
                        f"{self.output_limit} more bytes, running the next command behind it"
                    )

            marker = uuid.uuid4().hex
            logger.debug(f"Session {self.session_id}: running command #{self.command_count + 1} (marker {marker})")
            wrapped = self.dialect.wrap(command, marker) + "\n"
            self._write(wrapped.encode("utf-8"))

            output, found, exited = self._read_until(marker.encode("ascii"))
            self.command_count += 1
            self.last_activity = datetime.now(UTC)

            if found or exited:
                return CommandOutput(
                    text=decode_output(strip_line_terminator(output)), exited=exited
                )

            logger.warning(
                f"Session {self.session_id}: output exceeded {self.output_limit} bytes, "
                f"returning {len(output)} bytes truncated"
            )
            self._stale_marker = marker.encode("ascii")
            return CommandOutput(text=decode_output(output), truncated=True)

    def terminate(self, timeout: Optional[float] = None) -> None:
        """
        Stop the interpreter. Safe to call more than once.

        Waits for an in-flight command to finish. With a timeout, stops
        waiting after ``timeout`` seconds and kills the process anyway; the
        in-flight read returns at its next chunk or at end of stream.
        """
        if not self._running:
            return

        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        try:
            if not acquired:
                logger.warning(
                    f"Session {self.session_id}: command still running after {timeout}s, killing interpreter"
                )
            if self._running:
                # Without the lock the reader still owns stdout and closes it on EOF
                self._shutdown_process(close_output=acquired)
                logger.info(f"Terminated session: {self.session_id}")
        finally:
            if acquired:
                self._lock.release()

    def _write(self, data: bytes) -> None:
        try:
            self._stdin.write(data)
            self._stdin.flush()
        except (OSError, ValueError) as e:
            # Broken pipe: the interpreter has exited
            logger.error(f"Session {self.session_id}: failed to write command: {e}")
            self._shutdown_process()
            raise WriteError(f"failed to write command: {e}") from e

    def _read_chunk(self) -> bytes:
        try:
            return self._stdout.read(self.read_chunk_size) or b""
        except (OSError, ValueError) as e:
            logger.error(f"Session {self.session_id}: failed to read output: {e}")
            self._shutdown_process()
            raise ReadError(f"failed to read output: {e}") from e

    def _read_until(self, marker: bytes) -> Tuple[bytes, bool, bool]:
        """
        Accumulate output until the marker line has been read.

        Returns:
            (output before the marker, marker found, end of stream reached)
        """
        buffer = bytearray(self._residue)
        self._residue = b""
        scan_from = 0
        marker_at = -1

        while True:
            if marker_at < 0:
                marker_at = buffer.find(marker, scan_from)
                # Keep an overlap so a marker split across reads is still found
                scan_from = max(0, len(buffer) - len(marker) + 1)

            if marker_at >= 0:
                line_end = buffer.find(b"\n", marker_at + len(marker))
                if line_end >= 0:
                    self._residue = bytes(buffer[line_end + 1 :])
                    return bytes(buffer[:marker_at]), True, False
            elif len(buffer) > self.output_limit:
                return bytes(buffer), False, False

            chunk = self._read_chunk()
            if not chunk or not self._running:
                if chunk:
                    # A bounded terminate killed the interpreter during this read
                    logger.warning(f"Session {self.session_id}: terminated while reading output")
                else:
                    logger.warning(f"Session {self.session_id}: interpreter closed its output stream")
                self._shutdown_process()
                if marker_at >= 0:
                    return bytes(buffer[:marker_at]), True, True
                return bytes(buffer), False, True
            buffer += chunk

    def _discard_through(self, marker: bytes) -> bool:
        """
        Drop output up to and including the marker line of a truncated command.

        Gives up once ``output_limit`` bytes have been dropped without reaching
        the marker line, so a command that never finishes cannot hold the
        session forever.

        Returns:
            True if the marker line was consumed, False if the drain gave up
        """
        tail = bytearray(self._residue)
        self._residue = b""
        discarded = 0

        while True:
            marker_at = tail.find(marker)
            if marker_at >= 0:
                line_end = tail.find(b"\n", marker_at + len(marker))
                if line_end >= 0:
                    self._residue = bytes(tail[line_end + 1 :])
                    return True
                discarded += marker_at
                del tail[:marker_at]
            elif len(tail) >= len(marker):
                dropped = len(tail) - len(marker) + 1
                discarded += dropped
                del tail[:dropped]

            if discarded >= self.output_limit:
                return False

            chunk = self._read_chunk()
            if not chunk or not self._running:
                self._shutdown_process()
                raise NotRunningError(f"session is not running: {self.session_id}")
            tail += chunk

    def _shutdown_process(self, close_output: bool = True) -> None:
        """Close stdin, kill and reap the interpreter. Best effort."""
        self._running = False
        try:
            self._stdin.close()
        except OSError:
            pass
        try:
            self._process.kill()
        except OSError:
            pass
        try:
            self._process.wait(timeout=5)
        except (OSError, subprocess.TimeoutExpired):
            logger.warning(f"Session {self.session_id}: interpreter pid={self.pid} did not exit after kill")
        if close_output:
            try:
                self._stdout.close()
            except OSError:
                pass
