import logging
import threading
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .errors import NotFoundError
from .session import DEFAULT_OUTPUT_LIMIT, DEFAULT_READ_CHUNK_SIZE, ShellSession

if TYPE_CHECKING:
    from shellgate.modules.shell import ShellDialect

logger = logging.getLogger(__name__)

DEFAULT_TERMINATE_TIMEOUT = 5.0


class SessionRegistry:
    """
    Live sessions keyed by session ID.

    The registry lock guards the mapping only. It is never held while an
    interpreter is spawned, while a command runs or while a session is
    terminated.
    """

    def __init__(
        self,
        dialect: "ShellDialect",
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT,
    ):
        """
        Initialize an empty registry.

        Args:
            dialect: Dialect used to spawn every session's interpreter
            output_limit: Per-command output ceiling in bytes
            read_chunk_size: Maximum bytes per read from an interpreter
            terminate_timeout: Seconds to wait for an in-flight command when
                ending a session before its interpreter is killed anyway
        """
        self.dialect = dialect
        self.output_limit = output_limit
        self.read_chunk_size = read_chunk_size
        self.terminate_timeout = terminate_timeout
        self._sessions: Dict[str, ShellSession] = {}
        self._lock = threading.Lock()

    def create(self) -> Tuple[str, ShellSession]:
        """
        Spawn a new session and register it.

        Returns:
            (session ID, session)

        Raises:
            SpawnError: If the interpreter cannot be started
        """
        session = ShellSession.create(
            self.dialect,
            output_limit=self.output_limit,
            read_chunk_size=self.read_chunk_size,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return session.session_id, session

    def lookup(self, session_id: str) -> Optional[ShellSession]:
        """Get a session by ID, or None if it is not registered."""
        with self._lock:
            return self._sessions.get(session_id)

    def destroy(self, session_id: str) -> None:
        """
        Unregister a session and terminate its interpreter.

        Raises:
            NotFoundError: If no session is registered under the ID
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise NotFoundError(session_id)

        session.terminate(timeout=self.terminate_timeout)
        logger.info(f"Ended session: {session_id}")

    def list_sessions(self) -> List[ShellSession]:
        """Snapshot of all registered sessions."""
        with self._lock:
            return list(self._sessions.values())

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Unregister and terminate every session.

        Args:
            timeout: Per-session wait for an in-flight command before killing,
                the registry's ``terminate_timeout`` when not given
        """
        if timeout is None:
            timeout = self.terminate_timeout

        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        if sessions:
            logger.info(f"Terminating {len(sessions)} live session(s)")
        for session in sessions:
            session.terminate(timeout=timeout)
