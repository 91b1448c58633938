"""Typed failures raised by sessions and the session registry."""


class ShellGateError(Exception):
    """Base class for all session and registry failures."""


class SpawnError(ShellGateError):
    """The interpreter process could not be started or its pipes attached."""


class NotFoundError(ShellGateError):
    """No session is registered under the given identifier."""

    def __init__(self, session_id: str):
        super().__init__(f"session not found: {session_id}")
        self.session_id = session_id


class NotRunningError(ShellGateError):
    """The session exists but its interpreter has been terminated."""


class WriteError(ShellGateError):
    """A command could not be written to the interpreter's input stream."""


class ReadError(ShellGateError):
    """The interpreter's output stream failed while reading a command result."""
