"""
Session Module - Black Box Interface

Purpose: Manage interactive interpreter sessions and frame their output
Interface: SessionRegistry.create(), lookup(), destroy(), ShellSession.submit_command()
Hidden: Marker generation, stream reading, process cleanup, locking

Replaceable with any backend that can run one command at a time per session.
"""

from .errors import (
    NotFoundError,
    NotRunningError,
    ReadError,
    ShellGateError,
    SpawnError,
    WriteError,
)
from .registry import SessionRegistry
from .session import CommandOutput, ShellSession

__all__ = [
    "CommandOutput",
    "ShellSession",
    "SessionRegistry",
    "ShellGateError",
    "SpawnError",
    "NotFoundError",
    "NotRunningError",
    "WriteError",
    "ReadError",
]
