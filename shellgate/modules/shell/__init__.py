"""
Shell Module - Black Box Interface

Purpose: Start interactive interpreters and wrap commands for framing
Interface: get_dialect(), ShellDialect.spawn(), ShellDialect.wrap()
Hidden: Interpreter flags, encoding setup, output redirection syntax

Replaceable with any interpreter that reads commands line by line from stdin.
"""

from .dialects import (
    DIALECTS,
    PosixShellDialect,
    PowerShellDialect,
    ShellDialect,
    default_dialect_name,
    get_dialect,
)

__all__ = [
    "DIALECTS",
    "ShellDialect",
    "PowerShellDialect",
    "PosixShellDialect",
    "default_dialect_name",
    "get_dialect",
]
