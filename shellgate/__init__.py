"""
ShellGate - Persistent Interactive Shells over HTTP

Clients start a session (a long-lived interpreter process), run commands in
it one at a time, read back exactly the output each command produced, and
end the session when done.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another

Modules:
- shell: Interpreter dialects (process start-up and command wrapping)
- session: Session lifecycle, output framing and the session registry
- api: HTTP request/response models
"""

__version__ = "1.0.0"
