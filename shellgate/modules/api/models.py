"""
ShellGate API data models.

These models define the JSON bodies accepted and returned by the HTTP
binding. Command output itself is returned as plain text, not JSON.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# Request Models (API Input)


class RunCommandRequest(BaseModel):
    """Request to run one command in a session."""

    session_id: str = Field(..., description="Session identifier", min_length=1)
    command: str = Field(..., description="Raw command text for the interpreter", min_length=1)


class EndSessionRequest(BaseModel):
    """Request to end a session."""

    session_id: str = Field(..., description="Session identifier", min_length=1)


# Response Models (API Output)


class StartSessionResponse(BaseModel):
    """Response after starting a session."""

    session_id: str


class MessageResponse(BaseModel):
    message: str


class SessionInfo(BaseModel):
    """Snapshot of one live session."""

    session_id: str
    dialect: str
    pid: Optional[int] = None
    running: bool
    created_at: datetime
    last_activity: datetime
    command_count: int


class SessionListResponse(BaseModel):
    sessions: List[SessionInfo]
    count: int
