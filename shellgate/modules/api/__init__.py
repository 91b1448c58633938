"""
API Module - Black Box Interface

Purpose: HTTP request and response shapes
Interface: Pydantic models used by the FastAPI routes
Hidden: Field validation rules

The API module only describes payloads - it contains no business logic.
All logic is delegated to the session module.
"""

from .models import (
    EndSessionRequest,
    MessageResponse,
    RunCommandRequest,
    SessionInfo,
    SessionListResponse,
    StartSessionResponse,
)

__all__ = [
    "RunCommandRequest",
    "EndSessionRequest",
    "StartSessionResponse",
    "MessageResponse",
    "SessionInfo",
    "SessionListResponse",
]
