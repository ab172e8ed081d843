"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ConversationRequest(BaseModel):
    """Request model for conversation endpoint."""

    message: str = Field(min_length=1)
    session_id: str | None = None
    model: str | None = None


class ConversationResponse(BaseModel):
    """Response model for conversation endpoint."""

    response: str
    session_id: str
    iteration: int


class ResetResponse(BaseModel):
    session_id: str
    status: str


class ToolInfo(BaseModel):
    name: str
    description: str | None = None
    parameters: dict[str, Any]


class ToolListResponse(BaseModel):
    """Tools offered to the model, under their public names."""

    tools: list[ToolInfo]


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    active_sessions: int
