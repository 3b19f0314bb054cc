"""API response models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check."""

    status: str = "healthy"
    timestamp: datetime = Field(default_factory=datetime.now)


class InfoResponse(BaseModel):
    """Response model for system information."""

    name: str
    version: str
    description: str
    strict_relay: bool
    queue_timeout_seconds: float
    match_interval_ms: int


class ErrorResponse(BaseModel):
    """Response model for errors."""

    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Error details")
    timestamp: datetime = Field(default_factory=datetime.now)
