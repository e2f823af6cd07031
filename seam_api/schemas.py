"""
Pydantic Schemas for API Request/Response Models

This module defines the data models used between the presentation client
and the authentication service.

These schemas provide:
- Type validation
- Automatic documentation in OpenAPI/Swagger
- Clear interface contracts
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from seam.types import StateChange


# ============================================================
# Authentication Schemas
# ============================================================

class AuthRequest(BaseModel):
    """Request for a single authentication attempt."""
    frame: str = Field(
        ...,
        min_length=1,
        description="Base64-encoded JPEG still (a data: URL prefix is accepted)",
    )


class AuthResponse(BaseModel):
    """Terminal result of an authentication attempt."""
    success: bool = Field(..., description="Whether the attempt was admitted")
    attempt_id: str = Field(..., description="Unique attempt identifier")
    identity: Optional[str] = Field(None, description="Authorized identity (success only)")
    reason: Optional[str] = Field(
        None,
        description="Failure code, or the policy message for face-count rejections",
    )
    message: Optional[str] = Field(None, description="Human-readable failure message")
    error_kind: Optional[str] = Field(None, description="Failure classification")
    face_count: Optional[int] = Field(None, description="Faces detected, if detection ran")
    states: List[str] = Field(default_factory=list, description="State sequence of the attempt")
    processing_time_sec: float = Field(..., description="Total processing time in seconds")


# ============================================================
# WebSocket Schemas
# ============================================================

class StartAttemptMessage(BaseModel):
    """Message sent by the client to start an attempt."""
    type: str = Field(default="start_attempt", description="Message type, should be 'start_attempt'")
    data: str = Field(..., min_length=1, description="Base64-encoded JPEG image data")


class StateChangedMessage(BaseModel):
    """Sent to the client on every state transition."""
    type: str = Field(default="state_changed", description="Message type")
    state: str = Field(..., description="New orchestrator state")
    message: Optional[str] = Field(None, description="Failure message, when failed")
    identity: Optional[str] = Field(None, description="Identity, when succeeded")
    attempt_id: Optional[str] = Field(None, description="Attempt the transition belongs to")

    @classmethod
    def from_change(cls, change: StateChange) -> "StateChangedMessage":
        return cls(
            state=change.state.value,
            message=change.message,
            identity=change.identity,
            attempt_id=change.attempt_id,
        )


class ErrorMessage(BaseModel):
    """Error sent over the WebSocket. Does not affect any in-flight attempt."""
    type: str = Field(default="error", description="Message type")
    error: str = Field(..., description="Error message")
    code: str = Field(default="AUTH_ERROR", description="Error code")


# ============================================================
# Attempt Log Schemas
# ============================================================

class AttemptInfo(BaseModel):
    """One logged attempt."""
    attempt_id: str
    started_at: str
    finished_at: Optional[str] = None
    success: bool
    reason: Optional[str] = None
    error_kind: Optional[str] = None
    identity: Optional[str] = None
    face_count: Optional[int] = None
    processing_time_ms: Optional[int] = None


class AttemptListResponse(BaseModel):
    """Response containing logged attempts, newest first."""
    attempts: List[AttemptInfo] = Field(default_factory=list)
    total: int = Field(0, description="Number of attempts returned")


class AttemptStatsResponse(BaseModel):
    """Aggregate attempt statistics."""
    total_attempts: int
    successful_attempts: int
    failed_attempts: int
    failures_by_kind: Dict[str, int] = Field(default_factory=dict)


# ============================================================
# Health Check Schemas
# ============================================================

class HealthResponse(BaseModel):
    """System health check response."""
    status: str = Field(..., description="Overall status: 'healthy'")
    engine_initialized: bool = Field(..., description="Whether the face detector is loaded")
    verifier_backend: str = Field(..., description="Identity verifier in use")
    total_attempts: int = Field(..., description="Number of logged attempts")
