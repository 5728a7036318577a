"""
Pydantic schemas for API responses.

Every response of the messages resource is an envelope:
- success: {"ok": true, ...}
- failure: {"ok": false, "error": "...", ...}
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Response Models
# =============================================================================

class MessageResponse(BaseModel):
    """A stored message as returned by GET /api/messages."""
    id: int = Field(..., description="Message identifier (insertion order)")
    text: str = Field(..., description="Normalized message text")
    created_at: int = Field(..., description="Creation time in epoch milliseconds")

    model_config = {
        "from_attributes": True,  # Allow creating from ORM objects
    }


class MessagesListResponse(BaseModel):
    """Envelope for GET /api/messages: newest messages first."""
    ok: bool = Field(default=True)
    data: list[MessageResponse] = Field(
        default_factory=list,
        description="Most recent messages, created_at descending"
    )


class OkResponse(BaseModel):
    """Envelope for a successful POST /api/messages."""
    ok: bool = Field(default=True)


class ErrorResponse(BaseModel):
    """Envelope for error responses."""
    ok: bool = Field(default=False)
    error: str = Field(..., description="Error description")
    detail: Optional[str] = Field(None, description="Diagnostic detail for server errors")


class RateLimitedResponse(ErrorResponse):
    """Envelope for 429 responses."""
    retry_after_ms: int = Field(..., gt=0, description="Milliseconds until the next write is accepted")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
