"""
Pydantic schemas for the Newsdesk API.

Request/response models for FastAPI endpoints with validation.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from newsdesk.utils.models import AggregationResult, InteractionKind


class InteractionCreate(BaseModel):
    """Request schema for recording an interaction."""

    user_id: str = Field(..., min_length=1, max_length=100)
    kind: InteractionKind
    payload: Dict[str, Any] = Field(default_factory=dict)
    active: bool = Field(default=True)

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        """Ensure user id is not just whitespace."""
        if not v.strip():
            raise ValueError("User id cannot be empty or whitespace")
        return v.strip()


class HealthResponse(BaseModel):
    status: str = "ok"
    scheduler_running: bool
    subscribers: int
    aggregation_running: bool
    last_run: Optional[AggregationResult] = None
