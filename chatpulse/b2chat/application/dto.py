"""
B2Chat Application DTOs
=======================

Pydantic models for the sync API surface.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ========== Type Aliases for Literals ==========
ExtractTargetStr = Literal["contacts", "chats", "all"]
TimeRangePresetStr = Literal["1d", "7d", "30d", "90d", "full"]
ExtractStatusStr = Literal["running", "completed", "failed", "cancelled"]


# ========== Request DTOs ==========

class ExtractRequest(BaseModel):
    """Request model for triggering an extract."""
    entity_type: ExtractTargetStr = Field(default="all", description="Collection(s) to extract")
    full_sync: bool = Field(default=False, description="Ignore date filters and page limit")
    time_range_preset: Optional[TimeRangePresetStr] = Field(None, description="Relative date range")
    date_from: Optional[datetime] = Field(None, description="Explicit range start")
    date_to: Optional[datetime] = Field(None, description="Explicit range end")
    batch_size: int = Field(default=1000, ge=1, le=1000, description="Records per page")
    max_pages: Optional[int] = Field(None, ge=1, description="Stop after this many pages")

    @model_validator(mode="after")
    def validate_range(self) -> "ExtractRequest":
        """Ensure date_to is not before date_from."""
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self


# ========== Response DTOs ==========

class ExtractResultResponse(BaseModel):
    """Outcome of one extract run."""
    sync_id: str
    entity_type: str
    status: ExtractStatusStr
    records_fetched: int
    records_failed: int
    total_pages: int
    api_call_count: int
    duration_ms: int
    error_message: Optional[str] = None


class ExtractResponse(BaseModel):
    """Response for POST /sync/extract."""
    results: List[ExtractResultResponse]


class QueueStatsResponse(BaseModel):
    """Rate-limited queue snapshot."""
    queue_length: int
    requests_this_second: int
    requests_today: int
    max_requests_per_second: int
    max_requests_per_day: int


class ExtractLogResponse(BaseModel):
    """An extract log row."""
    model_config = ConfigDict(from_attributes=True)

    sync_id: str
    entity_type: str
    operation: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    records_fetched: int = 0
    records_failed: int = 0
    total_pages: int = 0
    api_call_count: int = 0
    date_range_from: Optional[datetime] = None
    date_range_to: Optional[datetime] = None
    time_range_preset: Optional[str] = None
    batch_size: int
    error_message: Optional[str] = None
    extract_metadata: Optional[Dict[str, Any]] = Field(None, serialization_alias="metadata")


class TotalCountsResponse(BaseModel):
    """Records available upstream."""
    contacts: int
    chats: int


class CancelResponse(BaseModel):
    """Response for a cancellation request."""
    sync_id: str
    cancelled: bool
