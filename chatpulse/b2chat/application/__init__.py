"""
B2Chat Application Layer
========================

Contains:
- Services: the extract stage and its retry/cancellation helpers
- DTOs: request/response models for the sync API

Depends on the domain layer and repository interfaces, not on concrete
infrastructure.
"""

from chatpulse.b2chat.application.dto import (
    CancelResponse,
    ExtractLogResponse,
    ExtractRequest,
    ExtractResponse,
    ExtractResultResponse,
    QueueStatsResponse,
    TotalCountsResponse,
)
from chatpulse.b2chat.application.services import (
    ExtractCancellationRegistry,
    ExtractOptions,
    ExtractResult,
    ExtractService,
    IExtractLogRepository,
    IRawRecordRepository,
    call_with_retry,
    extract_cancellations,
    preset_to_date_range,
)

__all__ = [
    # DTOs
    "CancelResponse",
    "ExtractLogResponse",
    "ExtractRequest",
    "ExtractResponse",
    "ExtractResultResponse",
    "QueueStatsResponse",
    "TotalCountsResponse",
    # Services
    "ExtractCancellationRegistry",
    "ExtractOptions",
    "ExtractResult",
    "ExtractService",
    "call_with_retry",
    "extract_cancellations",
    "preset_to_date_range",
    # Repository Interfaces
    "IExtractLogRepository",
    "IRawRecordRepository",
]
