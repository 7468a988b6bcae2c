"""
Sync Controllers (API Routes)
=============================

FastAPI routes for the B2Chat extract stage.

Controllers are thin - they delegate to application services.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from chatpulse.b2chat.application import (
    CancelResponse,
    ExtractLogResponse,
    ExtractOptions,
    ExtractRequest,
    ExtractResponse,
    ExtractResultResponse,
    ExtractService,
    QueueStatsResponse,
    TotalCountsResponse,
    extract_cancellations,
)
from chatpulse.b2chat.domain import DateRange
from chatpulse.b2chat.infrastructure.client import B2ChatClient
from chatpulse.b2chat.infrastructure.external import (
    build_extract_service,
    get_b2chat_client,
)
from chatpulse.b2chat.infrastructure.queue import (
    RateLimitedQueue,
    get_rate_limited_queue,
)
from chatpulse.b2chat.infrastructure.repositories import SQLAlchemyExtractLogRepository
from chatpulse.config import EntityType, VALID_ENTITY_TYPES
from chatpulse.infrastructure.database import get_session
from chatpulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/sync", tags=["B2Chat Sync"])


# ========== Example payloads for Swagger ==========

EXTRACT_RESPONSE_EXAMPLE = {
    "results": [
        {
            "sync_id": "extract_chats_1705312800000_a1b2c3",
            "entity_type": "chats",
            "status": "completed",
            "records_fetched": 1842,
            "records_failed": 3,
            "total_pages": 2,
            "api_call_count": 2,
            "duration_ms": 5312,
            "error_message": None
        }
    ]
}


# ========== Dependencies ==========

async def get_extract_service(
    session: AsyncSession = Depends(get_session)
) -> ExtractService:
    """Get extract service instance."""
    return build_extract_service(session)


async def get_queue() -> RateLimitedQueue:
    return get_rate_limited_queue()


async def get_client() -> B2ChatClient:
    return get_b2chat_client()


# ========== Route Handlers ==========

@router.post(
    "/extract",
    response_model=ExtractResponse,
    summary="Run an extract",
    description="""
    Page through the B2Chat export API and stage raw records.

    Requests go through the shared rate-limited queue, so a large extract
    may take a while when other callers are using the budget.

    **Time range presets**: `1d`, `7d`, `30d`, `90d`, `full`. A preset wins
    over `date_from`/`date_to`.
    """,
    responses={
        200: {
            "description": "Extract finished (check each result's status)",
            "content": {"application/json": {"example": EXTRACT_RESPONSE_EXAMPLE}}
        }
    }
)
async def run_extract(
    request: ExtractRequest,
    service: ExtractService = Depends(get_extract_service)
):
    date_range = None
    if request.date_from or request.date_to:
        date_range = DateRange(start_date=request.date_from, end_date=request.date_to)

    options = ExtractOptions(
        batch_size=request.batch_size,
        full_sync=request.full_sync,
        date_range=date_range,
        time_range_preset=request.time_range_preset,
        max_pages=request.max_pages,
    )

    if request.entity_type == EntityType.CONTACTS:
        results = [await service.extract_contacts(options)]
    elif request.entity_type == EntityType.CHATS:
        results = [await service.extract_chats(options)]
    else:
        results = list((await service.extract_all(options)).values())

    return ExtractResponse(
        results=[ExtractResultResponse(**result.to_dict()) for result in results]
    )


@router.post(
    "/extract/{sync_id}/cancel",
    response_model=CancelResponse,
    summary="Cancel a running extract",
)
async def cancel_extract(sync_id: str):
    """Cancellation takes effect before the next page is requested."""
    if not extract_cancellations.cancel(sync_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No running extract {sync_id}"
        )
    logger.info("Extract cancellation requested", extra={"sync_id": sync_id})
    return CancelResponse(sync_id=sync_id, cancelled=True)


@router.get(
    "/queue",
    response_model=QueueStatsResponse,
    summary="Rate limiter status",
)
async def get_queue_stats(queue: RateLimitedQueue = Depends(get_queue)):
    return QueueStatsResponse(**queue.get_stats().to_dict())


@router.get(
    "/logs",
    response_model=List[ExtractLogResponse],
    summary="Recent extract runs",
)
async def list_extract_logs(
    entity_type: Optional[str] = Query(None, description="contacts or chats"),
    limit: int = Query(20, ge=1, le=200),
    session: AsyncSession = Depends(get_session)
):
    if entity_type is not None and entity_type not in VALID_ENTITY_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"entity_type must be one of {VALID_ENTITY_TYPES}"
        )
    logs = await SQLAlchemyExtractLogRepository(session).list_recent(limit, entity_type)
    return [ExtractLogResponse.model_validate(log) for log in logs]


@router.get(
    "/logs/{sync_id}",
    response_model=ExtractLogResponse,
    summary="One extract run",
)
async def get_extract_log(
    sync_id: str,
    session: AsyncSession = Depends(get_session)
):
    log = await SQLAlchemyExtractLogRepository(session).get_by_sync_id(sync_id)
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Extract log {sync_id} not found"
        )
    return ExtractLogResponse.model_validate(log)


@router.get(
    "/counts",
    response_model=TotalCountsResponse,
    summary="Records available in B2Chat",
)
async def get_total_counts(
    queue: RateLimitedQueue = Depends(get_queue),
    client: B2ChatClient = Depends(get_client)
):
    counts = await queue.add(client.get_total_counts)
    return TotalCountsResponse(**counts)


# Export router for inclusion in main app
sync_router = router
