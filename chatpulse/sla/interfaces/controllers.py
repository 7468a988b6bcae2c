"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA metrics.

Controllers are thin - they delegate to application services.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from chatpulse.core import ValidationException
from chatpulse.infrastructure.database import get_session
from chatpulse.sla.application import (
    ChatSLAResponse,
    SLAConfigReloadResponse,
    SLAMetricsResponse,
    SLAService,
)
from chatpulse.sla.domain import SLAConfig
from chatpulse.sla.infrastructure import (
    SLAConfigManager,
    SQLAlchemyRawChatReader,
    get_sla_config_manager,
)
from chatpulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Metrics"])

DEFAULT_PERIOD_DAYS = 7


# ========== Example payloads for Swagger ==========

SLA_METRICS_EXAMPLE = {
    "start": "2024-01-08T00:00:00Z",
    "end": "2024-01-15T00:00:00Z",
    "total_chats": 412,
    "metrics": {
        "pickup": {
            "threshold": 2,
            "threshold_label": "2m",
            "target": 98,
            "compliant": 398,
            "total": 405,
            "compliance_rate": 98,
            "avg_time_ms": 41230.5,
            "meets_target": True
        }
    },
    "first_response_times": {
        "average": 95400.0,
        "p50": 61000.0,
        "p90": 240000.0,
        "p95": 330000.0,
        "count": 380,
        "average_label": "1m 35s",
        "indicator": "good"
    }
}


# ========== Dependencies ==========

async def get_config_manager() -> SLAConfigManager:
    return get_sla_config_manager()


async def get_sla_service(
    session: AsyncSession = Depends(get_session),
    config_manager: SLAConfigManager = Depends(get_config_manager)
) -> SLAService:
    """Get SLA service instance."""
    return SLAService(SQLAlchemyRawChatReader(session), config_manager)


# ========== Route Handlers ==========

@router.get(
    "/metrics",
    response_model=SLAMetricsResponse,
    summary="Aggregate SLA compliance",
    description="""
    SLA compliance for chats opened in a period, computed from staged chats.

    Defaults to the last 7 days. Times in `avg_time_ms` and the response
    time percentiles are milliseconds.
    """,
    responses={
        200: {
            "description": "SLA metrics",
            "content": {"application/json": {"example": SLA_METRICS_EXAMPLE}}
        }
    }
)
async def get_sla_metrics(
    start: Optional[datetime] = Query(None, description="Period start (ISO 8601)"),
    end: Optional[datetime] = Query(None, description="Period end (ISO 8601)"),
    service: SLAService = Depends(get_sla_service)
):
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=DEFAULT_PERIOD_DAYS)

    try:
        report = await service.get_metrics(start, end)
    except ValidationException as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )
    return SLAMetricsResponse.from_report(report)


@router.get(
    "/chats/{chat_id}",
    response_model=ChatSLAResponse,
    summary="SLA metrics of one chat",
)
async def get_chat_sla(
    chat_id: str,
    service: SLAService = Depends(get_sla_service)
):
    report = await service.get_chat_sla(chat_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat {chat_id} not found"
        )
    return ChatSLAResponse.from_report(report)


@router.get(
    "/config",
    response_model=SLAConfig,
    summary="Current SLA configuration",
)
async def get_sla_config(config_manager: SLAConfigManager = Depends(get_config_manager)):
    return config_manager.get_config()


@router.post(
    "/config/reload",
    response_model=SLAConfigReloadResponse,
    summary="Reload SLA configuration from disk",
)
async def reload_sla_config(config_manager: SLAConfigManager = Depends(get_config_manager)):
    reloaded = config_manager.reload()
    logger.info("SLA config reload requested", extra={"reloaded": reloaded})
    return SLAConfigReloadResponse(
        reloaded=reloaded,
        enabled_metrics=config_manager.get_config().enabled_metrics.enabled(),
    )


# Export router for inclusion in main app
sla_router = router
