"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization for API responses. Domain
dataclasses are converted with the from_* helpers so the domain layer
stays free of pydantic response concerns.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from chatpulse.sla.application.services import ChatSLAReport, SLAReport
from chatpulse.sla.domain import (
    MetricSummary,
    ResponseTimeMetrics,
    format_response_time,
    format_threshold,
    get_response_time_indicator,
)


# ========== Response DTOs ==========

class MetricSummaryResponse(BaseModel):
    """Aggregate compliance of one SLA metric."""
    threshold: int = Field(..., description="Default threshold in minutes")
    threshold_label: str = Field(..., description="Threshold formatted for display")
    target: float = Field(..., description="Compliance target percentage")
    compliant: int
    total: int
    compliance_rate: int = Field(..., description="Rounded percentage of compliant chats")
    avg_time_ms: float
    meets_target: bool

    @classmethod
    def from_summary(cls, summary: MetricSummary) -> "MetricSummaryResponse":
        return cls(
            threshold=summary.threshold,
            threshold_label=format_threshold(summary.threshold),
            target=summary.target,
            compliant=summary.compliant,
            total=summary.total,
            compliance_rate=summary.compliance_rate,
            avg_time_ms=summary.avg_time,
            meets_target=summary.meets_target,
        )


class ResponseTimeMetricsResponse(BaseModel):
    """Distribution of response times (milliseconds)."""
    average: float
    p50: float
    p90: float
    p95: float
    count: int
    average_label: str
    indicator: Optional[str] = None

    @classmethod
    def from_metrics(cls, metrics: ResponseTimeMetrics) -> "ResponseTimeMetricsResponse":
        return cls(
            **metrics.to_dict(),
            average_label=format_response_time(metrics.average),
            indicator=get_response_time_indicator(metrics.average) if metrics.count else None,
        )


class OverallComplianceResponse(BaseModel):
    compliant: int
    evaluated: int
    compliance_rate: int
    compliant_bh: int
    evaluated_bh: int
    compliance_rate_bh: int


class SLAMetricsResponse(BaseModel):
    """Response for GET /sla/metrics."""
    start: datetime
    end: datetime
    total_chats: int
    metrics: Dict[str, MetricSummaryResponse]
    first_response_times: ResponseTimeMetricsResponse
    avg_response_times: ResponseTimeMetricsResponse
    overall: OverallComplianceResponse

    @classmethod
    def from_report(cls, report: SLAReport) -> "SLAMetricsResponse":
        metrics = report.metrics
        return cls(
            start=report.start,
            end=report.end,
            total_chats=report.total_chats,
            metrics={
                name: MetricSummaryResponse.from_summary(metrics.get(name))
                for name in ("pickup", "first_response", "avg_response", "resolution")
            },
            first_response_times=ResponseTimeMetricsResponse.from_metrics(report.first_response_times),
            avg_response_times=ResponseTimeMetricsResponse.from_metrics(report.avg_response_times),
            overall=OverallComplianceResponse(**report.overall.to_dict()),
        )


class ChatSLAValues(BaseModel):
    """Per-chat SLA values in seconds, with compliance flags."""
    time_to_pickup: Optional[float] = None
    first_response_time: Optional[float] = None
    avg_response_time: Optional[float] = None
    resolution_time: Optional[float] = None
    pickup_sla: Optional[bool] = None
    first_response_sla: Optional[bool] = None
    avg_response_sla: Optional[bool] = None
    resolution_sla: Optional[bool] = None
    overall_sla: Optional[bool] = None
    time_to_pickup_bh: Optional[float] = None
    first_response_time_bh: Optional[float] = None
    avg_response_time_bh: Optional[float] = None
    resolution_time_bh: Optional[float] = None
    pickup_sla_bh: Optional[bool] = None
    first_response_sla_bh: Optional[bool] = None
    avg_response_sla_bh: Optional[bool] = None
    resolution_sla_bh: Optional[bool] = None
    overall_sla_bh: Optional[bool] = None


class ChatResponseTimes(BaseModel):
    first_response_time_ms: Optional[float] = None
    avg_response_time_ms: Optional[float] = None
    fastest_response_time_ms: Optional[float] = None
    slowest_response_time_ms: Optional[float] = None
    total_agent_responses: int = 0


class ChatSLAResponse(BaseModel):
    """Response for GET /sla/chats/{chat_id}."""
    chat_id: str
    provider: Optional[str] = None
    priority: Optional[str] = None
    opened_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    response_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    message_count: int
    sla: ChatSLAValues
    response_times: ChatResponseTimes

    @classmethod
    def from_report(cls, report: ChatSLAReport) -> "ChatSLAResponse":
        chat = report.chat
        return cls(
            chat_id=chat.chat_id,
            provider=chat.provider,
            priority=chat.priority,
            opened_at=chat.opened_at,
            picked_up_at=chat.picked_up_at,
            response_at=chat.response_at,
            closed_at=chat.closed_at,
            message_count=len(chat.messages),
            sla=ChatSLAValues(**report.metrics.to_dict()),
            response_times=ChatResponseTimes(
                first_response_time_ms=report.response_times.first_response_time_ms,
                avg_response_time_ms=report.response_times.avg_response_time_ms,
                fastest_response_time_ms=report.response_times.fastest_response_time_ms,
                slowest_response_time_ms=report.response_times.slowest_response_time_ms,
                total_agent_responses=report.response_times.total_agent_responses,
            ),
        )


class SLAConfigReloadResponse(BaseModel):
    """Response for POST /sla/config/reload."""
    reloaded: bool
    enabled_metrics: List[str]
