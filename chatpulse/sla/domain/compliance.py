"""
Aggregate SLA Compliance
========================

Compliance counts, rates and average times over a set of chats.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from chatpulse.config import SLAMetricType
from chatpulse.shared.domain.numbers import round_half_up
from chatpulse.sla.domain.entities import (
    ChatForSLA,
    MetricSummary,
    SLAComplianceResult,
    SLAMetrics,
)
from chatpulse.sla.domain.value_objects import (
    SLAConfig,
    check_sla_compliance,
    get_sla_threshold,
)

# Metrics measurable from chat timestamps alone, and the end timestamp of each
TIMESTAMP_METRICS = {
    SLAMetricType.PICKUP: "picked_up_at",
    SLAMetricType.FIRST_RESPONSE: "response_at",
    SLAMetricType.RESOLUTION: "closed_at",
}


def _elapsed_ms(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None:
        return None
    return (end - start).total_seconds() * 1000


def check_chat_sla_compliance(
    chat: ChatForSLA,
    config: SLAConfig,
    metric: str
) -> Optional[SLAComplianceResult]:
    """
    Check one chat against one metric.

    Returns None when the metric cannot be measured from the chat's
    timestamps or the interval is negative.
    """
    end_field = TIMESTAMP_METRICS.get(metric)
    if end_field is None:
        return None

    actual = _elapsed_ms(chat.opened_at, getattr(chat, end_field))
    if actual is None or actual < 0:
        return None

    threshold = get_sla_threshold(chat, config, metric)
    return SLAComplianceResult(
        metric_type=metric,
        threshold=threshold,
        actual=actual,
        compliant=check_sla_compliance(actual, threshold),
    )


def calculate_sla_metrics(chats: Iterable[ChatForSLA], config: SLAConfig) -> SLAMetrics:
    """
    Compliance summary per metric.

    Each chat contributes to a metric only when the interval can be measured
    and is not negative. compliance_rate is a rounded percentage, avg_time
    the mean interval in milliseconds.
    """
    summaries = {
        metric: MetricSummary(
            threshold=config.default_threshold(metric),
            target=config.target(metric),
        )
        for metric in (
            SLAMetricType.PICKUP,
            SLAMetricType.FIRST_RESPONSE,
            SLAMetricType.AVG_RESPONSE,
            SLAMetricType.RESOLUTION,
        )
    }
    times: dict[str, List[float]] = {metric: [] for metric in summaries}

    for chat in chats:
        for metric in TIMESTAMP_METRICS:
            result = check_chat_sla_compliance(chat, config, metric)
            if result is None:
                continue
            summary = summaries[metric]
            summary.total += 1
            if result.compliant:
                summary.compliant += 1
            times[metric].append(result.actual)

    for metric, summary in summaries.items():
        if summary.total > 0:
            summary.compliance_rate = round_half_up(summary.compliant / summary.total * 100)
            summary.avg_time = sum(times[metric]) / len(times[metric])

    return SLAMetrics(
        pickup=summaries[SLAMetricType.PICKUP],
        first_response=summaries[SLAMetricType.FIRST_RESPONSE],
        avg_response=summaries[SLAMetricType.AVG_RESPONSE],
        resolution=summaries[SLAMetricType.RESOLUTION],
    )


def format_threshold(minutes: int) -> str:
    """Threshold in minutes as "45m", "2h" or "1h 30m"."""
    if minutes < 60:
        return f"{minutes}m"
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
