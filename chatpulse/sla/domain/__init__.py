"""
SLA Domain Layer
================

Domain layer for SLA monitoring module.

Contains:
- Entities: chat timestamps, per-chat and aggregate SLA results
- Value Objects: SLAConfig, OfficeHoursConfig, threshold overrides
- Domain Services: SLACalculator, business-hours and response-time math

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from chatpulse.sla.domain.entities import (
    ChatForSLA,
    ChatSLAMetrics,
    MessageForSLA,
    MetricSummary,
    ResponseTimeMetrics,
    ResponseTimeResult,
    SLAComplianceResult,
    SLAMetrics,
)
from chatpulse.sla.domain.value_objects import (
    EnabledMetrics,
    MetricThresholds,
    OfficeHoursConfig,
    SLAConfig,
    check_sla_compliance,
    get_sla_threshold,
)
from chatpulse.sla.domain.business_hours import (
    calculate_business_hours_between,
    get_next_business_hour_start,
    is_within_office_hours,
)
from chatpulse.sla.domain.calculator import SLACalculator, calculate_chat_sla
from chatpulse.sla.domain.compliance import (
    calculate_sla_metrics,
    check_chat_sla_compliance,
    format_threshold,
)
from chatpulse.sla.domain.response_times import (
    ResponseTimeIndicator,
    calculate_chat_response_times,
    calculate_percentile,
    calculate_response_time_metrics,
    format_response_time,
    get_response_time_indicator,
)

__all__ = [
    # Entities
    "ChatForSLA",
    "ChatSLAMetrics",
    "MessageForSLA",
    "MetricSummary",
    "ResponseTimeMetrics",
    "ResponseTimeResult",
    "SLAComplianceResult",
    "SLAMetrics",
    # Value Objects
    "EnabledMetrics",
    "MetricThresholds",
    "OfficeHoursConfig",
    "SLAConfig",
    "check_sla_compliance",
    "get_sla_threshold",
    # Business hours
    "calculate_business_hours_between",
    "get_next_business_hour_start",
    "is_within_office_hours",
    # Calculators
    "SLACalculator",
    "calculate_chat_sla",
    "calculate_sla_metrics",
    "check_chat_sla_compliance",
    "format_threshold",
    # Response times
    "ResponseTimeIndicator",
    "calculate_chat_response_times",
    "calculate_percentile",
    "calculate_response_time_metrics",
    "format_response_time",
    "get_response_time_indicator",
]
