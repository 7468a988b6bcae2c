"""
SLA Value Objects
==================

Immutable configuration for SLA evaluation.

All thresholds are in minutes, compliance targets are percentages.
Threshold lookup order for a chat: priority override, then channel
override, then the default threshold.
"""

import re
from datetime import time
from typing import Any, Dict, List, Optional

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chatpulse.config import (
    ChatPriority,
    ChatProvider,
    SLAMetricType,
    VALID_PRIORITIES,
    VALID_PROVIDERS,
    VALID_SLA_METRICS,
)

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class MetricThresholds(BaseModel):
    """Per-metric threshold overrides in minutes; unset metrics fall through."""
    model_config = ConfigDict(frozen=True)

    first_response: Optional[int] = Field(None, ge=1, le=240)
    avg_response: Optional[int] = Field(None, ge=1, le=240)
    resolution: Optional[int] = Field(None, ge=1, le=1440)
    pickup: Optional[int] = Field(None, ge=1, le=60)

    def get(self, metric: str) -> Optional[int]:
        return getattr(self, metric, None)


class EnabledMetrics(BaseModel):
    """Which metrics count toward a chat's overall SLA."""
    model_config = ConfigDict(frozen=True)

    pickup: bool = True
    first_response: bool = True
    avg_response: bool = False
    resolution: bool = False

    def enabled(self) -> List[str]:
        return [metric for metric in VALID_SLA_METRICS if getattr(self, metric)]


class OfficeHoursConfig(BaseModel):
    """
    Office hours used for business-hours SLA math.

    working_days uses ISO weekdays (1=Monday, 7=Sunday). start is
    inclusive, end exclusive.
    """
    model_config = ConfigDict(frozen=True)

    start: str = "09:00"
    end: str = "17:00"
    working_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    timezone: str = "America/New_York"

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        """Ensure times are zero-padded 24-hour HH:MM."""
        if not HHMM_PATTERN.match(v):
            raise ValueError(f"expected HH:MM, got {v!r}")
        return v

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: List[int]) -> List[int]:
        if any(day < 1 or day > 7 for day in v):
            raise ValueError("working_days must be ISO weekdays 1-7")
        return sorted(set(v))

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"unknown timezone: {v}")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "OfficeHoursConfig":
        if self.start >= self.end:
            raise ValueError("office hours start must be before end")
        return self

    @property
    def start_time(self) -> time:
        hours, minutes = self.start.split(":")
        return time(int(hours), int(minutes))

    @property
    def end_time(self) -> time:
        hours, minutes = self.end.split(":")
        return time(int(hours), int(minutes))

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.timezone)


def _default_channel_overrides() -> Dict[str, MetricThresholds]:
    return {
        ChatProvider.WHATSAPP: MetricThresholds(first_response=3, avg_response=3, resolution=20, pickup=1),
        ChatProvider.LIVECHAT: MetricThresholds(first_response=1, avg_response=1, resolution=15, pickup=1),
        ChatProvider.FACEBOOK: MetricThresholds(first_response=10, avg_response=10, resolution=60, pickup=3),
        ChatProvider.TELEGRAM: MetricThresholds(first_response=5, avg_response=5, resolution=30, pickup=2),
        ChatProvider.B2CBOTAPI: MetricThresholds(first_response=1, avg_response=1, resolution=5, pickup=1),
    }


def _default_priority_overrides() -> Dict[str, MetricThresholds]:
    return {
        ChatPriority.URGENT: MetricThresholds(first_response=1, avg_response=1, resolution=10, pickup=1),
        ChatPriority.HIGH: MetricThresholds(first_response=3, avg_response=3, resolution=20, pickup=1),
        ChatPriority.NORMAL: MetricThresholds(first_response=5, avg_response=5, resolution=30, pickup=2),
        ChatPriority.LOW: MetricThresholds(first_response=10, avg_response=10, resolution=60, pickup=5),
    }


class SLAConfig(BaseModel):
    """
    SLA Configuration loaded from YAML.

    This is a value object - immutable and defined by its attributes.
    """
    model_config = ConfigDict(frozen=True)

    # Default thresholds (minutes)
    first_response_threshold: int = Field(default=5, ge=1, le=240)
    avg_response_threshold: int = Field(default=5, ge=1, le=240)
    resolution_threshold: int = Field(default=30, ge=1, le=1440)
    pickup_threshold: int = Field(default=2, ge=1, le=60)

    # Compliance targets (percent)
    first_response_target: float = Field(default=95, ge=0, le=100)
    avg_response_target: float = Field(default=90, ge=0, le=100)
    resolution_target: float = Field(default=90, ge=0, le=100)
    pickup_target: float = Field(default=98, ge=0, le=100)

    enabled_metrics: EnabledMetrics = Field(default_factory=EnabledMetrics)
    channel_overrides: Dict[str, MetricThresholds] = Field(default_factory=_default_channel_overrides)
    priority_overrides: Dict[str, MetricThresholds] = Field(default_factory=_default_priority_overrides)
    office_hours: OfficeHoursConfig = Field(default_factory=OfficeHoursConfig)

    @field_validator("channel_overrides")
    @classmethod
    def validate_channels(cls, v: Dict[str, MetricThresholds]) -> Dict[str, MetricThresholds]:
        unknown = set(v) - set(VALID_PROVIDERS)
        if unknown:
            raise ValueError(f"unknown channels in overrides: {sorted(unknown)}")
        return v

    @field_validator("priority_overrides")
    @classmethod
    def validate_priorities(cls, v: Dict[str, MetricThresholds]) -> Dict[str, MetricThresholds]:
        unknown = set(v) - set(VALID_PRIORITIES)
        if unknown:
            raise ValueError(f"unknown priorities in overrides: {sorted(unknown)}")
        return v

    def default_threshold(self, metric: str) -> int:
        """Default threshold in minutes for a metric."""
        return {
            SLAMetricType.PICKUP: self.pickup_threshold,
            SLAMetricType.FIRST_RESPONSE: self.first_response_threshold,
            SLAMetricType.AVG_RESPONSE: self.avg_response_threshold,
            SLAMetricType.RESOLUTION: self.resolution_threshold,
        }.get(metric, self.first_response_threshold)

    def target(self, metric: str) -> float:
        """Compliance target percentage for a metric."""
        return {
            SLAMetricType.PICKUP: self.pickup_target,
            SLAMetricType.FIRST_RESPONSE: self.first_response_target,
            SLAMetricType.AVG_RESPONSE: self.avg_response_target,
            SLAMetricType.RESOLUTION: self.resolution_target,
        }.get(metric, self.first_response_target)


def get_sla_threshold(chat: Any, config: SLAConfig, metric: str) -> int:
    """
    Threshold in minutes applying to a chat for one metric.

    ``chat`` is anything with ``provider`` and ``priority`` attributes.

    Priority overrides win over channel overrides, which win over the
    default threshold. Provider and priority match case-insensitively.
    """
    provider = getattr(chat, "provider", None)
    priority = getattr(chat, "priority", None)

    if priority:
        override = config.priority_overrides.get(priority.lower())
        if override is not None and override.get(metric):
            return override.get(metric)

    if provider:
        override = config.channel_overrides.get(provider.lower())
        if override is not None and override.get(metric):
            return override.get(metric)

    return config.default_threshold(metric)


def check_sla_compliance(actual_ms: float, threshold_minutes: float) -> bool:
    """Whether an elapsed time (ms) is within a threshold (minutes)."""
    return actual_ms <= threshold_minutes * 60 * 1000
