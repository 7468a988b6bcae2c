"""
SLA Domain Entities
====================

Plain data structures the SLA calculators work on.

Free of infrastructure concerns; raw B2Chat payloads are converted into
ChatForSLA by the application layer.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from chatpulse.config import MessageSender


@dataclass(frozen=True)
class MessageForSLA:
    """A chat message reduced to who sent it and when."""
    sender: str
    created_at: datetime

    @property
    def is_customer(self) -> bool:
        return self.sender == MessageSender.CUSTOMER

    @property
    def is_agent(self) -> bool:
        return self.sender == MessageSender.AGENT


@dataclass
class ChatForSLA:
    """
    Chat timestamps relevant to SLA evaluation.

    picked_up_at is when an agent took the chat, response_at when the agent
    first replied. Messages are in chronological order.
    """
    chat_id: str
    provider: Optional[str] = None
    priority: Optional[str] = None
    opened_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    response_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    messages: List[MessageForSLA] = field(default_factory=list)


@dataclass(frozen=True)
class SLAComplianceResult:
    """One chat checked against one metric."""
    metric_type: str
    threshold: int        # minutes
    actual: float         # milliseconds
    compliant: bool


@dataclass
class MetricSummary:
    """Aggregate compliance of one metric over many chats."""
    threshold: int
    target: float
    compliant: int = 0
    total: int = 0
    compliance_rate: int = 0
    avg_time: float = 0.0  # milliseconds

    @property
    def meets_target(self) -> bool:
        return self.total > 0 and self.compliance_rate >= self.target


@dataclass
class SLAMetrics:
    """Aggregate compliance for every metric."""
    pickup: MetricSummary
    first_response: MetricSummary
    avg_response: MetricSummary
    resolution: MetricSummary

    def get(self, metric: str) -> MetricSummary:
        return getattr(self, metric)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChatSLAMetrics:
    """
    Per-chat SLA values (seconds) and compliance flags.

    A None value means the metric could not be measured (e.g. never picked
    up); a None flag means it could not be judged. The *_bh fields hold the
    same metrics counted in business hours only.
    """
    # Wall clock
    time_to_pickup: Optional[float] = None
    first_response_time: Optional[float] = None
    avg_response_time: Optional[float] = None
    resolution_time: Optional[float] = None

    pickup_sla: Optional[bool] = None
    first_response_sla: Optional[bool] = None
    avg_response_sla: Optional[bool] = None
    resolution_sla: Optional[bool] = None
    overall_sla: Optional[bool] = None

    # Business hours
    time_to_pickup_bh: Optional[float] = None
    first_response_time_bh: Optional[float] = None
    avg_response_time_bh: Optional[float] = None
    resolution_time_bh: Optional[float] = None

    pickup_sla_bh: Optional[bool] = None
    first_response_sla_bh: Optional[bool] = None
    avg_response_sla_bh: Optional[bool] = None
    resolution_sla_bh: Optional[bool] = None
    overall_sla_bh: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ResponseTimeResult:
    """Customer-to-agent response times within one chat (milliseconds)."""
    first_response_time_ms: Optional[float] = None
    avg_response_time_ms: Optional[float] = None
    fastest_response_time_ms: Optional[float] = None
    slowest_response_time_ms: Optional[float] = None
    total_agent_responses: int = 0


@dataclass(frozen=True)
class ResponseTimeMetrics:
    """Distribution of response times across chats (milliseconds)."""
    average: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
