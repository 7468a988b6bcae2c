"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

SLA metrics are computed on demand from the staged raw chats, so they are
available as soon as an extract has run.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from chatpulse.config import MessageSender
from chatpulse.core.exceptions import ValidationException
from chatpulse.shared.domain import ensure_utc, parse_timestamp, round_half_up
from chatpulse.shared.infrastructure.logging import get_logger
from chatpulse.sla.domain import (
    ChatForSLA,
    ChatSLAMetrics,
    MessageForSLA,
    ResponseTimeMetrics,
    ResponseTimeResult,
    SLAConfig,
    SLAMetrics,
    calculate_chat_response_times,
    calculate_chat_sla,
    calculate_response_time_metrics,
    calculate_sla_metrics,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IChatSource(ABC):
    """Interface for reading staged raw chats."""

    @abstractmethod
    async def list_fetched_since(self, since: datetime) -> List[Dict[str, Any]]:
        """Raw chat payloads fetched at or after ``since``, oldest fetch first."""

    @abstractmethod
    async def get_latest(self, chat_id: str) -> Optional[Dict[str, Any]]:
        """Most recently fetched raw payload of a chat."""


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""


# ========== Raw payload conversion ==========

def _messages_from_raw(raw_messages: Any) -> List[MessageForSLA]:
    if not isinstance(raw_messages, list):
        return []

    messages = []
    for raw in raw_messages:
        if not isinstance(raw, dict):
            continue
        created_at = parse_timestamp(raw.get("created_at"))
        if created_at is None:
            continue
        sender = MessageSender.CUSTOMER if raw.get("incoming") else MessageSender.AGENT
        messages.append(MessageForSLA(sender=sender, created_at=created_at))

    messages.sort(key=lambda m: m.created_at)
    return messages


def chat_for_sla_from_raw(raw: Dict[str, Any]) -> ChatForSLA:
    """
    Build a ChatForSLA from a staged chat payload.

    Incoming messages come from the customer, everything else from the
    agent side. A chat without opened_at is treated as opened at creation.
    """
    return ChatForSLA(
        chat_id=str(raw.get("chat_id", "")),
        provider=raw.get("provider"),
        priority=raw.get("priority"),
        opened_at=parse_timestamp(raw.get("opened_at") or raw.get("created_at")),
        picked_up_at=parse_timestamp(raw.get("picked_up_at")),
        response_at=parse_timestamp(raw.get("responded_at") or raw.get("response_at")),
        closed_at=parse_timestamp(raw.get("closed_at")),
        messages=_messages_from_raw(raw.get("messages")),
    )


# ========== Results ==========

@dataclass
class OverallCompliance:
    """Chats whose enabled metrics were all met, out of chats that could be judged."""
    compliant: int = 0
    evaluated: int = 0
    compliant_bh: int = 0
    evaluated_bh: int = 0

    @property
    def compliance_rate(self) -> int:
        if self.evaluated == 0:
            return 0
        return round_half_up(self.compliant / self.evaluated * 100)

    @property
    def compliance_rate_bh(self) -> int:
        if self.evaluated_bh == 0:
            return 0
        return round_half_up(self.compliant_bh / self.evaluated_bh * 100)

    def add(self, metrics: ChatSLAMetrics) -> None:
        if metrics.overall_sla is not None:
            self.evaluated += 1
            if metrics.overall_sla:
                self.compliant += 1
        if metrics.overall_sla_bh is not None:
            self.evaluated_bh += 1
            if metrics.overall_sla_bh:
                self.compliant_bh += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            **asdict(self),
            "compliance_rate": self.compliance_rate,
            "compliance_rate_bh": self.compliance_rate_bh,
        }


@dataclass
class SLAReport:
    """SLA metrics over a period."""
    start: datetime
    end: datetime
    total_chats: int
    metrics: SLAMetrics
    first_response_times: ResponseTimeMetrics
    avg_response_times: ResponseTimeMetrics
    overall: OverallCompliance = field(default_factory=OverallCompliance)


@dataclass
class ChatSLAReport:
    """SLA metrics for a single chat."""
    chat: ChatForSLA
    metrics: ChatSLAMetrics
    response_times: ResponseTimeResult


# ========== Application Services ==========

class SLAService:
    """
    Service for SLA calculations over staged chats.

    Coordinates between domain logic and data access.
    """

    def __init__(self, chat_source: IChatSource, config_provider: ISLAConfigProvider):
        self._chat_source = chat_source
        self._config_provider = config_provider

    def get_config(self) -> SLAConfig:
        return self._config_provider.get_config()

    async def _load_chats(self, start: datetime, end: datetime) -> List[ChatForSLA]:
        """
        Chats opened within [start, end], one per chat_id.

        A chat fetched by several extracts keeps its latest payload.
        """
        raw_chats = await self._chat_source.list_fetched_since(start)

        latest: Dict[str, Dict[str, Any]] = {}
        for raw in raw_chats:
            chat_id = raw.get("chat_id")
            if chat_id is None:
                continue
            latest[str(chat_id)] = raw

        chats = []
        for raw in latest.values():
            chat = chat_for_sla_from_raw(raw)
            if chat.opened_at is not None and start <= chat.opened_at <= end:
                chats.append(chat)
        return chats

    async def get_metrics(self, start: datetime, end: datetime) -> SLAReport:
        """
        Aggregate SLA metrics for chats opened between start and end.

        Args:
            start: Period start (naive values are UTC)
            end: Period end (inclusive)

        Returns:
            SLAReport with per-metric compliance, response-time
            percentiles and overall per-chat compliance
        """
        start = ensure_utc(start)
        end = ensure_utc(end)
        if end < start:
            raise ValidationException(
                "end must not be before start",
                {"start": start.isoformat(), "end": end.isoformat()}
            )

        config = self.get_config()
        chats = await self._load_chats(start, end)

        overall = OverallCompliance()
        first_response_ms: List[float] = []
        avg_response_ms: List[float] = []

        for chat in chats:
            overall.add(calculate_chat_sla(chat, config))
            response_times = calculate_chat_response_times(chat.messages)
            if response_times.first_response_time_ms is not None:
                first_response_ms.append(response_times.first_response_time_ms)
            if response_times.avg_response_time_ms is not None:
                avg_response_ms.append(response_times.avg_response_time_ms)

        report = SLAReport(
            start=start,
            end=end,
            total_chats=len(chats),
            metrics=calculate_sla_metrics(chats, config),
            first_response_times=calculate_response_time_metrics(first_response_ms),
            avg_response_times=calculate_response_time_metrics(avg_response_ms),
            overall=overall,
        )

        logger.info(
            "SLA metrics calculated",
            extra={
                "start": start.isoformat(),
                "end": end.isoformat(),
                "total_chats": report.total_chats,
                "overall_compliance_rate": overall.compliance_rate,
            }
        )
        return report

    async def get_chat_sla(self, chat_id: str) -> Optional[ChatSLAReport]:
        """
        Per-chat SLA metrics.

        Returns:
            ChatSLAReport or None if the chat has never been extracted
        """
        raw = await self._chat_source.get_latest(chat_id)
        if raw is None:
            return None

        chat = chat_for_sla_from_raw(raw)
        return ChatSLAReport(
            chat=chat,
            metrics=calculate_chat_sla(chat, self.get_config()),
            response_times=calculate_chat_response_times(chat.messages),
        )
