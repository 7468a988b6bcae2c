"""
Extract Statistics
==================

Data-quality counters collected while an extract pages through B2Chat.
The summaries end up in the extract log metadata.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from chatpulse.b2chat.domain.records import ChatRecord, ContactRecord
from chatpulse.shared.domain import parse_timestamp, to_iso_date


@dataclass
class ExtractStats:
    """Counters shared by every entity type."""
    records: int = 0
    earliest_date: Optional[datetime] = None
    latest_date: Optional[datetime] = None
    api_response_times_ms: List[float] = field(default_factory=list)

    def track_date(self, value: Any) -> None:
        parsed = parse_timestamp(value)
        if parsed is None:
            return
        if self.earliest_date is None or parsed < self.earliest_date:
            self.earliest_date = parsed
        if self.latest_date is None or parsed > self.latest_date:
            self.latest_date = parsed

    def record_api_call(self, duration_ms: float) -> None:
        self.api_response_times_ms.append(duration_ms)

    @property
    def avg_api_response_time_ms(self) -> float:
        if not self.api_response_times_ms:
            return 0.0
        return sum(self.api_response_times_ms) / len(self.api_response_times_ms)

    def _base_summary(
        self,
        requested_from: Optional[datetime],
        requested_to: Optional[datetime],
        duration_ms: int
    ) -> Dict[str, Any]:
        records_per_second = (
            round(self.records / (duration_ms / 1000), 1) if duration_ms > 0 else 0
        )
        return {
            "date_range": {
                "requested": {
                    "from": to_iso_date(requested_from),
                    "to": to_iso_date(requested_to),
                },
                "actual": {
                    "earliest": to_iso_date(self.earliest_date),
                    "latest": to_iso_date(self.latest_date),
                },
            },
            "performance": {
                "avg_api_response_time_ms": round(self.avg_api_response_time_ms),
                "total_duration_ms": duration_ms,
                "records_per_second": records_per_second,
            },
        }


@dataclass
class ContactExtractStats(ExtractStats):
    """Field coverage across extracted contacts."""
    with_mobile: int = 0
    with_email: int = 0
    with_identification: int = 0
    with_custom_attributes: int = 0

    def add(self, contact: ContactRecord) -> None:
        self.records += 1
        if contact.mobile or contact.mobile_number:
            self.with_mobile += 1
        if contact.email:
            self.with_email += 1
        if contact.identification:
            self.with_identification += 1
        if contact.custom_attributes:
            self.with_custom_attributes += 1
        self.track_date(contact.updated or contact.created)

    def summary(
        self,
        requested_from: Optional[datetime] = None,
        requested_to: Optional[datetime] = None,
        duration_ms: int = 0
    ) -> Dict[str, Any]:
        return {
            "total_contacts": self.records,
            "with_mobile": self.with_mobile,
            "with_email": self.with_email,
            "with_identification": self.with_identification,
            "with_custom_attributes": self.with_custom_attributes,
            **self._base_summary(requested_from, requested_to, duration_ms),
        }


@dataclass
class ChatExtractStats(ExtractStats):
    """Relationship and message coverage across extracted chats."""
    with_agent: int = 0
    with_contact: int = 0
    with_department: int = 0
    with_messages: int = 0
    empty_messages: int = 0
    total_messages: int = 0
    by_provider: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)

    def add(self, chat: ChatRecord) -> None:
        self.records += 1
        if chat.agent:
            self.with_agent += 1
        if chat.contact:
            self.with_contact += 1
        if chat.department:
            self.with_department += 1

        messages = chat.messages or []
        if messages:
            self.with_messages += 1
            self.total_messages += len(messages)
        else:
            self.empty_messages += 1

        self.by_provider[chat.provider] = self.by_provider.get(chat.provider, 0) + 1
        self.by_status[chat.status] = self.by_status.get(chat.status, 0) + 1
        self.track_date(chat.created_at)

    @property
    def avg_messages_per_chat(self) -> float:
        if self.with_messages == 0:
            return 0.0
        return round(self.total_messages / self.with_messages, 1)

    def summary(
        self,
        requested_from: Optional[datetime] = None,
        requested_to: Optional[datetime] = None,
        duration_ms: int = 0
    ) -> Dict[str, Any]:
        return {
            "total_chats": self.records,
            "with_agent": self.with_agent,
            "with_contact": self.with_contact,
            "with_department": self.with_department,
            "with_messages": self.with_messages,
            "empty_messages": self.empty_messages,
            "avg_messages_per_chat": self.avg_messages_per_chat,
            "by_provider": dict(self.by_provider),
            "by_status": dict(self.by_status),
            **self._base_summary(requested_from, requested_to, duration_ms),
        }
