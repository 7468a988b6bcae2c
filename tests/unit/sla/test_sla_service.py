from datetime import datetime

import pytest

from chatpulse.core.exceptions import ValidationException
from chatpulse.sla.application import IChatSource, ISLAConfigProvider, SLAService
from chatpulse.sla.application.services import OverallCompliance, chat_for_sla_from_raw
from chatpulse.sla.domain import SLAConfig
from conftest import utc


class InMemoryChatSource(IChatSource):
    def __init__(self, raw_chats):
        # Oldest fetch first
        self.raw_chats = raw_chats
        self.since = None

    async def list_fetched_since(self, since):
        self.since = since
        return list(self.raw_chats)

    async def get_latest(self, chat_id):
        matches = [raw for raw in self.raw_chats if raw.get("chat_id") == chat_id]
        return matches[-1] if matches else None


class StaticConfigProvider(ISLAConfigProvider):
    def __init__(self, config=None):
        self.config = config or SLAConfig()

    def get_config(self):
        return self.config


def raw_chat(chat_id, opened_at="2024-01-15T10:00:00Z", **overrides):
    raw = {
        "chat_id": chat_id,
        "provider": "whatsapp",
        "status": "CLOSED",
        "opened_at": opened_at,
        "picked_up_at": "2024-01-15T10:00:45Z",
        "responded_at": "2024-01-15T10:02:00Z",
        "closed_at": "2024-01-15T10:30:00Z",
        "messages": [
            {"created_at": "2024-01-15T10:00:00Z", "incoming": True, "type": "text", "body": "hola"},
            {"created_at": "2024-01-15T10:02:00Z", "incoming": False, "type": "text", "body": "buenas"},
        ],
    }
    raw.update(overrides)
    return raw


def make_service(raw_chats):
    source = InMemoryChatSource(raw_chats)
    return SLAService(source, StaticConfigProvider()), source


async def test_latest_fetch_of_a_chat_wins():
    service, source = make_service([
        raw_chat("1", picked_up_at="2024-01-15T10:05:00Z"),
        raw_chat("1"),
    ])

    report = await service.get_metrics(utc(2024, 1, 15), utc(2024, 1, 16))

    assert source.since == utc(2024, 1, 15)
    assert report.total_chats == 1
    assert report.metrics.pickup.total == 1
    assert report.metrics.pickup.compliant == 1


async def test_only_chats_opened_in_period_count():
    service, _ = make_service([
        raw_chat("1"),
        raw_chat("2", opened_at="2024-01-20T10:00:00Z"),
        raw_chat("3", opened_at=None, created_at="2024-01-15T23:00:00Z"),
    ])

    report = await service.get_metrics(utc(2024, 1, 15), utc(2024, 1, 16))

    assert report.total_chats == 2
    assert report.overall.evaluated == 2


async def test_report_includes_response_times_and_overall():
    service, _ = make_service([raw_chat("1")])

    report = await service.get_metrics(utc(2024, 1, 15), utc(2024, 1, 16))

    assert report.first_response_times.count == 1
    assert report.first_response_times.average == 120000
    assert report.avg_response_times.p50 == 120000
    assert report.overall.compliance_rate == 100
    assert report.overall.to_dict()["compliant"] == 1


async def test_naive_bounds_are_utc():
    service, _ = make_service([raw_chat("1")])

    report = await service.get_metrics(datetime(2024, 1, 15), datetime(2024, 1, 16))

    assert report.start == utc(2024, 1, 15)
    assert report.total_chats == 1


async def test_end_before_start_is_rejected():
    service, _ = make_service([])

    with pytest.raises(ValidationException):
        await service.get_metrics(utc(2024, 1, 16), utc(2024, 1, 15))


async def test_empty_period():
    service, _ = make_service([])

    report = await service.get_metrics(utc(2024, 1, 15), utc(2024, 1, 16))

    assert report.total_chats == 0
    assert report.overall.compliance_rate == 0
    assert report.first_response_times.count == 0


async def test_get_chat_sla():
    service, _ = make_service([raw_chat("1", priority="urgent")])

    report = await service.get_chat_sla("1")

    assert report.chat.priority == "urgent"
    assert report.metrics.time_to_pickup == 45
    # Urgent chats must be picked up within one minute and answered within one
    assert report.metrics.pickup_sla is True
    assert report.metrics.first_response_sla is False
    assert report.response_times.first_response_time_ms == 120000


async def test_get_chat_sla_unknown_chat():
    service, _ = make_service([])

    assert await service.get_chat_sla("missing") is None


def test_chat_for_sla_from_raw():
    chat = chat_for_sla_from_raw({
        "chat_id": 42,
        "created_at": "2024-01-15T10:00:00Z",
        "response_at": "2024-01-15T10:01:00Z",
        "messages": [
            {"created_at": "2024-01-15T10:03:00Z", "incoming": False},
            {"created_at": "not a date", "incoming": True},
            {"created_at": "2024-01-15T10:00:00Z", "incoming": True},
            "garbage",
        ],
    })

    assert chat.chat_id == "42"
    assert chat.opened_at == utc(2024, 1, 15, 10, 0)
    assert chat.response_at == utc(2024, 1, 15, 10, 1)
    assert [m.sender for m in chat.messages] == ["customer", "agent"]


def test_overall_rates_round_half_up():
    overall = OverallCompliance(compliant=1, evaluated=8, compliant_bh=3, evaluated_bh=8)

    assert overall.compliance_rate == 13
    assert overall.compliance_rate_bh == 38
