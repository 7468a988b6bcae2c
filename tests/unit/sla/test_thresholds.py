import pytest
from pydantic import ValidationError

from chatpulse.sla.domain import (
    ChatForSLA,
    EnabledMetrics,
    MetricThresholds,
    OfficeHoursConfig,
    SLAConfig,
    check_sla_compliance,
    get_sla_threshold,
)


@pytest.fixture
def config():
    return SLAConfig()


@pytest.mark.parametrize("provider,priority,metric,expected", [
    ("whatsapp", "urgent", "pickup", 1),
    ("whatsapp", "urgent", "resolution", 10),
    ("whatsapp", None, "resolution", 20),
    ("facebook", None, "first_response", 10),
    (None, "low", "pickup", 5),
    (None, None, "resolution", 30),
    (None, None, "first_response", 5),
])
def test_priority_then_channel_then_default(config, provider, priority, metric, expected):
    chat = ChatForSLA(chat_id="1", provider=provider, priority=priority)

    assert get_sla_threshold(chat, config, metric) == expected


def test_lookup_is_case_insensitive(config):
    chat = ChatForSLA(chat_id="1", provider="WhatsApp", priority="URGENT")

    assert get_sla_threshold(chat, config, "first_response") == 1


def test_unset_priority_metric_falls_through_to_channel():
    config = SLAConfig(priority_overrides={"high": MetricThresholds(pickup=4)})
    chat = ChatForSLA(chat_id="1", provider="whatsapp", priority="high")

    assert get_sla_threshold(chat, config, "pickup") == 4
    assert get_sla_threshold(chat, config, "first_response") == 3


def test_unknown_provider_uses_default(config):
    chat = ChatForSLA(chat_id="1", provider="sms")

    assert get_sla_threshold(chat, config, "pickup") == 2


def test_check_sla_compliance_is_inclusive():
    assert check_sla_compliance(300000, 5) is True
    assert check_sla_compliance(300001, 5) is False
    assert check_sla_compliance(0, 1) is True


def test_enabled_metrics_default():
    assert EnabledMetrics().enabled() == ["pickup", "first_response"]
    assert EnabledMetrics(resolution=True, pickup=False).enabled() == ["first_response", "resolution"]


# ========== Validation ==========

@pytest.mark.parametrize("kwargs", [
    {"pickup_threshold": 0},
    {"first_response_threshold": 241},
    {"resolution_threshold": 1441},
    {"pickup_target": 101},
    {"channel_overrides": {"sms": {"pickup": 1}}},
    {"priority_overrides": {"critical": {"pickup": 1}}},
    {"channel_overrides": {"whatsapp": {"pickup": 61}}},
])
def test_invalid_config_is_rejected(kwargs):
    with pytest.raises(ValidationError):
        SLAConfig(**kwargs)


@pytest.mark.parametrize("kwargs", [
    {"start": "9:00"},
    {"end": "24:00"},
    {"start": "17:00", "end": "09:00"},
    {"working_days": [0, 1]},
    {"working_days": [8]},
    {"timezone": "Mars/Olympus_Mons"},
])
def test_invalid_office_hours_are_rejected(kwargs):
    with pytest.raises(ValidationError):
        OfficeHoursConfig(**kwargs)


def test_office_hours_parse_times():
    office_hours = OfficeHoursConfig(start="08:30", end="18:15", working_days=[5, 1, 1])

    assert office_hours.start_time.hour == 8
    assert office_hours.start_time.minute == 30
    assert office_hours.end_time.minute == 15
    assert office_hours.working_days == [1, 5]


def test_config_is_immutable(config):
    with pytest.raises(ValidationError):
        config.pickup_threshold = 10
