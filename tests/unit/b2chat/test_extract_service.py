import asyncio
from datetime import datetime, timezone

import pytest

from chatpulse.b2chat.application.services import (
    ExtractCancellationRegistry,
    ExtractOptions,
    ExtractService,
    call_with_retry,
    preset_to_date_range,
)
from chatpulse.b2chat.domain import (
    ChatRecord,
    ContactRecord,
    Page,
    Pagination,
    RecordParseError,
    normalize_chat,
    normalize_contact,
)
from chatpulse.config import ExtractStatus
from chatpulse.core.exceptions import B2ChatAPIError, ValidationException
from conftest import chat_payload, contact_payload


def contact_page(start, count, has_next_page, errors=None):
    data = [
        ContactRecord.model_validate(normalize_contact(contact_payload(i), i))
        for i in range(start, start + count)
    ]
    return Page(
        data=data,
        pagination=Pagination(total=0, exported=count, has_next_page=has_next_page),
        errors=errors or [],
    )


def chat_page(chat_ids, has_next_page=False):
    data = [ChatRecord.model_validate(normalize_chat(chat_payload(c), 0)) for c in chat_ids]
    return Page(
        data=data,
        pagination=Pagination(total=len(data), exported=len(data), has_next_page=has_next_page),
    )


@pytest.fixture
def client(mocker):
    return mocker.Mock(
        get_contacts=mocker.AsyncMock(),
        get_chats=mocker.AsyncMock(),
    )


@pytest.fixture
def service(client, immediate_queue, raw_repository, log_repository):
    return ExtractService(client, immediate_queue, raw_repository, log_repository)


# ========== Paging ==========

async def test_pages_until_no_next_page(service, client, immediate_queue, raw_repository, log_repository):
    client.get_contacts.side_effect = [
        contact_page(0, 100, True),
        contact_page(100, 40, False),
    ]

    result = await service.extract_contacts(ExtractOptions(batch_size=100))

    assert result.status == ExtractStatus.COMPLETED
    assert result.records_fetched == 140
    assert result.total_pages == 2
    assert result.api_call_count == 2
    assert immediate_queue.calls == 2
    assert [c.kwargs["page"] for c in client.get_contacts.await_args_list] == [1, 2]
    assert [(b["page"], b["offset"]) for b in raw_repository.contacts] == [(1, 0), (2, 100)]

    log = log_repository.logs[result.sync_id]
    assert log["status"] == ExtractStatus.COMPLETED
    assert log["operation"] == "incremental"
    assert log["records_fetched"] == 140
    assert log["extract_metadata"]["summary"]["total_contacts"] == 140


async def test_parse_errors_are_counted_not_fatal(service, client):
    error = RecordParseError(index=3, raw={"tags": ["vip"]}, error="bad tag")
    client.get_contacts.return_value = contact_page(0, 9, False, errors=[error])

    result = await service.extract_contacts()

    assert result.status == ExtractStatus.COMPLETED
    assert result.records_fetched == 9
    assert result.records_failed == 1


async def test_empty_page_stops_extract(service, client, raw_repository):
    client.get_chats.side_effect = [
        chat_page(["1", "2"], True),
        Page(data=[], pagination=Pagination(total=2, exported=0, has_next_page=True)),
    ]

    result = await service.extract_chats()

    assert result.status == ExtractStatus.COMPLETED
    assert result.records_fetched == 2
    assert client.get_chats.await_count == 2
    # Empty pages are not staged
    assert len(raw_repository.chats) == 1


async def test_max_pages_caps_incremental_extract(service, client):
    client.get_chats.return_value = chat_page(["1"], True)

    result = await service.extract_chats(ExtractOptions(max_pages=3))

    assert result.total_pages == 3
    assert client.get_chats.await_count == 3


def test_full_sync_has_no_page_cap():
    assert ExtractOptions(full_sync=True).resolve_max_pages() is None
    assert ExtractOptions().resolve_max_pages() == 100
    assert ExtractOptions(full_sync=True).operation == "full"


async def test_preset_becomes_date_range(service, client, log_repository):
    client.get_contacts.return_value = contact_page(0, 1, False)

    result = await service.extract_contacts(ExtractOptions(time_range_preset="7d"))

    date_range = client.get_contacts.await_args.kwargs["date_range"]
    assert (date_range.end_date - date_range.start_date).days == 7
    assert log_repository.logs[result.sync_id]["time_range_preset"] == "7d"


def test_preset_to_date_range():
    now = datetime(2024, 1, 31, tzinfo=timezone.utc)

    date_range = preset_to_date_range("30d", now)

    assert date_range.start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert date_range.end_date == now
    assert preset_to_date_range("full") is None
    assert preset_to_date_range(None) is None
    with pytest.raises(ValidationException):
        preset_to_date_range("2w")


@pytest.mark.parametrize("kwargs", [
    {"batch_size": 0},
    {"max_pages": 0},
    {"time_range_preset": "yesterday"},
])
def test_invalid_options(kwargs):
    with pytest.raises(ValidationException):
        ExtractOptions(**kwargs)


# ========== Failures ==========

async def test_retryable_error_is_retried(service, client, mocker):
    sleep = mocker.patch.object(service, "_sleep", mocker.AsyncMock())
    client.get_contacts.side_effect = [
        B2ChatAPIError("unavailable", 503),
        contact_page(0, 5, False),
    ]

    result = await service.extract_contacts()

    assert result.status == ExtractStatus.COMPLETED
    assert result.records_fetched == 5
    assert [c.args[0] for c in sleep.await_args_list] == [1]


async def test_non_retryable_error_fails_extract(service, client, log_repository, mocker):
    sleep = mocker.patch.object(service, "_sleep", mocker.AsyncMock())
    client.get_chats.side_effect = B2ChatAPIError(
        "B2Chat API request failed: token revoked",
        401,
        {"message": "token revoked"},
        "/chats/export",
        "https://api.b2chat.test/chats/export?offset=0&limit=1000",
    )

    result = await service.extract_chats()

    assert result.status == ExtractStatus.FAILED
    assert result.error_message == "B2Chat API request failed: token revoked"
    sleep.assert_not_awaited()

    log = log_repository.logs[result.sync_id]
    assert log["status"] == ExtractStatus.FAILED
    assert log["extract_metadata"]["error"]["status_code"] == 401
    assert log["extract_metadata"]["error"]["endpoint"] == "/chats/export"
    assert log["extract_metadata"]["error"]["raw_response"] == {"message": "token revoked"}


async def test_storage_failure_fails_extract(service, client, raw_repository, mocker):
    client.get_contacts.return_value = contact_page(0, 2, False)
    mocker.patch.object(raw_repository, "save_contacts", side_effect=OSError("disk full"))

    result = await service.extract_contacts()

    assert result.status == ExtractStatus.FAILED
    assert result.error_message == "disk full"


# ========== Cancellation ==========

async def test_cancel_event_stops_before_next_page(service, client, log_repository):
    cancel_event = asyncio.Event()

    async def fetch(**kwargs):
        cancel_event.set()
        return contact_page(0, 10, True)

    client.get_contacts.side_effect = fetch

    result = await service.extract_contacts(ExtractOptions(cancel_event=cancel_event))

    assert result.status == ExtractStatus.CANCELLED
    assert result.records_fetched == 10
    assert client.get_contacts.await_count == 1
    assert log_repository.logs[result.sync_id]["status"] == ExtractStatus.CANCELLED


async def test_registry_cancels_running_extract(client, immediate_queue, raw_repository, log_repository):
    registry = ExtractCancellationRegistry()
    service = ExtractService(client, immediate_queue, raw_repository, log_repository, cancellations=registry)

    async def fetch(**kwargs):
        (sync_id,) = registry.active_sync_ids
        assert registry.cancel(sync_id)
        return chat_page(["1"], True)

    client.get_chats.side_effect = fetch

    result = await service.extract_chats()

    assert result.status == ExtractStatus.CANCELLED
    assert registry.active_sync_ids == set()


def test_cancel_unknown_sync_id():
    assert ExtractCancellationRegistry().cancel("extract_chats_0_abc") is False


# ========== call_with_retry ==========

async def test_call_with_retry_backs_off_exponentially(mocker):
    sleep = mocker.AsyncMock()
    operation = mocker.AsyncMock(side_effect=[
        B2ChatAPIError("busy", 429),
        B2ChatAPIError("busy", 502),
        "ok",
    ])

    assert await call_with_retry(operation, max_attempts=3, sleep=sleep) == "ok"
    assert [c.args[0] for c in sleep.await_args_list] == [1, 2]


async def test_call_with_retry_gives_up_after_last_attempt(mocker):
    sleep = mocker.AsyncMock()
    operation = mocker.AsyncMock(side_effect=B2ChatAPIError("down", 500))

    with pytest.raises(B2ChatAPIError):
        await call_with_retry(operation, max_attempts=2, sleep=sleep)

    assert operation.await_count == 2
    assert sleep.await_count == 1
