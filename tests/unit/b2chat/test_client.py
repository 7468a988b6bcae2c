from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from chatpulse.b2chat.domain import DateRange
from chatpulse.b2chat.infrastructure.client import format_api_date
from chatpulse.config import ChatProvider, ChatStatus
from chatpulse.core.exceptions import B2ChatAPIError
from conftest import chat_payload, contact_payload, utc


def contacts_body(contacts, exported=None, total=None):
    body = {"contacts": contacts, "exported": exported if exported is not None else len(contacts)}
    if total is not None:
        body["total"] = total
    return body


# ========== Authentication ==========

async def test_token_is_cached_until_expiry(make_client):
    token_calls = []

    def token_handler(request):
        token_calls.append(request)
        return httpx.Response(200, json={"access_token": f"tok-{len(token_calls)}", "expires_in": 3600})

    client = make_client(lambda request: httpx.Response(200, json={}), token_handler)
    clock = {"now": 1000.0}
    client._now = lambda: clock["now"]

    await client.authenticate()
    await client.authenticate()
    assert len(token_calls) == 1

    # Expiry is stated expiry minus a one minute buffer
    clock["now"] = 1000.0 + 3600 - 61
    await client.authenticate()
    assert len(token_calls) == 1

    clock["now"] = 1000.0 + 3600 - 59
    await client.authenticate()
    assert len(token_calls) == 2


async def test_token_request_uses_basic_auth_and_client_credentials(make_client):
    seen = {}

    def token_handler(request):
        seen["authorization"] = request.headers["Authorization"]
        seen["content_type"] = request.headers["Content-Type"]
        seen["body"] = request.content
        return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})

    client = make_client(lambda request: httpx.Response(200, json={}), token_handler)
    await client.authenticate()

    assert seen["authorization"].startswith("Basic ")
    assert seen["content_type"] == "application/x-www-form-urlencoded"
    assert seen["body"] == b"grant_type=client_credentials"


async def test_rejected_token_exchange_raises_with_status(make_client):
    client = make_client(
        lambda request: httpx.Response(200, json={}),
        lambda request: httpx.Response(401, text="bad credentials"),
    )

    with pytest.raises(B2ChatAPIError) as exc_info:
        await client.authenticate()

    assert exc_info.value.status_code == 401
    assert exc_info.value.is_authentication_error()
    assert exc_info.value.message == "Authentication failed"


async def test_requests_carry_bearer_token_and_json_content_type(make_client):
    seen = {}

    def handler(request):
        seen["authorization"] = request.headers["Authorization"]
        seen["content-type"] = request.headers["Content-Type"]
        return httpx.Response(200, json=contacts_body([]))

    client = make_client(handler)
    await client.get_contacts()

    assert seen["authorization"] == "Bearer test-token"
    assert seen["content-type"] == "application/json"


# ========== Pagination ==========

async def test_offset_is_derived_from_page_and_limit(make_client):
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=contacts_body([]))

    client = make_client(handler)
    await client.get_contacts(page=2, limit=50)

    assert seen["params"] == {"offset": "50", "limit": "50"}


@pytest.mark.parametrize("exported,expected", [(100, True), (42, False)])
async def test_has_next_page_compares_exported_with_limit(make_client, exported, expected):
    contacts = [contact_payload(i) for i in range(exported)]
    client = make_client(lambda request: httpx.Response(200, json=contacts_body(contacts, total=500)))

    page = await client.get_contacts(limit=100)

    assert page.pagination.has_next_page is expected
    assert page.pagination.exported == exported
    assert page.pagination.total == 500


async def test_exported_falls_back_to_parsed_count(make_client):
    body = {"contacts": [contact_payload(i) for i in range(3)]}
    client = make_client(lambda request: httpx.Response(200, json=body))

    page = await client.get_contacts(limit=3)

    assert page.pagination.exported == 3
    assert page.pagination.total == 0
    assert page.pagination.has_next_page is True


async def test_date_range_wins_over_updated_since(make_client):
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"chats": [], "exported": 0})

    client = make_client(handler)
    await client.get_chats(
        updated_since=date(2023, 1, 1),
        date_range=DateRange(start_date=date(2024, 1, 1), end_date=utc(2024, 1, 31, 23, 0)),
    )

    assert seen["params"]["date_range_from"] == "2024-01-01"
    assert seen["params"]["date_range_to"] == "2024-01-31"


async def test_updated_since_filters_contacts_up_to_today(make_client):
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=contacts_body([]))

    client = make_client(handler)
    await client.get_contacts(updated_since=date(2024, 2, 1))

    assert seen["params"]["updated_from"] == "2024-02-01"
    assert "updated_to" in seen["params"]


async def test_invalid_page_arguments(make_client):
    client = make_client(lambda request: httpx.Response(200, json=contacts_body([])))

    with pytest.raises(ValueError):
        await client.get_contacts(page=0)
    with pytest.raises(ValueError):
        await client.get_chats(limit=0)


def test_format_api_date_converts_aware_datetimes_to_utc():
    bogota = timezone(timedelta(hours=-5))
    assert format_api_date(datetime(2024, 1, 15, 22, 0, tzinfo=bogota)) == "2024-01-16"
    assert format_api_date(date(2024, 1, 15)) == "2024-01-15"


# ========== Record parsing ==========

async def test_malformed_record_is_reported_not_raised(make_client):
    contacts = [contact_payload(i) for i in range(10)]
    contacts[3]["tags"] = ["vip"]
    client = make_client(lambda request: httpx.Response(200, json=contacts_body(contacts)))

    page = await client.get_contacts(limit=100)

    assert len(page.data) == 9
    assert len(page.errors) == 1
    assert page.errors[0].index == 3
    assert page.failed_indexes == [3]
    assert [c.id for c in page.data] == [f"c-{i}" for i in range(10) if i != 3]


async def test_contact_name_maps_to_fullname(make_client):
    contact = {"name": "Maria Lopez", "mobile": "+573001234567", "loyalty_level": "gold"}
    client = make_client(lambda request: httpx.Response(200, json=contacts_body([contact])))

    page = await client.get_contacts()

    record = page.data[0]
    assert record.fullname == "Maria Lopez"
    assert record.contact_id == "+573001234567"
    # Unknown upstream fields are kept
    assert record.model_extra["loyalty_level"] == "gold"


async def test_chats_are_normalized(make_client):
    body = {"chats": [chat_payload("991", status="OPEN")], "exported": 1, "total": 1}
    client = make_client(lambda request: httpx.Response(200, json=body))

    page = await client.get_chats()

    chat = page.data[0]
    assert chat.chat_id == "991"
    assert chat.provider == ChatProvider.WHATSAPP
    assert chat.status == ChatStatus.PICKED_UP
    assert chat.responded_at == "2024-01-15T10:02:00Z"
    assert chat.contact["fullname"] == "Ana"
    assert chat.contact["mobile"] == "+573001112233"
    assert [m.type for m in chat.messages] == ["text", "text"]


async def test_missing_collection_returns_empty_page(make_client):
    client = make_client(lambda request: httpx.Response(200, json={"total": 5, "message": "ok"}))

    page = await client.get_contacts()

    assert page.data == []
    assert page.errors == []
    assert page.pagination.has_next_page is False


async def test_non_array_collection_returns_empty_page(make_client):
    client = make_client(lambda request: httpx.Response(200, json={"chats": {"0": {}}}))

    page = await client.get_chats()

    assert page.data == []
    assert page.pagination.has_next_page is False


async def test_envelope_type_error_raises_422(make_client):
    body = {"contacts": [contact_payload(1)], "total": "abc"}
    client = make_client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(B2ChatAPIError) as exc_info:
        await client.get_contacts()

    assert exc_info.value.status_code == 422
    assert exc_info.value.endpoint == "/contacts/export"


# ========== Errors ==========

async def test_unauthorized_resource_is_authentication_error(make_client):
    client = make_client(lambda request: httpx.Response(401, json={"message": "token revoked"}))

    with pytest.raises(B2ChatAPIError) as exc_info:
        await client.get_chats(page=3, limit=10)

    error = exc_info.value
    assert error.status_code == 401
    assert error.is_authentication_error()
    assert not error.is_retryable()
    assert error.message == "B2Chat API request failed: token revoked"
    assert error.endpoint == "/chats/export"
    assert "offset=20" in error.request_url
    assert error.response == {"message": "token revoked"}


async def test_server_error_is_retryable(make_client):
    client = make_client(lambda request: httpx.Response(500, text="Internal Server Error"))

    with pytest.raises(B2ChatAPIError) as exc_info:
        await client.get_contacts()

    assert exc_info.value.is_retryable()
    assert exc_info.value.response == {"message": "Internal Server Error"}


async def test_transport_error_becomes_503(make_client):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(B2ChatAPIError) as exc_info:
        await client.get_contacts()

    assert exc_info.value.status_code == 503
    assert exc_info.value.is_retryable()


async def test_non_json_success_body_raises_422(make_client):
    client = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(B2ChatAPIError) as exc_info:
        await client.get_chats()

    assert exc_info.value.status_code == 422


# ========== Totals ==========

async def test_get_total_counts(make_client):
    def handler(request):
        assert request.url.params["limit"] == "1"
        if request.url.path == "/contacts/export":
            return httpx.Response(200, json={"contacts": [], "total": 1520})
        return httpx.Response(200, json={"chats": [], "total": "n/a"})

    client = make_client(handler)

    assert await client.get_total_counts() == {"contacts": 1520, "chats": 0}


async def test_close_releases_http_client(make_client):
    client = make_client(lambda request: httpx.Response(200, json={}))
    async with client:
        await client.authenticate()

    assert client._http_client is None
