import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from chatpulse.b2chat.application.services import (
    IExtractLogRepository,
    IRawRecordRepository,
)
from chatpulse.b2chat.infrastructure.client import B2ChatClient
from chatpulse.b2chat.infrastructure.queue import RateLimitedQueue

BASE_URL = "https://api.b2chat.test"
TOKEN_BODY = {"access_token": "test-token", "expires_in": 3600}


class FakeClockQueue(RateLimitedQueue):
    """RateLimitedQueue on a manual clock; sleeps advance the clock instantly."""

    def __init__(self, *args, start: float = 1000.0, **kwargs):
        self.clock = start
        self.sleeps: List[float] = []
        super().__init__(*args, **kwargs)

    def _now(self) -> float:
        return self.clock

    async def _sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.clock += seconds
        await asyncio.sleep(0)


class ImmediateQueue:
    """Queue stand-in that runs each operation straight away."""

    def __init__(self):
        self.calls = 0

    async def add(self, fn):
        self.calls += 1
        return await fn()


class InMemoryRawRecordRepository(IRawRecordRepository):
    def __init__(self):
        self.contacts: List[Dict[str, Any]] = []
        self.chats: List[Dict[str, Any]] = []

    async def save_contacts(self, sync_id, contacts, page, offset):
        self.contacts.append({"sync_id": sync_id, "records": list(contacts), "page": page, "offset": offset})
        return len(contacts)

    async def save_chats(self, sync_id, chats, page, offset):
        self.chats.append({"sync_id": sync_id, "records": list(chats), "page": page, "offset": offset})
        return len(chats)


class InMemoryExtractLogRepository(IExtractLogRepository):
    def __init__(self):
        self.logs: Dict[str, Dict[str, Any]] = {}

    async def create(
        self,
        sync_id,
        entity_type,
        operation,
        batch_size,
        date_range=None,
        time_range_preset=None
    ):
        self.logs[sync_id] = {
            "sync_id": sync_id,
            "entity_type": entity_type,
            "operation": operation,
            "status": "running",
            "batch_size": batch_size,
            "date_range": date_range,
            "time_range_preset": time_range_preset,
        }

    async def update(self, sync_id, **fields):
        self.logs[sync_id].update(fields)

    async def get_by_sync_id(self, sync_id):
        return self.logs.get(sync_id)

    async def list_recent(self, limit=20, entity_type=None):
        logs = [
            log for log in self.logs.values()
            if entity_type is None or log["entity_type"] == entity_type
        ]
        return logs[:limit]


def contact_payload(index: int, **overrides: Any) -> Dict[str, Any]:
    payload = {
        "id": f"c-{index}",
        "name": f"Contact {index}",
        "mobile": f"+5730000000{index:02d}",
        "email": f"contact{index}@example.com",
        "tags": [{"name": "vip", "assigned_at": 1700000000}],
        "created": "2024-01-10 08:00:00",
        "updated": "2024-01-15 09:30:00",
    }
    payload.update(overrides)
    return payload


def chat_payload(chat_id: str, **overrides: Any) -> Dict[str, Any]:
    payload = {
        "chat_id": chat_id,
        "provider": "WHATSAPPB2CHAT",
        "status": "CLOSED",
        "created_at": "2024-01-15T10:00:00Z",
        "opened_at": "2024-01-15T10:00:00Z",
        "picked_up_at": "2024-01-15T10:00:45Z",
        "response_at": "2024-01-15T10:02:00Z",
        "closed_at": "2024-01-15T10:30:00Z",
        "contact": {"name": "Ana", "mobile_number": "+573001112233"},
        "agent": {"name": "Luis"},
        "messages": [
            {"created_at": "2024-01-15T10:00:00Z", "incoming": True, "type": "TEXT", "body": "hola"},
            {"created_at": "2024-01-15T10:02:00Z", "incoming": False, "type": "text", "body": "buenas"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def fake_queue_factory():
    return FakeClockQueue


@pytest.fixture
def immediate_queue():
    return ImmediateQueue()


@pytest.fixture
def raw_repository():
    return InMemoryRawRecordRepository()


@pytest.fixture
def log_repository():
    return InMemoryExtractLogRepository()


@pytest.fixture
def make_client():
    """
    Build a B2ChatClient on an httpx.MockTransport.

    ``handler`` receives every non-token request; token requests are
    answered with TOKEN_BODY unless ``token_handler`` is given.
    """
    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        token_handler: Optional[Callable[[httpx.Request], httpx.Response]] = None
    ) -> B2ChatClient:
        def dispatch(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/token":
                if token_handler is not None:
                    return token_handler(request)
                return httpx.Response(200, json=TOKEN_BODY)
            return handler(request)

        return B2ChatClient(
            base_url=BASE_URL,
            username="user",
            password="secret",
            timeout=5,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(dispatch)),
        )

    return _make


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
