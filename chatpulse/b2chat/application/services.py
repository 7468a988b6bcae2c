"""
B2Chat Application Services
===========================

Extract stage of the sync pipeline.

ExtractService pages through the B2Chat export endpoints, routing every
request through the RateLimitedQueue, stores the raw records in staging
tables and keeps one extract log row per run.
"""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar

from chatpulse.b2chat.domain import (
    ChatExtractStats,
    ChatRecord,
    ContactExtractStats,
    ContactRecord,
    DateRange,
    Page,
)
from chatpulse.config import EntityType, ExtractStatus
from chatpulse.core.exceptions import B2ChatAPIError, ValidationException
from chatpulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TIME_RANGE_PRESETS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90}
VALID_TIME_RANGE_PRESETS = [*TIME_RANGE_PRESETS, "full"]
DEFAULT_MAX_PAGES = 100
DEFAULT_MAX_ATTEMPTS = 3


# ========== Repository Interfaces (Dependency Inversion) ==========

class IRawRecordRepository(ABC):
    """Interface for the raw staging tables."""

    @abstractmethod
    async def save_contacts(
        self,
        sync_id: str,
        contacts: List[ContactRecord],
        page: int,
        offset: int
    ) -> int:
        """Stage one page of contacts; returns rows written."""

    @abstractmethod
    async def save_chats(
        self,
        sync_id: str,
        chats: List[ChatRecord],
        page: int,
        offset: int
    ) -> int:
        """Stage one page of chats; returns rows written."""


class IExtractLogRepository(ABC):
    """Interface for extract run bookkeeping."""

    @abstractmethod
    async def create(
        self,
        sync_id: str,
        entity_type: str,
        operation: str,
        batch_size: int,
        date_range: Optional[DateRange] = None,
        time_range_preset: Optional[str] = None
    ) -> None:
        """Create a running extract log."""

    @abstractmethod
    async def update(self, sync_id: str, **fields: Any) -> None:
        """Update progress or final state of an extract log."""

    @abstractmethod
    async def get_by_sync_id(self, sync_id: str) -> Optional[Any]:
        """Get an extract log by sync id."""

    @abstractmethod
    async def list_recent(
        self,
        limit: int = 20,
        entity_type: Optional[str] = None
    ) -> List[Any]:
        """Most recent extract logs, newest first."""


# ========== Options / Results ==========

def preset_to_date_range(
    preset: Optional[str],
    now: Optional[datetime] = None
) -> Optional[DateRange]:
    """Convert a time range preset to a range ending now; 'full' means none."""
    if not preset or preset == "full":
        return None
    if preset not in TIME_RANGE_PRESETS:
        raise ValidationException(
            f"Unknown time range preset: {preset}",
            {"allowed": VALID_TIME_RANGE_PRESETS}
        )
    end = now or datetime.now(timezone.utc)
    return DateRange(start_date=end - timedelta(days=TIME_RANGE_PRESETS[preset]), end_date=end)


@dataclass
class ExtractOptions:
    """How one extract run pages through B2Chat."""
    batch_size: int = 1000
    full_sync: bool = False
    date_range: Optional[DateRange] = None
    time_range_preset: Optional[str] = None
    # Defaults to unlimited for a full sync, DEFAULT_MAX_PAGES otherwise
    max_pages: Optional[int] = None
    cancel_event: Optional[asyncio.Event] = None

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValidationException("batch_size must be >= 1")
        if self.max_pages is not None and self.max_pages < 1:
            raise ValidationException("max_pages must be >= 1")
        if (
            self.time_range_preset is not None
            and self.time_range_preset not in VALID_TIME_RANGE_PRESETS
        ):
            raise ValidationException(
                f"Unknown time range preset: {self.time_range_preset}",
                {"allowed": VALID_TIME_RANGE_PRESETS}
            )

    @property
    def operation(self) -> str:
        return "full" if self.full_sync else "incremental"

    def resolve_date_range(self, now: Optional[datetime] = None) -> Optional[DateRange]:
        """A preset wins over an explicit date range."""
        if self.time_range_preset:
            return preset_to_date_range(self.time_range_preset, now)
        return self.date_range

    def resolve_max_pages(self) -> Optional[int]:
        if self.max_pages is not None:
            return self.max_pages
        return None if self.full_sync else DEFAULT_MAX_PAGES


@dataclass
class ExtractResult:
    """Outcome of one extract run."""
    sync_id: str
    entity_type: str
    status: str
    records_fetched: int = 0
    records_failed: int = 0
    total_pages: int = 0
    api_call_count: int = 0
    duration_ms: int = 0
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# ========== Retry ==========

async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    context: Optional[Dict[str, Any]] = None
) -> T:
    """
    Await ``operation`` retrying retryable B2Chat errors.

    Backs off 2 ** attempt seconds between attempts. Non-retryable errors
    and the last failure propagate unchanged.
    """
    for attempt in range(max_attempts):
        try:
            return await operation()
        except B2ChatAPIError as e:
            if not e.is_retryable() or attempt == max_attempts - 1:
                raise
            delay = 2 ** attempt
            logger.warning(
                f"B2Chat call failed, retrying in {delay}s",
                extra={
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "status_code": e.status_code,
                    "error": e.message,
                    **(context or {}),
                }
            )
            await sleep(delay)
    raise RuntimeError("max_attempts must be >= 1")


# ========== Cancellation ==========

class ExtractCancellationRegistry:
    """Cancellation events for in-flight extracts, keyed by sync id."""

    def __init__(self):
        self._events: Dict[str, asyncio.Event] = {}

    def register(self, sync_id: str) -> asyncio.Event:
        event = asyncio.Event()
        self._events[sync_id] = event
        return event

    def unregister(self, sync_id: str) -> None:
        self._events.pop(sync_id, None)

    def cancel(self, sync_id: str) -> bool:
        """Request cancellation; False when no such extract is running."""
        event = self._events.get(sync_id)
        if event is None:
            return False
        event.set()
        return True

    @property
    def active_sync_ids(self) -> Set[str]:
        return set(self._events)


extract_cancellations = ExtractCancellationRegistry()


# ========== Extract Service ==========

@dataclass
class _EntityExtract:
    entity_type: str
    fetch: Callable[[int, int, Optional[DateRange]], Awaitable[Page]]
    store: Callable[[str, List[Any], int, int], Awaitable[int]]
    stats: Any
    cancel_events: List[asyncio.Event] = field(default_factory=list)


class ExtractService:
    """
    Pages B2Chat exports into the staging tables.

    Every page request goes through the rate-limited queue; retryable API
    errors are retried on top of the queue, so each attempt waits its turn.
    """

    def __init__(
        self,
        client: Any,
        queue: Any,
        raw_repository: IRawRecordRepository,
        log_repository: IExtractLogRepository,
        cancellations: Optional[ExtractCancellationRegistry] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS
    ):
        self._client = client
        self._queue = queue
        self._raw_repo = raw_repository
        self._log_repo = log_repository
        self._cancellations = cancellations
        self._max_attempts = max_attempts

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def extract_contacts(self, options: Optional[ExtractOptions] = None) -> ExtractResult:
        """Extract contacts into raw_contacts."""
        return await self._extract(
            _EntityExtract(
                entity_type=EntityType.CONTACTS,
                fetch=lambda page, limit, date_range: self._client.get_contacts(
                    page=page, limit=limit, date_range=date_range
                ),
                store=self._raw_repo.save_contacts,
                stats=ContactExtractStats(),
            ),
            options or ExtractOptions(),
        )

    async def extract_chats(self, options: Optional[ExtractOptions] = None) -> ExtractResult:
        """Extract chats (with messages) into raw_chats."""
        return await self._extract(
            _EntityExtract(
                entity_type=EntityType.CHATS,
                fetch=lambda page, limit, date_range: self._client.get_chats(
                    page=page, limit=limit, date_range=date_range
                ),
                store=self._raw_repo.save_chats,
                stats=ChatExtractStats(),
            ),
            options or ExtractOptions(),
        )

    async def extract_all(self, options: Optional[ExtractOptions] = None) -> Dict[str, ExtractResult]:
        """Contacts first, then chats."""
        return {
            EntityType.CONTACTS: await self.extract_contacts(options),
            EntityType.CHATS: await self.extract_chats(options),
        }

    async def _extract(self, job: _EntityExtract, options: ExtractOptions) -> ExtractResult:
        sync_id = f"extract_{job.entity_type}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"
        started = time.perf_counter()
        date_range = options.resolve_date_range()
        max_pages = options.resolve_max_pages()
        result = ExtractResult(
            sync_id=sync_id,
            entity_type=job.entity_type,
            status=ExtractStatus.RUNNING,
        )

        if options.cancel_event is not None:
            job.cancel_events.append(options.cancel_event)
        if self._cancellations is not None:
            job.cancel_events.append(self._cancellations.register(sync_id))

        await self._log_repo.create(
            sync_id=sync_id,
            entity_type=job.entity_type,
            operation=options.operation,
            batch_size=options.batch_size,
            date_range=date_range,
            time_range_preset=options.time_range_preset or ("full" if options.full_sync else None),
        )
        logger.info(
            f"Extract {job.entity_type} started",
            extra={
                "sync_id": sync_id,
                "operation": options.operation,
                "batch_size": options.batch_size,
                "max_pages": max_pages,
            }
        )

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            page_number = 1
            has_more = True
            while has_more and (max_pages is None or page_number <= max_pages):
                if any(event.is_set() for event in job.cancel_events):
                    return await self._finish_cancelled(result, elapsed_ms())

                api_started = time.perf_counter()
                page = await call_with_retry(
                    lambda: self._queue.add(
                        lambda: job.fetch(page_number, options.batch_size, date_range)
                    ),
                    max_attempts=self._max_attempts,
                    sleep=self._sleep,
                    context={"sync_id": sync_id, "page": page_number},
                )
                job.stats.record_api_call((time.perf_counter() - api_started) * 1000)
                result.api_call_count += 1
                has_more = page.pagination.has_next_page

                for record in page.data:
                    job.stats.add(record)

                offset = (page_number - 1) * options.batch_size
                if page.data:
                    await job.store(sync_id, page.data, page_number, offset)

                result.records_fetched += len(page.data)
                result.records_failed += len(page.errors)
                result.total_pages = page_number

                await self._log_repo.update(
                    sync_id,
                    records_fetched=result.records_fetched,
                    records_failed=result.records_failed,
                    total_pages=result.total_pages,
                    api_call_count=result.api_call_count,
                )
                logger.info(
                    f"Extract {job.entity_type} progress",
                    extra={
                        "sync_id": sync_id,
                        "page": page_number,
                        "records_fetched": result.records_fetched,
                        "page_size": len(page.data),
                    }
                )

                page_number += 1
                if not page.data:
                    break

            result.status = ExtractStatus.COMPLETED
            result.duration_ms = elapsed_ms()
            summary = job.stats.summary(
                requested_from=date_range.start_date if date_range else None,
                requested_to=date_range.end_date if date_range else None,
                duration_ms=result.duration_ms,
            )
            await self._log_repo.update(
                sync_id,
                status=ExtractStatus.COMPLETED,
                completed_at=datetime.now(timezone.utc),
                records_fetched=result.records_fetched,
                records_failed=result.records_failed,
                total_pages=result.total_pages,
                api_call_count=result.api_call_count,
                extract_metadata={"summary": summary},
            )
            logger.info(
                f"Extract {job.entity_type} completed",
                extra={
                    "sync_id": sync_id,
                    "records_fetched": result.records_fetched,
                    "records_failed": result.records_failed,
                    "pages": result.total_pages,
                    "duration_ms": result.duration_ms,
                }
            )
            return result

        except Exception as e:
            return await self._finish_failed(result, e, elapsed_ms())

        finally:
            if self._cancellations is not None:
                self._cancellations.unregister(sync_id)

    async def _finish_cancelled(self, result: ExtractResult, duration_ms: int) -> ExtractResult:
        result.status = ExtractStatus.CANCELLED
        result.duration_ms = duration_ms
        await self._log_repo.update(
            result.sync_id,
            status=ExtractStatus.CANCELLED,
            completed_at=datetime.now(timezone.utc),
            records_fetched=result.records_fetched,
            records_failed=result.records_failed,
            total_pages=result.total_pages,
            api_call_count=result.api_call_count,
        )
        logger.info(
            f"Extract {result.entity_type} cancelled",
            extra={"sync_id": result.sync_id, "records_fetched": result.records_fetched}
        )
        return result

    async def _finish_failed(
        self,
        result: ExtractResult,
        error: Exception,
        duration_ms: int
    ) -> ExtractResult:
        result.status = ExtractStatus.FAILED
        result.duration_ms = duration_ms
        result.error_message = str(error)

        error_details: Dict[str, Any] = {}
        if isinstance(error, B2ChatAPIError):
            result.error_message = error.message
            error_details = {
                "status_code": error.status_code,
                "endpoint": error.endpoint,
                "request_url": error.request_url,
                "raw_response": error.response,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

        await self._log_repo.update(
            result.sync_id,
            status=ExtractStatus.FAILED,
            completed_at=datetime.now(timezone.utc),
            error_message=result.error_message,
            records_fetched=result.records_fetched,
            records_failed=result.records_failed,
            total_pages=result.total_pages,
            api_call_count=result.api_call_count,
            extract_metadata={"error": error_details} if error_details else None,
        )
        logger.error(
            f"Extract {result.entity_type} failed",
            extra={
                "sync_id": result.sync_id,
                "error": result.error_message,
                "records_fetched": result.records_fetched,
                "error_details": error_details,
            },
            exc_info=not isinstance(error, B2ChatAPIError),
        )
        return result
