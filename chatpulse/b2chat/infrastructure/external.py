"""
B2Chat Background Sync
======================

Process-wide wiring for the sync module:
- shared B2ChatClient instance
- ExtractService factory bound to a database session
- APScheduler job running periodic incremental extracts
"""

from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession

from chatpulse.b2chat.application.services import (
    ExtractOptions,
    ExtractService,
    extract_cancellations,
)
from chatpulse.b2chat.infrastructure.client import B2ChatClient
from chatpulse.b2chat.infrastructure.queue import get_rate_limited_queue
from chatpulse.b2chat.infrastructure.repositories import (
    SQLAlchemyExtractLogRepository,
    SQLAlchemyRawRecordRepository,
)
from chatpulse.config import settings
from chatpulse.infrastructure.database import get_session_context
from chatpulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_client: Optional[B2ChatClient] = None


def get_b2chat_client() -> B2ChatClient:
    """Shared client so the cached token is reused across requests."""
    global _client
    if _client is None:
        _client = B2ChatClient()
    return _client


async def close_b2chat_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def build_extract_service(session: AsyncSession) -> ExtractService:
    """ExtractService wired to the shared client, queue and a session."""
    return ExtractService(
        client=get_b2chat_client(),
        queue=get_rate_limited_queue(),
        raw_repository=SQLAlchemyRawRecordRepository(session),
        log_repository=SQLAlchemyExtractLogRepository(session),
        cancellations=extract_cancellations,
    )


async def run_incremental_extract() -> None:
    """Scheduled job: extract the last day of contacts and chats."""
    options = ExtractOptions(
        batch_size=settings.sync_batch_size,
        time_range_preset="1d",
    )
    async with get_session_context() as session:
        results = await build_extract_service(session).extract_all(options)

    logger.info(
        "Scheduled extract finished",
        extra={
            entity: {"status": result.status, "records": result.records_fetched}
            for entity, result in results.items()
        }
    )


class SyncScheduler:
    """
    Wrapper for APScheduler running periodic extracts.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_seconds: int):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[None]] = run_incremental_extract) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Sync scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="b2chat_incremental_extract",
            name="B2Chat Incremental Extract",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Sync scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Sync scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
