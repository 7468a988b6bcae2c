"""
B2Chat Infrastructure Repositories
==================================

SQLAlchemy implementations of the staging and extract log repositories.
"""

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chatpulse.b2chat.application.services import (
    IExtractLogRepository,
    IRawRecordRepository,
)
from chatpulse.b2chat.domain import ChatRecord, ContactRecord, DateRange
from chatpulse.b2chat.infrastructure.models import (
    ExtractLogModel,
    RawChatModel,
    RawContactModel,
)
from chatpulse.config import ExtractStatus
from chatpulse.core import RepositoryException
from chatpulse.shared.domain import parse_timestamp

EXTRACT_LOG_FIELDS = {
    "status",
    "completed_at",
    "records_fetched",
    "records_failed",
    "total_pages",
    "api_call_count",
    "error_message",
    "extract_metadata",
}


class SQLAlchemyRawRecordRepository(IRawRecordRepository):
    """
    Stages raw B2Chat records.

    The normalized payload (unknown fields included) is stored as JSON.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def save_contacts(
        self,
        sync_id: str,
        contacts: List[ContactRecord],
        page: int,
        offset: int
    ) -> int:
        """Stage one page of contacts."""
        self._session.add_all([
            RawContactModel(
                sync_id=sync_id,
                b2chat_contact_id=str(
                    contact.contact_id or contact.id or contact.mobile or "unknown"
                ),
                raw_data=contact.model_dump(mode="json"),
                api_page=page,
                api_offset=offset,
            )
            for contact in contacts
        ])
        await self._session.flush()
        return len(contacts)

    async def save_chats(
        self,
        sync_id: str,
        chats: List[ChatRecord],
        page: int,
        offset: int
    ) -> int:
        """Stage one page of chats."""
        self._session.add_all([
            RawChatModel(
                sync_id=sync_id,
                b2chat_chat_id=chat.chat_id,
                raw_data=chat.model_dump(mode="json"),
                api_page=page,
                api_offset=offset,
            )
            for chat in chats
        ])
        await self._session.flush()
        return len(chats)


class SQLAlchemyExtractLogRepository(IExtractLogRepository):
    """Extract log persistence."""

    def __init__(self, session: AsyncSession):
        self._session = session

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
        model = ExtractLogModel(
            sync_id=sync_id,
            entity_type=entity_type,
            operation=operation,
            status=ExtractStatus.RUNNING,
            batch_size=batch_size,
            date_range_from=parse_timestamp(date_range.start_date) if date_range else None,
            date_range_to=parse_timestamp(date_range.end_date) if date_range else None,
            time_range_preset=time_range_preset,
        )
        self._session.add(model)
        await self._session.flush()

    async def update(self, sync_id: str, **fields: Any) -> None:
        """Update an extract log."""
        unknown = set(fields) - EXTRACT_LOG_FIELDS
        if unknown:
            raise RepositoryException(
                f"Unknown extract log fields: {sorted(unknown)}"
            )

        model = await self.get_by_sync_id(sync_id)
        if not model:
            raise RepositoryException(f"Extract log {sync_id} not found")

        for name, value in fields.items():
            setattr(model, name, value)
        await self._session.flush()

    async def get_by_sync_id(self, sync_id: str) -> Optional[ExtractLogModel]:
        """Get an extract log by sync id."""
        stmt = select(ExtractLogModel).where(ExtractLogModel.sync_id == sync_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_recent(
        self,
        limit: int = 20,
        entity_type: Optional[str] = None
    ) -> List[ExtractLogModel]:
        """Most recent extract logs, newest first."""
        stmt = select(ExtractLogModel)
        if entity_type:
            stmt = stmt.where(ExtractLogModel.entity_type == entity_type)
        stmt = stmt.order_by(ExtractLogModel.started_at.desc()).limit(limit)

        result = await self._session.execute(stmt)
        return list(result.scalars().all())
