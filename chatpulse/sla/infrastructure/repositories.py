"""
SLA Infrastructure Repositories
================================

Read access to the staged raw chats for SLA evaluation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chatpulse.b2chat.infrastructure.models import RawChatModel
from chatpulse.sla.application.services import IChatSource


class SQLAlchemyRawChatReader(IChatSource):
    """Reads chat payloads from the raw_chats staging table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_fetched_since(self, since: datetime) -> List[Dict[str, Any]]:
        result = await self._session.execute(
            select(RawChatModel.raw_data)
            .where(RawChatModel.fetched_at >= since)
            .order_by(RawChatModel.fetched_at.asc())
        )
        return [row for row in result.scalars().all() if isinstance(row, dict)]

    async def get_latest(self, chat_id: str) -> Optional[Dict[str, Any]]:
        result = await self._session.execute(
            select(RawChatModel.raw_data)
            .where(RawChatModel.b2chat_chat_id == chat_id)
            .order_by(RawChatModel.fetched_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
