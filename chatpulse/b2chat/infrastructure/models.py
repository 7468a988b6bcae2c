"""
B2Chat Infrastructure Models
============================

SQLAlchemy ORM models for the extract stage.

Raw payloads are stored exactly as the API returned them (after field
normalization) so a later transform can be re-run without calling B2Chat
again. One ExtractLogModel row is written per extract run.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from chatpulse.infrastructure.database import Base
from chatpulse.config import EntityType, ExtractStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawContactModel(Base):
    """
    Raw contact payload from /contacts/export.

    Maps to the 'raw_contacts' table.
    """
    __tablename__ = "raw_contacts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sync_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    b2chat_contact_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    raw_data: Mapped[Any] = mapped_column(JSON, nullable=False)

    # Position in the export, for debugging pagination
    api_page: Mapped[int] = mapped_column(Integer, nullable=False)
    api_offset: Mapped[int] = mapped_column(Integer, nullable=False)

    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    processing_status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending", index=True)


class RawChatModel(Base):
    """
    Raw chat payload (with nested messages) from /chats/export.

    Maps to the 'raw_chats' table.
    """
    __tablename__ = "raw_chats"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sync_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    b2chat_chat_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    raw_data: Mapped[Any] = mapped_column(JSON, nullable=False)

    api_page: Mapped[int] = mapped_column(Integer, nullable=False)
    api_offset: Mapped[int] = mapped_column(Integer, nullable=False)

    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    processing_status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending", index=True)


class ExtractLogModel(Base):
    """
    One extract run.

    Maps to the 'extract_logs' table.
    """
    __tablename__ = "extract_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sync_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    entity_type: Mapped[EntityType] = mapped_column(String(50), nullable=False)
    operation: Mapped[str] = mapped_column(String(50), nullable=False)  # full or incremental
    status: Mapped[ExtractStatus] = mapped_column(String(50), nullable=False, default=ExtractStatus.RUNNING)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Progress
    records_fetched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_pages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    api_call_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Request filters
    date_range_from: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    date_range_to: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    time_range_preset: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    batch_size: Mapped[int] = mapped_column(Integer, nullable=False)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    extract_metadata: Mapped[Optional[Any]] = mapped_column("metadata", JSON, nullable=True)
