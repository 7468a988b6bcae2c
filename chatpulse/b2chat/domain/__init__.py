"""
B2Chat Domain Layer
===================

Pure data shapes for the sync module.

Contains:
- Records: Pydantic schemas for exported contacts, chats and messages
- Value Objects: Page, Pagination, RecordParseError, DateRange, AuthToken
- Statistics: data-quality counters gathered during extracts

No HTTP, no database.
"""

from chatpulse.b2chat.domain.value_objects import (
    AuthToken,
    DateRange,
    Page,
    Pagination,
    RecordParseError,
)
from chatpulse.b2chat.domain.records import (
    ChatRecord,
    ContactRecord,
    ContactTag,
    MessageRecord,
    normalize_chat,
    normalize_contact,
    parse_records,
)
from chatpulse.b2chat.domain.statistics import (
    ChatExtractStats,
    ContactExtractStats,
    ExtractStats,
)

__all__ = [
    # Value Objects
    "AuthToken",
    "DateRange",
    "Page",
    "Pagination",
    "RecordParseError",
    # Records
    "ChatRecord",
    "ContactRecord",
    "ContactTag",
    "MessageRecord",
    "normalize_chat",
    "normalize_contact",
    "parse_records",
    # Statistics
    "ChatExtractStats",
    "ContactExtractStats",
    "ExtractStats",
]
