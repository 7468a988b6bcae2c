"""
B2Chat Value Objects
====================

Immutable objects describing export pages, date filters and auth tokens.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class DateRange:
    """Inclusive date filter; either bound may be open."""
    start_date: Optional[DateLike] = None
    end_date: Optional[DateLike] = None


@dataclass(frozen=True)
class Pagination:
    """Pagination info for one export page."""
    total: int
    exported: int
    has_next_page: bool

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "exported": self.exported,
            "has_next_page": self.has_next_page,
        }


@dataclass(frozen=True)
class RecordParseError:
    """A raw record rejected during normalization/validation."""
    index: int
    raw: Any
    error: str


@dataclass
class Page(Generic[T]):
    """
    One page of parsed export records.

    ``data`` holds the valid records in source order, ``errors`` the rejected
    ones keyed by their index in the raw page.
    """
    data: List[T]
    pagination: Pagination
    errors: List[RecordParseError] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "Page[T]":
        return cls(data=[], pagination=Pagination(total=0, exported=0, has_next_page=False))

    @property
    def failed_indexes(self) -> List[int]:
        return [e.index for e in self.errors]


@dataclass(frozen=True)
class AuthToken:
    """Bearer token with its (already buffered) expiry as a unix timestamp."""
    access_token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return self.expires_at > now
