"""Shared domain helpers used by more than one bounded context."""

from chatpulse.shared.domain.numbers import round_half_up
from chatpulse.shared.domain.time import ensure_utc, parse_timestamp, to_iso_date

__all__ = ["ensure_utc", "parse_timestamp", "round_half_up", "to_iso_date"]
