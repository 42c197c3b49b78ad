"""
SellerFlow — Date coercion helpers
Source rows arrive as date, datetime or ISO strings depending on the collaborator.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as dateutil_parser


def coerce_date(value: Any) -> date:
    """
    Convert a date-like value to a `date`.
    Raises ValueError for None, blanks and unparseable input.
    """
    if value is None:
        raise ValueError("date is missing")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValueError("date is blank")
        try:
            return dateutil_parser.isoparse(s).date()
        except ValueError:
            try:
                return dateutil_parser.parse(s).date()
            except (ValueError, OverflowError) as exc:
                raise ValueError(f"unparseable date {value!r}") from exc
    raise ValueError(f"unsupported date type {type(value).__name__}")


def optional_date(value: Any) -> Optional[date]:
    """Like coerce_date, but None/blank map to None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_date(value)
