"""Timezone utilities for Korea Exchange (KRX) market time."""

from datetime import datetime
from typing import Optional

import pytz
from dateutil import parser as date_parser

KST_TZ = pytz.timezone("Asia/Seoul")


def now_kst() -> datetime:
    """Return current time in Asia/Seoul timezone."""
    return datetime.now(KST_TZ)


def to_kst(dt: datetime) -> datetime:
    """Convert a datetime to Asia/Seoul timezone."""
    if dt.tzinfo is None:
        # Assume naive datetime is already KST
        return KST_TZ.localize(dt)
    return dt.astimezone(KST_TZ)


def parse_datetime_kst(value: str, default_tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    Parse a datetime string and return it in Asia/Seoul timezone.

    If no timezone is provided in the string, assumes Asia/Seoul.
    Accepts compact broker timestamps such as ``20250101235959``.
    """
    dt = date_parser.parse(value)
    if dt.tzinfo is None:
        tz = default_tz or KST_TZ
        dt = tz.localize(dt)
    return to_kst(dt)
