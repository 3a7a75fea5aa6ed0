from __future__ import annotations

import os
import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from utils import ApiError


# School years run June through May.
SCHOOL_YEAR_START_MONTH = 6

DEFAULT_TIMEZONE = "Asia/Manila"

_SCHOOL_YEAR_RE = re.compile(r"^(\d{4})-(\d{4})$")


def school_year(d: date) -> str:
    if d.month >= SCHOOL_YEAR_START_MONTH:
        return f"{d.year}-{d.year + 1}"
    return f"{d.year - 1}-{d.year}"


def local_today(tz_name: str = "") -> date:
    """Today in tz_name, else in APP_TIMEZONE (Asia/Manila when unset)."""
    tz_name = tz_name or os.getenv("APP_TIMEZONE", "") or DEFAULT_TIMEZONE
    return datetime.now(ZoneInfo(tz_name)).date()


def current_school_year(today: Optional[date] = None) -> str:
    return school_year(today or local_today())


def parse_school_year(label: str) -> tuple[int, int]:
    m = _SCHOOL_YEAR_RE.match(str(label or "").strip())
    if not m:
        raise ApiError("BAD_REQUEST", 'School year must look like "2024-2025"')
    start, end = int(m.group(1)), int(m.group(2))
    if end != start + 1:
        raise ApiError("BAD_REQUEST", 'School year must look like "2024-2025"')
    return start, end


def previous_school_year(label: str) -> str:
    start, _end = parse_school_year(label)
    return f"{start - 1}-{start}"
