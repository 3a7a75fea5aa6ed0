from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

import services.school_year as school_year_module
from services.school_year import current_school_year, local_today, parse_school_year, previous_school_year, school_year
from utils import ApiError


def test_school_year_starts_in_june():
    assert school_year(date(2024, 3, 1)) == "2023-2024"
    assert school_year(date(2024, 5, 31)) == "2023-2024"
    assert school_year(date(2024, 6, 1)) == "2024-2025"
    assert school_year(date(2024, 7, 1)) == "2024-2025"
    assert school_year(date(2024, 12, 31)) == "2024-2025"


def test_previous_school_year():
    assert previous_school_year("2025-2026") == "2024-2025"


def test_current_school_year_uses_given_day():
    assert current_school_year(date(2025, 1, 15)) == "2024-2025"


@pytest.mark.parametrize("label", ["2024", "2024-2026", "abcd-efgh", ""])
def test_parse_school_year_rejects_malformed_labels(label):
    with pytest.raises(ApiError) as exc:
        parse_school_year(label)
    assert exc.value.code == "BAD_REQUEST"


class _FrozenDatetime(datetime):
    @classmethod
    def now(cls, tz=None):
        # 2025-06-01 00:30 in Manila, still May 31 in UTC.
        return datetime(2025, 5, 31, 16, 30, tzinfo=timezone.utc).astimezone(tz)


def test_local_today_follows_app_timezone(monkeypatch):
    monkeypatch.setattr(school_year_module, "datetime", _FrozenDatetime)

    monkeypatch.setenv("APP_TIMEZONE", "Asia/Manila")
    assert local_today() == date(2025, 6, 1)
    assert current_school_year() == "2025-2026"

    monkeypatch.setenv("APP_TIMEZONE", "UTC")
    assert local_today() == date(2025, 5, 31)
    assert current_school_year() == "2024-2025"

    monkeypatch.delenv("APP_TIMEZONE")
    assert local_today() == date(2025, 6, 1)
    assert local_today("UTC") == date(2025, 5, 31)
