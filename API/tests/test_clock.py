from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from entitlements.core.clock import as_utc, daily_window_start, monthly_window_start, window_key, window_start_for


def test_daily_window_starts_at_utc_midnight():
    t = datetime(2026, 3, 14, 23, 59, 59, tzinfo=timezone.utc)
    assert daily_window_start(t) == datetime(2026, 3, 14, tzinfo=timezone.utc)


def test_daily_window_uses_utc_not_local_offset():
    # 01:30 at +05:30 is still the previous UTC day.
    t = datetime(2026, 3, 15, 1, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    assert daily_window_start(t) == datetime(2026, 3, 14, tzinfo=timezone.utc)


def test_monthly_window_starts_on_first_of_month():
    t = datetime(2026, 2, 28, 12, 0, tzinfo=timezone.utc)
    assert monthly_window_start(t) == datetime(2026, 2, 1, tzinfo=timezone.utc)


def test_window_key_per_kind():
    t = datetime(2026, 7, 9, 8, 0, tzinfo=timezone.utc)
    assert window_key("chat", t) == date(2026, 7, 9)
    assert window_key("mcq", t) == date(2026, 7, 1)


def test_window_boundary_rolls_over():
    before = datetime(2026, 1, 31, 23, 59, 59, tzinfo=timezone.utc)
    after = before + timedelta(seconds=1)
    assert window_key("chat", before) != window_key("chat", after)
    assert window_key("mcq", before) != window_key("mcq", after)


def test_unknown_kind_rejected():
    with pytest.raises(ValueError):
        window_start_for("video", datetime(2026, 1, 1, tzinfo=timezone.utc))


def test_naive_datetimes_are_read_as_utc():
    assert as_utc(datetime(2026, 1, 1, 10, 0)) == datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None
