from datetime import date, datetime, timedelta, timezone

from karigardesk.services.dates import resolve_date_value, resolve_order_date

UTC = timezone.utc


def test_day_above_twelve_is_read_as_ddmm():
    assert resolve_order_date({"Order Date": "19/02/2026"}) == datetime(2026, 2, 19, tzinfo=UTC)


def test_ambiguous_value_uses_ddmm_convention():
    assert resolve_order_date({"Date": "03/12/2025"}) == datetime(2025, 12, 3, tzinfo=UTC)


def test_dash_separator():
    assert resolve_order_date({"ORDER DATE": "05-01-2026"}) == datetime(2026, 1, 5, tzinfo=UTC)


def test_impossible_calendar_date_is_rejected():
    assert resolve_order_date({"Order Date": "31/02/2024"}) is None


def test_iso_date():
    assert resolve_order_date({"order_date": "2025-07-04"}) == datetime(2025, 7, 4, tzinfo=UTC)
    assert resolve_order_date({"order_date": "2025-07-04T10:30:00"}) == datetime(2025, 7, 4, 10, 30, tzinfo=UTC)


def test_iso_with_offset_is_converted_to_utc():
    resolved = resolve_order_date({"order_date": "2025-07-04T10:30:00+05:30"})
    assert resolved == datetime(2025, 7, 4, 5, 0, tzinfo=UTC)
    assert resolved.utcoffset() == timedelta(0)


def test_fallback_format():
    assert resolve_order_date({"Date": "4 Jul 2025"}) == datetime(2025, 7, 4, tzinfo=UTC)


def test_serial_number():
    resolved = resolve_order_date({"Order Date": 45000})
    assert resolved == datetime(2023, 3, 15, tzinfo=UTC)
    assert resolve_order_date({"Order Date": 45000}) == resolved


def test_serial_at_unix_epoch():
    assert resolve_date_value(25569) == datetime(1970, 1, 1, tzinfo=UTC)


def test_serials_before_phantom_leap_day():
    assert resolve_date_value(1) == datetime(1900, 1, 1, tzinfo=UTC)
    assert resolve_date_value(59) == datetime(1900, 2, 28, tzinfo=UTC)


def test_invalid_serials():
    assert resolve_order_date({"Order Date": -5}) is None
    assert resolve_order_date({"Order Date": 0}) is None
    assert resolve_date_value(float("nan")) is None
    assert resolve_date_value(float("inf")) is None


def test_native_dates():
    assert resolve_order_date({"Order Date": datetime(2025, 1, 2, 3, 4)}) == datetime(2025, 1, 2, 3, 4, tzinfo=UTC)
    assert resolve_order_date({"Order Date": date(2025, 1, 2)}) == datetime(2025, 1, 2, tzinfo=UTC)


def test_every_resolved_value_is_timezone_aware():
    for value in ("19/02/2026", "2025-07-04", "4 Jul 2025", 45000, datetime(2025, 1, 2), date(2025, 1, 2)):
        assert resolve_date_value(value).tzinfo is not None


def test_missing_or_garbage_is_none():
    assert resolve_order_date({}) is None
    assert resolve_order_date({"Order Date": ""}) is None
    assert resolve_order_date({"Order Date": "not a date"}) is None
    assert resolve_date_value(True) is None


def test_unparseable_alias_falls_through_to_next():
    row = {"Order Date": "soon", "Date": "19/02/2026"}
    assert resolve_order_date(row) == datetime(2026, 2, 19, tzinfo=UTC)
