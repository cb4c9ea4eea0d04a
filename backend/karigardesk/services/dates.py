"""Order date resolution for spreadsheet rows.

Workshop sheets are filled in with an Indian locale, so textual dates are
DD/MM/YYYY. Cells the spreadsheet program understood arrive as serial day
numbers instead; openpyxl may also hand back real ``datetime`` objects.
"""
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from karigardesk.models.order import as_utc
from karigardesk.services.columns import ORDER_COLUMN_ALIASES, alias_values, index_row

DDMMYYYY_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")
ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

# Last resort formats; these may misread an ambiguous value
FALLBACK_FORMATS = (
    "%d.%m.%Y",
    "%d-%b-%Y",
    "%d %b %Y",
    "%d-%B-%Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%m/%d/%Y",
    "%d/%m/%y",
    "%Y/%m/%d",
)

# Serial 1 is 1900-01-01, so day zero is 1899-12-31
SERIAL_EPOCH = datetime(1899, 12, 31, tzinfo=timezone.utc)
# Serial 60 is the phantom 29 Feb 1900 kept for Lotus 1-2-3 compatibility
PHANTOM_LEAP_SERIAL = 60


def parse_ddmmyyyy(text: str) -> Optional[datetime]:
    match = DDMMYYYY_RE.match(text.strip())
    if not match:
        return None
    day, month, year = (int(g) for g in match.groups())
    if not (1 <= day <= 31 and 1 <= month <= 12 and year >= 1900):
        return None
    try:
        # rejects 31/02 and friends
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_iso(text: str) -> Optional[datetime]:
    if not ISO_RE.match(text):
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.strptime(text[:10], "%Y-%m-%d")
        except ValueError:
            return None
    return as_utc(parsed)


def parse_fallback(text: str) -> Optional[datetime]:
    for fmt in FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def serial_to_datetime(serial: float) -> Optional[datetime]:
    if not math.isfinite(serial) or serial <= 0:
        return None
    days = serial - 1 if serial > PHANTOM_LEAP_SERIAL else serial
    try:
        return SERIAL_EPOCH + timedelta(days=days)
    except OverflowError:
        return None


def resolve_date_value(value: Any) -> Optional[datetime]:
    """Resolve a single cell value to an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return serial_to_datetime(float(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return parse_ddmmyyyy(text) or parse_iso(text) or parse_fallback(text)
    return None


def resolve_order_date(row: Mapping[Any, Any]) -> Optional[datetime]:
    """Return the order date of a spreadsheet row.

    Date columns are tried in alias order; a cell that cannot be parsed hands
    over to the next alias. Returns None when nothing resolves.
    """
    for value in alias_values(index_row(row), ORDER_COLUMN_ALIASES["order_date"]):
        resolved = resolve_date_value(value)
        if resolved is not None:
            return resolved
    return None
