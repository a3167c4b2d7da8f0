"""
Cell value parsing shared by the upload reader and the activity mapper.

Spreadsheet exports mix native dates, Excel serial numbers, ISO/US strings
and free text in the same column. Unparseable values yield None.
"""

import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import pandas as pd

EXCEL_EPOCH_OFFSET_DAYS = 25569
SECONDS_PER_DAY = 86400

_DATE_TOKEN = r"(\d{4}[-/]\d{1,2}[-/]\d{1,2}|\d{1,2}[-/]\d{1,2}[-/]\d{2,4})"
_DATE_RANGE = re.compile(_DATE_TOKEN + r"\s*(?:–|-|to)\s*" + _DATE_TOKEN, re.IGNORECASE)

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%m/%d/%y",
    "%m-%d-%y",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and not value.strip()


def cell_text(value: Any) -> str:
    """Trimmed text of a cell; integral floats lose their trailing '.0'."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def excel_serial_to_date(serial: float) -> Optional[date]:
    if not 60 < serial < 60000:
        return None
    seconds = round((serial - EXCEL_EPOCH_OFFSET_DAYS) * SECONDS_PER_DAY)
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (epoch + timedelta(seconds=seconds)).date()


def _parse_date_text(text: str) -> Optional[date]:
    iso = text[:-1] if text.endswith("Z") else text
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(iso, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(iso).date()
    except ValueError:
        pass
    # long forms such as "Jan 10, 2024"; needs a 4-digit year
    if not re.search(r"\d{4}", text):
        return None
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_date_like(value: Any) -> Optional[date]:
    """Parse a native date, Excel serial, date string or '<date> - <date>' range (first date)."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return excel_serial_to_date(float(value))

    text = cell_text(value)
    m = _DATE_RANGE.search(text)
    if m:
        return _parse_date_text(m.group(1))
    return _parse_date_text(text)


def parse_money(value: Any) -> Optional[Decimal]:
    """Parse '$1,234.56', '(123.45)' or '-12'; None when the cell holds no number."""
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))

    text = cell_text(value)
    negative = bool(re.fullmatch(r"\(.*\)", text))
    cleaned = re.sub(r"[$,]", "", text)
    cleaned = re.sub(r"[^\d.\-]", "", cleaned)
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return -abs(amount) if negative else amount
