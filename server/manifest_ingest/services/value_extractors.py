"""
Value extractors - convert raw manifest cells into typed values.

Every extractor returns None instead of guessing: a missing date is better
than a silently wrong one.
"""

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Serial 1 is 1900-01-01; starting the count at 1899-12-30 absorbs the
# phantom 1900-02-29 spreadsheet programs carry over from Lotus 1-2-3.
EXCEL_EPOCH = datetime(1899, 12, 30)
EXCEL_MAX_SERIAL = 2958465  # 9999-12-31

# Serials outside this window are almost certainly not dates
PLAUSIBLE_SERIAL_MIN = 0
PLAUSIBLE_SERIAL_MAX = 60000
MIN_SANE_YEAR = 1950
MAX_SANE_YEAR = 2100

# Tried in order; the first strict parse wins
DATE_FORMATS = [
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%m/%d/%y %H:%M',
    '%m/%d/%Y %H:%M',
    '%Y-%m-%d',
    '%m/%d/%y',
    '%m/%d/%Y',
    '%d-%b-%y',
    '%d-%b-%Y',
    '%d-%b-%Y %H:%M:%S',
]

TRUE_VALUES = {'true', 'yes', '1'}
FALSE_VALUES = {'false', 'no', '0'}


def normalize_cell(value: Any) -> Any:
    """Turn a pandas/numpy cell into a plain Python value (NaN -> None, 12.0 -> 12)."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, str):
        return value if value.strip() else None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def is_empty_value(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def is_empty_row(row) -> bool:
    return not row or all(is_empty_value(cell) for cell in row)


def cell_to_text(value: Any) -> str:
    """Render a cell as header/label text."""
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def extract_string_field(value: Any) -> Optional[str]:
    """String with newlines flattened to spaces; None when empty."""
    if is_empty_value(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = re.sub(r'\r?\n', ' ', str(value)).strip()
    return text or None


def extract_numeric_field(value: Any) -> Optional[float]:
    """Number from a cell, tolerating thousands separators and currency marks."""
    if is_empty_value(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r'[^\d.\-]', '', str(value))
    if cleaned in ('', '-', '.', '-.'):
        return None
    try:
        return float(cleaned)
    except ValueError:
        logger.debug(f"Could not parse number from {value!r}")
        return None


def extract_int_field(value: Any, default: int = 0) -> int:
    """Integer quantity; falls back to ``default`` on anything unparseable."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return default if math.isnan(value) else int(value)
    if isinstance(value, str):
        match = re.match(r'\s*(-?\d+)', value)
        if match:
            return int(match.group(1))
    return default


def extract_boolean_field(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if is_empty_value(value):
        return None
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return None


def _is_sane_year(value: datetime) -> bool:
    return MIN_SANE_YEAR < value.year < MAX_SANE_YEAR


def convert_excel_serial_date(serial: float) -> Optional[datetime]:
    """Spreadsheet day serial -> datetime (date part only)."""
    if serial is None or isinstance(serial, bool):
        return None
    try:
        serial = float(serial)
    except (TypeError, ValueError):
        return None
    if math.isnan(serial) or serial < 1 or serial > EXCEL_MAX_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=math.floor(serial))


def extract_date_field(value: Any) -> Optional[datetime]:
    """
    Parse a manifest date.

    Accepts spreadsheet serials (0 < n < 60000), strings in one of
    DATE_FORMATS and already-parsed date objects. Anything outside
    1950-2100 is rejected.
    """
    if is_empty_value(value) or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, (int, float)):
        if not (PLAUSIBLE_SERIAL_MIN < value < PLAUSIBLE_SERIAL_MAX):
            logger.debug(f"Date serial {value} outside plausible range")
            return None
        converted = convert_excel_serial_date(value)
        if converted is None or not _is_sane_year(converted):
            return None
        return converted

    if isinstance(value, str):
        text = value.strip()
        for date_format in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, date_format)
            except ValueError:
                continue
            if _is_sane_year(parsed):
                return parsed
            logger.debug(f"Date {text!r} parsed with {date_format} but year {parsed.year} is out of range")
            return None
        logger.debug(f"No date format matched {text!r}")

    return None
