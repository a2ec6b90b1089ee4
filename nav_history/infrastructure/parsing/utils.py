"""Shared parsing utilities for provider text."""
from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

DAY_FIRST_DATE = re.compile(r"(?<!\d)(\d{1,2})[/-](\d{1,2})[/-](\d{4})(?!\d)")
YEAR_FIRST_DATE = re.compile(r"(?<!\d)(\d{4})[/-](\d{1,2})[/-](\d{1,2})(?!\d)")
NUMBER_TOKEN = re.compile(r"-?\d[\d.,]*")

_NOT_NUMERIC = re.compile(r"[^\d.,-]")


def parse_number(value: object) -> Decimal | None:
    """Parse ``1234.56``, ``1.234,56``, ``1,234.56`` or ``123,45`` into a Decimal.

    The later of ``.``/``,`` is the decimal point when both appear; a lone
    comma is a decimal comma. Returns None when nothing numeric remains.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
        return result if result.is_finite() else None

    s = _NOT_NUMERIC.sub("", str(value).strip().replace("\u2212", "-"))
    s = s.strip(".,")
    if not s:
        return None
    if "." in s and "," in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", ".")
    if s.count(".") > 1:
        s = s.replace(".", "")
    try:
        result = Decimal(s)
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def _safe_date(year: str, month: str, day: str) -> date | None:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def find_date(text: str) -> tuple[date, tuple[int, int]] | None:
    """Find the first normalizable date token in ``text``.

    Returns the date and the (start, end) span of the token, or None.
    """
    candidates = []
    for pattern, order in ((YEAR_FIRST_DATE, "ymd"), (DAY_FIRST_DATE, "dmy")):
        match = pattern.search(text)
        if match is None:
            continue
        if order == "ymd":
            year, month, day = match.groups()
        else:
            day, month, year = match.groups()
        parsed = _safe_date(year, month, day)
        if parsed is not None:
            candidates.append((match.start(), parsed, match.span()))
    if not candidates:
        return None
    _, parsed, span = min(candidates)
    return parsed, span


def parse_date(value: object) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    found = find_date(str(value))
    return found[0] if found else None


def infer_currency(line: str) -> str:
    return "USD" if "usd" in line.lower() else "EUR"


def strip_code_fences(text: str) -> str:
    return re.sub(r"```[a-zA-Z]*", "", text).strip()
