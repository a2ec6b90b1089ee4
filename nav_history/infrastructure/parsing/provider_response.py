"""Signal extraction from raw provider responses.

A response may hold a loosely delimited JSON block (current quote, percentage
returns, history rows) next to free-form tabular text. Both branches are
parsed independently and neither raises on malformed input.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from loguru import logger

from nav_history.config import JSON_END_MARKER, JSON_START_MARKER
from nav_history.domain.models import (
    SOURCE_JSON,
    SOURCE_TABLE,
    Observation,
    PercentageReturn,
    ProviderQuote,
)
from nav_history.infrastructure.parsing.utils import (
    NUMBER_TOKEN,
    find_date,
    infer_currency,
    parse_date,
    parse_number,
    strip_code_fences,
)


def _marker_pattern(marker: str) -> re.Pattern[str]:
    # Tolerates any run of two or more hashes and free spacing around the label.
    return re.compile(r"#{2,}\s*" + re.escape(marker.strip("# ")) + r"\s*#{2,}")


JSON_START = _marker_pattern(JSON_START_MARKER)
JSON_END = _marker_pattern(JSON_END_MARKER)

RETURN_FIELDS = ("annual_performance", "returns", "performance")
PRICE_FIELDS = ("nav", "price", "value", "close")

_YEAR_KEY = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")
_HORIZON_KEY = re.compile(
    r"(?<!\d)(\d{1,2})\s*[_\- ]?\s*(months|month|meses|mes|mo|m|years|year|yrs|yr|y|años|año|anos|ano|a)(?![a-zñ])"
)
_MONTH_UNITS = {"months", "month", "meses", "mes", "mo", "m"}
_MONTH_PERIODS = {1: "1m", 3: "3m", 6: "6m", 12: "1y", 36: "3y"}
_YEAR_PERIODS = {1: "1y", 3: "3y"}


@dataclass(frozen=True)
class ExtractedSignals:
    literal_observations: Sequence[Observation] = field(default_factory=tuple)
    quote: ProviderQuote | None = None

    def is_empty(self) -> bool:
        return not self.literal_observations and self.quote is None


def normalize_period(key: str) -> str | None:
    """Map a return label such as ``1_mes``, ``3 months`` or ``ytd_2026`` to a period key."""
    lowered = str(key).strip().lower()
    if not lowered:
        return None
    if "ytd" in lowered or "year to date" in lowered or "en curso" in lowered:
        return "ytd"
    horizon = _HORIZON_KEY.search(lowered)
    if horizon is not None:
        count, unit = int(horizon.group(1)), horizon.group(2)
        table = _MONTH_PERIODS if unit in _MONTH_UNITS else _YEAR_PERIODS
        return table.get(count)
    year = _YEAR_KEY.search(lowered)
    if year is not None:
        return year.group(1)
    return None


def locate_json_block(text: str) -> tuple[str, tuple[int, int]] | None:
    """Return the JSON substring and the span it occupies (markers included)."""
    start = JSON_START.search(text)
    if start is not None:
        end = JSON_END.search(text, start.end())
        if end is not None:
            return text[start.end() : end.start()].strip(), (start.start(), end.end())
    first_open = text.find("{")
    last_close = text.rfind("}")
    if first_open == -1 or last_close <= first_open:
        return None
    return text[first_open : last_close + 1], (first_open, last_close + 1)


def parse_returns(raw: Any) -> list[PercentageReturn]:
    if isinstance(raw, dict):
        items: Iterable[tuple[Any, Any]] = raw.items()
    elif isinstance(raw, list):
        items = [
            (row.get("period"), row.get("return", row.get("value")))
            for row in raw
            if isinstance(row, dict)
        ]
    else:
        return []

    returns: list[PercentageReturn] = []
    for key, value in items:
        period = normalize_period(key) if key is not None else None
        pct = parse_number(value)
        if period is None or pct is None:
            logger.debug("Skipping unrecognized return {!r}={!r}", key, value)
            continue
        returns.append(PercentageReturn(period=period, pct=pct))
    return returns


def _first_present(row: dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if row.get(key) not in (None, ""):
            return row[key]
    return None


def parse_history_rows(raw: Any, currency: str | None) -> list[Observation]:
    if not isinstance(raw, list):
        return []
    observations: list[Observation] = []
    for row in raw:
        if not isinstance(row, dict):
            continue
        when = parse_date(row.get("date") or row.get("fecha"))
        price = parse_number(_first_present(row, PRICE_FIELDS))
        if when is None or price is None or price <= 0:
            logger.debug("Skipping JSON history row {!r}", row)
            continue
        observations.append(
            Observation(
                date=when,
                price=price,
                is_synthetic=row.get("is_synthetic") is True,
                currency=currency or "EUR",
                source=SOURCE_JSON,
            )
        )
    return observations


def parse_quote(block: str) -> ProviderQuote | None:
    try:
        payload = json.loads(strip_code_fences(block))
    except json.JSONDecodeError as exc:
        logger.warning("Could not decode provider JSON block: {}", exc)
        return None
    if not isinstance(payload, dict):
        logger.warning("Provider JSON block is a {}, expected an object", type(payload).__name__)
        return None

    current = payload.get("current")
    if not isinstance(current, dict):
        current = {}

    current_price = parse_number(_first_present(current, PRICE_FIELDS) or _first_present(payload, PRICE_FIELDS))
    if current_price is not None and current_price <= 0:
        current_price = None
    currency_raw = current.get("currency") or payload.get("currency")
    currency = str(currency_raw).strip().upper() if currency_raw else None
    is_real_time = current.get("is_real_time", payload.get("is_real_time"))

    raw_returns = next((payload[name] for name in RETURN_FIELDS if name in payload), None)
    note = payload.get("debug_reason") or payload.get("debug")

    return ProviderQuote(
        current_price=current_price,
        current_date=parse_date(current.get("date") or payload.get("date")),
        currency=currency,
        is_real_time=is_real_time if isinstance(is_real_time, bool) else None,
        returns=tuple(parse_returns(raw_returns)),
        history=tuple(parse_history_rows(payload.get("history"), currency)),
        note=str(note) if note else None,
    )


def _price_tokens(before: str, after: str) -> Iterable[str]:
    for segment in (after, before):
        for match in NUMBER_TOKEN.finditer(segment):
            if segment[match.end() :].lstrip().startswith("%"):
                continue
            yield match.group(0)


def parse_table_line(line: str) -> Observation | None:
    found = find_date(line)
    if found is None:
        return None
    when, (start, end) = found
    for token in _price_tokens(line[:start], line[end:]):
        price = parse_number(token)
        if price is None or price <= 0:
            continue
        return Observation(
            date=when,
            price=price,
            is_synthetic=False,
            currency=infer_currency(line),
            source=SOURCE_TABLE,
        )
    return None


def parse_table_lines(text: str) -> list[Observation]:
    observations: list[Observation] = []
    for line in text.splitlines():
        observation = parse_table_line(line)
        if observation is not None:
            observations.append(observation)
    return observations


def extract_signals(raw_text: str | bytes | None) -> ExtractedSignals:
    if raw_text is None:
        return ExtractedSignals()
    if isinstance(raw_text, bytes):
        raw_text = raw_text.decode("utf-8", errors="replace")

    quote: ProviderQuote | None = None
    table_text = raw_text
    located = locate_json_block(raw_text)
    if located is not None:
        block, (start, end) = located
        quote = parse_quote(block)
        if quote is not None:
            table_text = raw_text[:start] + "\n" + raw_text[end:]

    literal = parse_table_lines(table_text)
    if quote is not None:
        literal = list(quote.history) + literal

    signals = ExtractedSignals(literal_observations=tuple(literal), quote=quote)
    if signals.is_empty():
        logger.info("Provider response yielded no usable signal")
    else:
        logger.debug(
            "Extracted {} literal observations, JSON block {}",
            len(literal),
            "present" if quote is not None else "absent",
        )
    return signals
