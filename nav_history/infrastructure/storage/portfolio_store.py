"""Storage helpers for the portfolio JSON document.

The document keeps the tracker's shape: ``info_cartera``, ``fondos`` (each
with ``ISIN``, ``participaciones``, ``NAV_actual``, ``fecha_NAV`` and a
``historial`` of ``{fecha, valor}``) and ``historico_24m``. Unknown keys are
left untouched.
"""
from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from nav_history.domain.errors import FundNotFoundError, PortfolioFormatError
from nav_history.domain.models import FundState, HistoryEntry
from nav_history.domain.results import ReconciliationResult


def load_portfolio(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PortfolioFormatError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("fondos", []), list):
        raise PortfolioFormatError(f"{path} does not contain a portfolio object with a 'fondos' list")
    data.setdefault("fondos", [])
    return data


def save_portfolio(portfolio: dict[str, Any], path: Path) -> None:
    Path(path).write_text(
        json.dumps(portfolio, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def find_fund(portfolio: dict[str, Any], isin: str) -> dict[str, Any]:
    wanted = isin.strip().upper()
    for record in portfolio.get("fondos", []):
        if str(record.get("ISIN", "")).strip().upper() == wanted:
            return record
    raise FundNotFoundError(f"Fund {isin} not found in portfolio")


def _history_from_records(isin: str, raw: Any) -> tuple[HistoryEntry, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise PortfolioFormatError(f"historial of {isin} must be a list")
    entries: list[HistoryEntry] = []
    for item in raw:
        try:
            entries.append(HistoryEntry.from_record(item))
        except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
            raise PortfolioFormatError(f"Invalid historial entry {item!r} for {isin}") from exc
    return tuple(entries)


def fund_state_from_record(record: dict[str, Any]) -> FundState:
    isin = str(record.get("ISIN", "")).strip()
    units = record.get("participaciones")
    try:
        held_units = Decimal(str(units)) if units is not None else None
    except InvalidOperation:
        held_units = None
    return FundState(
        isin=isin,
        held_units=held_units,  # type: ignore[arg-type]
        history=_history_from_records(isin, record.get("historial")),
        name=str(record.get("denominacion", "")),
        currency=record.get("moneda"),
    )


def apply_result_to_record(
    record: dict[str, Any],
    result: ReconciliationResult,
    source_label: str,
) -> None:
    """Write a reconciliation result back into a fund record in place."""
    if result.current_price is not None:
        record["NAV_actual"] = float(result.current_price)
        if result.current_date is not None:
            record["fecha_NAV"] = result.current_date.isoformat()
        if result.is_real_time is not None:
            record["is_real_time"] = result.is_real_time
        record["last_updated_source"] = source_label
    if result.stats.retained:
        record["historial"] = result.history_records()


class JsonPortfolioRepository:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        return load_portfolio(self._path)

    def save(self, portfolio: dict[str, Any]) -> None:
        save_portfolio(portfolio, self._path)
