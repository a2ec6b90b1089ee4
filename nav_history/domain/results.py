"""Domain-level results for NAV history reconciliation."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence

from .models import HistoryEntry


@dataclass(frozen=True)
class ReconciliationStats:
    literal: int
    synthetic: int
    interpolated: int
    dropped: int
    duplicates: int
    new_points: int
    history_size: int

    @classmethod
    def empty(cls, history_size: int, dropped: int = 0) -> "ReconciliationStats":
        return cls(
            literal=0,
            synthetic=0,
            interpolated=0,
            dropped=dropped,
            duplicates=0,
            new_points=0,
            history_size=history_size,
        )

    @property
    def retained(self) -> int:
        return self.literal + self.synthetic


@dataclass(frozen=True)
class MergeOutcome:
    history: Sequence[HistoryEntry]
    stats: ReconciliationStats


@dataclass(frozen=True)
class ReconciliationResult:
    updated_history: Sequence[HistoryEntry]
    current_price: Decimal | None
    current_date: date | None
    currency: str
    summary: str
    stats: ReconciliationStats
    is_real_time: bool | None = None
    note: str | None = None

    def history_records(self) -> list[dict[str, object]]:
        return [entry.to_record() for entry in self.updated_history]


def format_summary(
    stats: ReconciliationStats,
    current_price: Decimal | None,
    current_date: date | None,
    currency: str,
) -> str:
    """One audit-log line describing a reconciliation run."""
    counts = (
        f"literal={stats.literal} synthetic={stats.synthetic} "
        f"interpolated={stats.interpolated} dropped={stats.dropped}"
    )
    history = f"history={stats.history_size} pts (+{stats.new_points} new)"
    if stats.retained == 0:
        return f"no update: {counts} | {history}"
    nav = "n/a" if current_price is None else f"{current_price} {currency}"
    when = current_date.isoformat() if current_date else "n/a"
    return f"NAV {nav} ({when}) | {counts} | {history}"
