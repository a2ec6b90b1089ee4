"""Domain models for the NAV history reconciliation pipeline.

Prices are per-unit ``Decimal`` values; history entries carry the position's
total value (price x units held) because that is what the portfolio persists.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from .errors import InvalidFundStateError

# Observation sources
SOURCE_TABLE = "table"
SOURCE_JSON = "json"
SOURCE_CURRENT = "current"
SOURCE_INTERPOLATED = "interpolated"


@dataclass(frozen=True)
class Observation:
    """A single per-unit valuation sample."""

    date: date
    price: Decimal
    is_synthetic: bool = False
    currency: str = "EUR"
    source: str = SOURCE_TABLE

    def __post_init__(self) -> None:
        if not isinstance(self.price, Decimal) or not self.price.is_finite() or self.price <= 0:
            raise ValueError(f"Observation price must be a positive decimal, got {self.price!r}")

    def month(self) -> tuple[int, int]:
        return (self.date.year, self.date.month)


@dataclass(frozen=True)
class PercentageReturn:
    """A named period paired with its percentage change (8.2 means +8.2%)."""

    period: str
    pct: Decimal


@dataclass(frozen=True)
class ProviderQuote:
    """The structured JSON block of a provider response."""

    current_price: Decimal | None = None
    current_date: date | None = None
    currency: str | None = None
    is_real_time: bool | None = None
    returns: Sequence[PercentageReturn] = field(default_factory=tuple)
    history: Sequence[Observation] = field(default_factory=tuple)
    note: str | None = None


@dataclass(frozen=True)
class HistoryEntry:
    """Persisted unit of a fund's rolling history."""

    date: date
    total_value: Decimal

    def to_record(self) -> dict[str, Any]:
        return {"fecha": self.date.isoformat(), "valor": float(self.total_value)}

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "HistoryEntry":
        raw_date = str(record["fecha"]).strip()
        return cls(
            date=date.fromisoformat(raw_date.split("T")[0]),
            total_value=Decimal(str(record["valor"])),
        )


@dataclass(frozen=True)
class FundState:
    """Immutable snapshot of the fund handed to one reconciliation run."""

    isin: str
    held_units: Decimal
    history: Sequence[HistoryEntry] = field(default_factory=tuple)
    name: str = ""
    currency: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.held_units, Decimal) or not self.held_units.is_finite() or self.held_units <= 0:
            raise InvalidFundStateError(
                f"Fund {self.isin or '?'} must hold a positive number of units, got {self.held_units!r}"
            )
