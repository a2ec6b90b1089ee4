"""Application-level DTOs for portfolio refresh runs."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Sequence

from nav_history.domain.results import ReconciliationResult

STATUS_UPDATED = "updated"
STATUS_NO_UPDATE = "no_update"
STATUS_FAILED = "failed"
STATUS_INVALID = "invalid"


@dataclass(slots=True, frozen=True)
class FundRefreshOutcome:
    isin: str
    name: str
    status: str
    message: str
    result: ReconciliationResult | None = None
    raw_response: str | None = None


@dataclass(slots=True, frozen=True)
class RefreshReport:
    portfolio: dict[str, Any]
    outcomes: Sequence[FundRefreshOutcome]
    started_at: datetime
    finished_at: datetime

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def audit_lines(self) -> Iterable[str]:
        for outcome in self.outcomes:
            yield f"[{outcome.status}] {outcome.isin} {outcome.name}: {outcome.message}"
        yield (
            f"Refresh finished in {self.duration_seconds:.2f}s: "
            f"{self.count(STATUS_UPDATED)} updated, {self.count(STATUS_NO_UPDATE)} without data, "
            f"{self.count(STATUS_FAILED) + self.count(STATUS_INVALID)} failed"
        )
