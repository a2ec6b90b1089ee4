"""Domain services merging price observations into a fund's rolling history."""
from __future__ import annotations

import statistics
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from loguru import logger

from nav_history.config import SETTINGS, Settings

from .dates import iter_month_ends_between, month_end
from .models import SOURCE_INTERPOLATED, FundState, HistoryEntry, Observation
from .results import MergeOutcome, ReconciliationStats


def _month(day: date) -> tuple[int, int]:
    return (day.year, day.month)


def _same_record(prior: HistoryEntry | None, entry: HistoryEntry) -> bool:
    # Compared as persisted; stored values come back from float.
    return prior is not None and prior.to_record() == entry.to_record()


def prefer_observation(challenger: Observation, incumbent: Observation) -> bool:
    """Tie-break for two observations of the same calendar month.

    Literal beats synthetic. Otherwise the one closer to month end wins, and
    on the same date the one processed later wins.
    """
    if challenger.is_synthetic != incumbent.is_synthetic:
        return not challenger.is_synthetic
    return challenger.date >= incumbent.date


class HistoryReconciler:
    """Filters, deduplicates, densifies and merges observations into history."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or SETTINGS

    def reconcile(
        self,
        candidates: Iterable[Observation],
        fund: FundState,
        current_price: Decimal | None = None,
        as_of: date | None = None,
    ) -> MergeOutcome:
        as_of = as_of or date.today()
        ordered = sorted(candidates, key=lambda obs: obs.date)

        dropped = 0
        timely: list[Observation] = []
        for obs in ordered:
            if obs.date > as_of:
                logger.info("Dropped future-dated {} price {} for {}", obs.date, obs.price, fund.isin)
                dropped += 1
                continue
            timely.append(obs)

        kept, rejected = self.reject_outliers(timely, current_price)
        dropped += len(rejected)
        if not kept:
            return MergeOutcome(
                history=tuple(fund.history),
                stats=ReconciliationStats.empty(len(fund.history), dropped=dropped),
            )

        monthly = self.deduplicate_monthly(kept)
        interpolated = self.interpolate_gaps(monthly) if self._settings.interpolate_gaps else []
        history, new_points, filled = self.merge(fund, monthly, interpolated)

        stats = ReconciliationStats(
            literal=sum(1 for obs in monthly if not obs.is_synthetic),
            synthetic=sum(1 for obs in monthly if obs.is_synthetic),
            interpolated=filled,
            dropped=dropped,
            duplicates=len(kept) - len(monthly),
            new_points=new_points,
            history_size=len(history),
        )
        return MergeOutcome(history=history, stats=stats)

    def reference_price(
        self, observations: Sequence[Observation], current_price: Decimal | None
    ) -> Decimal | None:
        if isinstance(current_price, Decimal) and current_price.is_finite() and current_price > 0:
            return current_price
        if not observations:
            return None
        return statistics.median(obs.price for obs in observations)

    def reject_outliers(
        self, observations: Sequence[Observation], current_price: Decimal | None
    ) -> tuple[list[Observation], list[Observation]]:
        reference = self.reference_price(observations, current_price)
        if reference is None:
            return [], []
        low = reference * self._settings.outlier_low_ratio
        high = reference * self._settings.outlier_high_ratio

        kept: list[Observation] = []
        rejected: list[Observation] = []
        for obs in observations:
            if low <= obs.price <= high:
                kept.append(obs)
            else:
                logger.info(
                    "Dropped outlier {} price {} (reference {}, allowed {}-{})",
                    obs.date,
                    obs.price,
                    reference,
                    low,
                    high,
                )
                rejected.append(obs)
        return kept, rejected

    @staticmethod
    def deduplicate_monthly(observations: Iterable[Observation]) -> list[Observation]:
        chosen: dict[tuple[int, int], Observation] = {}
        for obs in observations:
            key = obs.month()
            incumbent = chosen.get(key)
            if incumbent is None or prefer_observation(obs, incumbent):
                chosen[key] = obs
        return sorted(chosen.values(), key=lambda obs: obs.date)

    def interpolate_gaps(self, points: Sequence[Observation]) -> list[Observation]:
        occupied = {obs.month() for obs in points}
        filled: list[Observation] = []
        for left, right in zip(points, points[1:]):
            span = Decimal((right.date - left.date).days)
            for target in iter_month_ends_between(left.date, right.date):
                if _month(target) in occupied:
                    continue
                ratio = Decimal((target - left.date).days) / span
                price = left.price + (right.price - left.price) * ratio
                rounded = price.quantize(self._settings.price_quantum, rounding=ROUND_HALF_UP)
                if rounded <= 0:
                    continue
                filled.append(
                    Observation(
                        date=target,
                        price=rounded,
                        is_synthetic=True,
                        currency=right.currency,
                        source=SOURCE_INTERPOLATED,
                    )
                )
                occupied.add(_month(target))
        return filled

    def merge(
        self,
        fund: FundState,
        points: Sequence[Observation],
        interpolated: Sequence[Observation],
    ) -> tuple[tuple[HistoryEntry, ...], int, int]:
        """Merge one run's points into the prior history.

        Returns the bounded history, the number of months whose value changed
        and the number of interpolated points that filled a gap.
        """
        by_date: dict[date, HistoryEntry] = {}
        for entry in fund.history:
            by_date[entry.date] = entry
        latest_month = max([obs.month() for obs in points] + [_month(day) for day in by_date])
        prior_by_month: dict[tuple[int, int], HistoryEntry] = {}
        for entry_date in sorted(by_date):
            prior_by_month[_month(entry_date)] = by_date[entry_date]

        merged = dict(prior_by_month)
        for obs in points:
            entry_date = obs.date if obs.month() == latest_month else month_end(obs.date)
            merged[obs.month()] = HistoryEntry(date=entry_date, total_value=obs.price * fund.held_units)
        filled = 0
        for obs in interpolated:
            if obs.month() not in merged:
                filled += 1
                merged[obs.month()] = HistoryEntry(date=obs.date, total_value=obs.price * fund.held_units)

        history = sorted(merged.values(), key=lambda entry: entry.date)
        cap = self._settings.retention_cap
        if len(history) > cap:
            logger.debug("Trimming {} history from {} to {} entries", fund.isin, len(history), cap)
            history = history[-cap:]

        changed = sum(1 for entry in history if not _same_record(prior_by_month.get(_month(entry.date)), entry))
        return tuple(history), changed, filled
