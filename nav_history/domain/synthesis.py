"""Anchor synthesis: turn percentage returns into synthetic price points.

Every return is inverted against a known later price,
``past = later / (1 + pct / 100)``, and the result is dated at the start of
the period the return covers.
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from loguru import logger

from .dates import year_end
from .models import Observation, PercentageReturn

PERIOD_DAYS: Mapping[str, int] = {
    "1m": 30,
    "3m": 90,
    "6m": 180,
    "1y": 365,
    "3y": 1095,
}

YTD = "ytd"

_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


def _invert(later_price: Decimal, pct: Decimal) -> Decimal | None:
    growth = 1 + pct / _HUNDRED
    if growth <= 0:
        return None
    return later_price / growth


def _returns_by_period(returns: Iterable[PercentageReturn]) -> dict[str, Decimal]:
    by_period: dict[str, Decimal] = {}
    for item in returns:
        if item.period in by_period:
            logger.debug("Ignoring duplicate {} return {}%", item.period, item.pct)
            continue
        by_period[item.period] = item.pct
    return by_period


class AnchorSynthesizer:
    """Builds synthetic observations from a current price and its returns."""

    def __init__(self, quantum: Decimal = _CENT) -> None:
        self._quantum = quantum

    def synthesize(
        self,
        current_price: Decimal | None,
        current_date: date,
        returns: Iterable[PercentageReturn],
        prior_year_end: Decimal | None = None,
        currency: str = "EUR",
    ) -> list[Observation]:
        if not isinstance(current_price, Decimal) or not current_price.is_finite() or current_price <= 0:
            return []

        by_period = _returns_by_period(returns)
        anchors: list[Observation] = []

        for period, days in PERIOD_DAYS.items():
            pct = by_period.get(period)
            if pct is None:
                continue
            past = _invert(current_price, pct)
            if past is None:
                logger.debug("Skipping {} return {}%: no positive past price", period, pct)
                continue
            self._append(anchors, current_date - timedelta(days=days), past, f"return:{period}", currency)

        rolling = prior_year_end
        ytd = by_period.get(YTD)
        if ytd is not None:
            ytd_anchor = _invert(current_price, ytd)
            if ytd_anchor is not None:
                self._append(anchors, year_end(current_date.year - 1), ytd_anchor, "return:ytd", currency)
                rolling = ytd_anchor

        if rolling is not None and rolling > 0:
            anchors.extend(self._chain_years(rolling, current_date.year - 1, by_period, currency))

        for anchor in anchors:
            logger.debug("Synthesized {} price {} ({})", anchor.date, anchor.price, anchor.source)
        return anchors

    def _chain_years(
        self,
        rolling: Decimal,
        year: int,
        by_period: Mapping[str, Decimal],
        currency: str,
    ) -> list[Observation]:
        # rolling is the price at Dec 31 of ``year``; the return of ``year``
        # leads back to Dec 31 of ``year - 1``.
        chained: list[Observation] = []
        while True:
            pct = by_period.get(str(year))
            if pct is None:
                break
            previous = _invert(rolling, pct)
            if previous is None:
                break
            self._append(chained, year_end(year - 1), previous, f"return:{year}", currency)
            rolling = previous
            year -= 1
        return chained

    def _append(self, target: list[Observation], when: date, price: Decimal, source: str, currency: str) -> None:
        rounded = price.quantize(self._quantum, rounding=ROUND_HALF_UP)
        if rounded <= 0:
            logger.debug("Skipping {} anchor at {}: rounds to zero", source, when)
            return
        target.append(
            Observation(
                date=when,
                price=rounded,
                is_synthetic=True,
                currency=currency,
                source=source,
            )
        )


def synthesize_anchors(
    current_price: Decimal | None,
    current_date: date,
    returns: Iterable[PercentageReturn],
    prior_year_end: Decimal | None = None,
    currency: str = "EUR",
) -> list[Observation]:
    return AnchorSynthesizer().synthesize(current_price, current_date, returns, prior_year_end, currency)
