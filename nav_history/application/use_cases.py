"""Application services orchestrating NAV history reconciliation."""
from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Sequence

from loguru import logger

from nav_history.application.dto import (
    STATUS_FAILED,
    STATUS_INVALID,
    STATUS_NO_UPDATE,
    STATUS_UPDATED,
    FundRefreshOutcome,
    RefreshReport,
)
from nav_history.config import SETTINGS, Settings
from nav_history.domain.errors import InvalidFundStateError, PortfolioFormatError
from nav_history.domain.models import SOURCE_CURRENT, FundState, Observation, ProviderQuote
from nav_history.domain.repositories import ProviderResponseRepository
from nav_history.domain.results import ReconciliationResult, format_summary
from nav_history.domain.services import HistoryReconciler
from nav_history.domain.synthesis import AnchorSynthesizer
from nav_history.infrastructure.parsing.provider_response import extract_signals
from nav_history.infrastructure.storage.portfolio_store import (
    apply_result_to_record,
    fund_state_from_record,
)


def _resolve_currency(
    quote: ProviderQuote | None,
    literal: Sequence[Observation],
    fund: FundState,
    settings: Settings,
) -> str:
    if quote is not None and quote.currency:
        return quote.currency
    if literal:
        return max(literal, key=lambda obs: obs.date).currency
    return fund.currency or settings.default_currency


def _prior_year_end(literal: Sequence[Observation], fund: FundState, year: int) -> Decimal | None:
    """Price at Dec 31 of ``year`` from literal data, else from the prior history."""
    for obs in reversed(literal):
        if not obs.is_synthetic and obs.date == date(year, 12, 31):
            return obs.price
    december = [entry for entry in fund.history if entry.date.year == year and entry.date.month == 12]
    if not december:
        return None
    latest = max(december, key=lambda entry: entry.date)
    if latest.total_value <= 0:
        return None
    return latest.total_value / fund.held_units


def reconcile(
    raw_response: str | bytes | None,
    fund: FundState,
    settings: Settings | None = None,
    as_of: date | None = None,
) -> ReconciliationResult:
    """Reconcile one provider response into ``fund``'s history.

    Pure with respect to its inputs: ``fund`` is not modified and the updated
    history is returned as a new value.
    """
    settings = settings or SETTINGS
    as_of = as_of or date.today()

    signals = extract_signals(raw_response)
    quote = signals.quote
    literal = list(signals.literal_observations)
    currency = _resolve_currency(quote, literal, fund, settings)

    current_price = quote.current_price if quote is not None else None
    current_date = quote.current_date if quote is not None else None
    candidates = list(literal)
    if current_price is not None:
        current_date = current_date or as_of
        candidates.append(
            Observation(
                date=current_date,
                price=current_price,
                is_synthetic=False,
                currency=currency,
                source=SOURCE_CURRENT,
            )
        )
        synthesizer = AnchorSynthesizer(settings.price_quantum)
        candidates.extend(
            synthesizer.synthesize(
                current_price,
                current_date,
                quote.returns,
                prior_year_end=_prior_year_end(literal, fund, current_date.year - 1),
                currency=currency,
            )
        )

    outcome = HistoryReconciler(settings).reconcile(candidates, fund, current_price, as_of)
    summary = format_summary(outcome.stats, current_price, current_date, currency)
    if quote is not None and quote.note:
        logger.debug("{} provider note: {}", fund.isin, quote.note)
    logger.info("{} {}", fund.isin, summary)

    return ReconciliationResult(
        updated_history=outcome.history,
        current_price=current_price,
        current_date=current_date,
        currency=currency,
        summary=summary,
        stats=outcome.stats,
        is_real_time=quote.is_real_time if quote is not None else None,
        note=quote.note if quote is not None else None,
    )


@dataclass(slots=True)
class RefreshContext:
    response_repository: ProviderResponseRepository
    settings: Settings = field(default_factory=lambda: SETTINGS)
    sleep: Callable[[float], None] = time.sleep
    as_of: date | None = None


class RefreshPortfolioUseCase:
    """Refreshes every fund sequentially, pausing between provider queries."""

    def __init__(self, context: RefreshContext) -> None:
        self._context = context

    def execute(self, portfolio: dict[str, Any]) -> RefreshReport:
        started_at = datetime.now()
        updated = copy.deepcopy(portfolio)
        funds = updated.get("fondos") or []
        if not isinstance(funds, list):
            raise PortfolioFormatError("Portfolio 'fondos' must be a list")
        total = len(funds)
        logger.info("Refreshing {} funds", total)

        outcomes: list[FundRefreshOutcome] = []
        for index, record in enumerate(funds):
            logger.info("[{}/{}] {}", index + 1, total, record.get("denominacion") or record.get("ISIN"))
            outcomes.append(self._refresh_fund(record))
            if index < total - 1 and self._context.settings.refresh_delay_seconds > 0:
                self._context.sleep(self._context.settings.refresh_delay_seconds)

        finished_at = datetime.now()
        info = updated.setdefault("info_cartera", {})
        info["ultima_actualizacion"] = finished_at.isoformat(timespec="seconds")
        report = RefreshReport(
            portfolio=updated,
            outcomes=tuple(outcomes),
            started_at=started_at,
            finished_at=finished_at,
        )
        logger.info("Refresh finished in {:.2f}s", report.duration_seconds)
        return report

    def _refresh_fund(self, record: dict[str, Any]) -> FundRefreshOutcome:
        isin = str(record.get("ISIN", "")).strip()
        name = str(record.get("denominacion", ""))
        try:
            fund = fund_state_from_record(record)
        except (InvalidFundStateError, PortfolioFormatError) as exc:
            logger.warning("Skipping {}: {}", isin or name, exc)
            return FundRefreshOutcome(isin=isin, name=name, status=STATUS_INVALID, message=str(exc))

        try:
            raw_response = self._context.response_repository.fetch_response(isin, name)
        except Exception as exc:
            logger.warning("Could not obtain a response for {}: {}", isin, exc)
            return FundRefreshOutcome(isin=isin, name=name, status=STATUS_FAILED, message=str(exc))

        result = reconcile(raw_response, fund, self._context.settings, self._context.as_of)
        apply_result_to_record(record, result, self._context.settings.update_source_label)
        if fund.currency and result.current_price is not None and result.currency != fund.currency:
            logger.warning("Currency mismatch for {}: provider {} vs fund {}", isin, result.currency, fund.currency)

        status = STATUS_UPDATED if result.current_price is not None or result.stats.retained else STATUS_NO_UPDATE
        return FundRefreshOutcome(
            isin=isin,
            name=name,
            status=status,
            message=result.summary,
            result=result,
            raw_response=raw_response,
        )
