import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from nav_history.config import SETTINGS
from nav_history.domain.dates import month_end
from nav_history.domain.errors import InvalidFundStateError
from nav_history.domain.models import FundState, HistoryEntry, Observation
from nav_history.domain.services import HistoryReconciler, prefer_observation


def make_obs(day: date, price: str, synthetic: bool = False) -> Observation:
    return Observation(date=day, price=Decimal(price), is_synthetic=synthetic)


def make_fund(history=(), units: str = "10") -> FundState:
    return FundState(isin="ES0000000001", held_units=Decimal(units), history=tuple(history))


def test_outlier_bounds_example():
    reconciler = HistoryReconciler()
    candidates = [
        make_obs(date(2025, 1, 31), "600"),
        make_obs(date(2025, 2, 28), "25"),
        make_obs(date(2025, 3, 31), "80"),
        make_obs(date(2025, 4, 30), "19"),
    ]

    kept, rejected = reconciler.reject_outliers(candidates, Decimal("100"))

    assert [obs.price for obs in kept] == [Decimal("25"), Decimal("80")]
    assert sorted(obs.price for obs in rejected) == [Decimal("19"), Decimal("600")]


def test_outlier_bounds_are_inclusive():
    kept, rejected = HistoryReconciler().reject_outliers(
        [make_obs(date(2025, 1, 31), "20"), make_obs(date(2025, 2, 28), "500")],
        Decimal("100"),
    )

    assert len(kept) == 2
    assert rejected == []


def test_median_reference_without_current_price():
    candidates = [
        make_obs(date(2025, 1, 31), "10"),
        make_obs(date(2025, 2, 28), "11"),
        make_obs(date(2025, 3, 31), "12"),
        make_obs(date(2025, 4, 30), "100"),
    ]

    kept, rejected = HistoryReconciler().reject_outliers(candidates, None)

    assert [obs.price for obs in rejected] == [Decimal("100")]
    assert len(kept) == 3


def test_literal_wins_over_synthetic_in_same_month():
    literal = make_obs(date(2025, 3, 10), "100")
    synthetic = make_obs(date(2025, 3, 31), "90", synthetic=True)

    assert HistoryReconciler.deduplicate_monthly([literal, synthetic]) == [literal]
    assert HistoryReconciler.deduplicate_monthly([synthetic, literal]) == [literal]


def test_literal_closest_to_month_end_wins_regardless_of_order():
    early = make_obs(date(2025, 3, 10), "100")
    late = make_obs(date(2025, 3, 28), "102")

    assert HistoryReconciler.deduplicate_monthly([late, early]) == [late]
    assert HistoryReconciler.deduplicate_monthly([early, late]) == [late]


def test_same_date_tie_goes_to_later_observation():
    first = make_obs(date(2025, 3, 31), "100")
    second = make_obs(date(2025, 3, 31), "101")

    assert prefer_observation(second, first)
    assert HistoryReconciler.deduplicate_monthly([first, second]) == [second]


def test_interpolation_fills_month_ends_between_anchors():
    points = [make_obs(date(2024, 12, 31), "100"), make_obs(date(2025, 3, 31), "130")]

    filled = HistoryReconciler().interpolate_gaps(points)

    assert [(obs.date, obs.price) for obs in filled] == [
        (date(2025, 1, 31), Decimal("110.33")),
        (date(2025, 2, 28), Decimal("119.67")),
    ]
    assert all(obs.is_synthetic for obs in filled)


def test_interpolation_skips_months_already_covered():
    points = [make_obs(date(2025, 1, 15), "100"), make_obs(date(2025, 2, 10), "110")]

    assert HistoryReconciler().interpolate_gaps(points) == []


def test_prior_month_entry_is_replaced_by_new_literal():
    fund = make_fund([HistoryEntry(date(2025, 4, 30), Decimal("990")), HistoryEntry(date(2025, 5, 31), Decimal("1000"))])
    candidates = [make_obs(date(2025, 5, 15), "105"), make_obs(date(2025, 6, 5), "106")]

    outcome = HistoryReconciler().reconcile(candidates, fund, Decimal("106"), as_of=date(2025, 6, 10))

    may = [entry for entry in outcome.history if (entry.date.year, entry.date.month) == (2025, 5)]
    assert may == [HistoryEntry(date(2025, 5, 31), Decimal("1050"))]
    assert outcome.history[-1] == HistoryEntry(date(2025, 6, 5), Decimal("1060"))
    assert outcome.history[0] == HistoryEntry(date(2025, 4, 30), Decimal("990"))


def test_latest_month_keeps_exact_day():
    fund = make_fund([HistoryEntry(date(2025, 5, 31), Decimal("1000"))])

    outcome = HistoryReconciler().reconcile([make_obs(date(2025, 5, 15), "105")], fund, None, as_of=date(2025, 6, 10))

    assert outcome.history == (HistoryEntry(date(2025, 5, 15), Decimal("1050")),)


def test_older_month_is_normalized_when_history_has_newer_month():
    fund = make_fund([HistoryEntry(date(2025, 7, 31), Decimal("1000"))])

    outcome = HistoryReconciler().reconcile([make_obs(date(2025, 5, 15), "100")], fund, None, as_of=date(2025, 8, 5))

    assert [entry.date for entry in outcome.history] == [date(2025, 5, 31), date(2025, 7, 31)]
    assert outcome.history[-1] == HistoryEntry(date(2025, 7, 31), Decimal("1000"))


def test_interpolated_points_do_not_overwrite_prior_history():
    fund = make_fund([HistoryEntry(date(2025, 2, 28), Decimal("1500"))])
    candidates = [make_obs(date(2024, 12, 31), "100"), make_obs(date(2025, 3, 31), "130")]

    outcome = HistoryReconciler().reconcile(candidates, fund, Decimal("130"), as_of=date(2025, 4, 1))

    values = {entry.date: entry.total_value for entry in outcome.history}
    assert values[date(2025, 2, 28)] == Decimal("1500")
    assert values[date(2025, 1, 31)] == Decimal("1103.30")
    assert outcome.stats.interpolated == 1


def test_retention_cap_keeps_newest_entries():
    candidates = [make_obs(month_end(date(2021 + i // 12, i % 12 + 1, 1)), str(100 + i)) for i in range(50)]

    outcome = HistoryReconciler().reconcile(candidates, make_fund(), None, as_of=date(2025, 12, 31))

    assert len(outcome.history) == SETTINGS.retention_cap
    assert outcome.history[0].date == date(2022, 3, 31)
    assert outcome.history[-1].date == date(2025, 2, 28)


def test_smaller_retention_cap_from_settings():
    settings = dataclasses.replace(SETTINGS, retention_cap=24, interpolate_gaps=False)
    candidates = [make_obs(month_end(date(2023, m, 1)), "100") for m in range(1, 13)]
    history = [HistoryEntry(month_end(date(2021, m, 1)), Decimal("900")) for m in range(1, 13)]

    outcome = HistoryReconciler(settings).reconcile(candidates, make_fund(history), None, as_of=date(2024, 1, 1))

    assert len(outcome.history) == 24
    assert outcome.stats.interpolated == 0


def test_empty_candidates_leave_history_untouched():
    history = (HistoryEntry(date(2025, 1, 31), Decimal("1000")), HistoryEntry(date(2024, 12, 31), Decimal("990")))

    outcome = HistoryReconciler().reconcile([], make_fund(history), None, as_of=date(2025, 6, 1))

    assert outcome.history == history
    assert outcome.stats.new_points == 0


def test_all_outliers_leave_history_untouched():
    history = (HistoryEntry(date(2025, 1, 31), Decimal("1000")),)

    outcome = HistoryReconciler().reconcile(
        [make_obs(date(2025, 2, 28), "1000")], make_fund(history), Decimal("100"), as_of=date(2025, 6, 1)
    )

    assert outcome.history == history
    assert outcome.stats.dropped == 1


def test_future_dated_observations_are_dropped():
    outcome = HistoryReconciler().reconcile(
        [make_obs(date(2025, 5, 31), "100"), make_obs(date(2025, 7, 31), "101")],
        make_fund(),
        None,
        as_of=date(2025, 6, 15),
    )

    assert [entry.date for entry in outcome.history] == [date(2025, 5, 31)]
    assert outcome.stats.dropped == 1


def test_history_dates_unique_and_prices_positive():
    history = [
        HistoryEntry(date(2024, 10, 15), Decimal("950")),
        HistoryEntry(date(2024, 10, 31), Decimal("960")),
    ]
    candidates = [
        make_obs(date(2024, 9, 30), "95"),
        make_obs(date(2024, 10, 10), "96", synthetic=True),
        make_obs(date(2025, 1, 31), "99"),
        make_obs(date(2025, 1, 31), "98", synthetic=True),
    ]

    outcome = HistoryReconciler().reconcile(candidates, make_fund(history), None, as_of=date(2025, 2, 1))

    dates = [entry.date for entry in outcome.history]
    months = [(d.year, d.month) for d in dates]
    assert len(set(dates)) == len(dates)
    assert len(set(months)) == len(months)
    assert all(entry.total_value > 0 for entry in outcome.history)
    assert outcome.stats.duplicates == 1


def test_observation_rejects_non_positive_price():
    with pytest.raises(ValueError):
        Observation(date=date(2025, 1, 31), price=Decimal("0"))
    with pytest.raises(ValueError):
        Observation(date=date(2025, 1, 31), price=Decimal("-1"))


def test_fund_state_requires_units():
    with pytest.raises(InvalidFundStateError):
        make_fund(units="0")
