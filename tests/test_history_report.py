from datetime import date
from decimal import Decimal

from nav_history.domain.models import HistoryEntry
from nav_history.presentation.history_report import history_to_frame, history_to_rows, render_csv, render_html

HISTORY = [
    HistoryEntry(date(2025, 2, 28), Decimal("1100")),
    HistoryEntry(date(2025, 1, 31), Decimal("1000")),
]


def test_rows_are_sorted_with_unit_price_and_change():
    rows = history_to_rows(HISTORY, Decimal("10"))

    assert rows == [
        {"date": "2025-01-31", "total_value": "1000.00", "unit_price": "100.0000", "change_pct": ""},
        {"date": "2025-02-28", "total_value": "1100.00", "unit_price": "110.0000", "change_pct": "10.00"},
    ]


def test_frame_has_typed_columns():
    frame = history_to_frame(HISTORY, Decimal("10"))

    assert list(frame.columns) == ["date", "total_value", "unit_price", "change_pct"]
    assert frame["total_value"].tolist() == [1000.0, 1100.0]
    assert str(frame["date"].dtype).startswith("datetime64")


def test_render_csv():
    csv_text = render_csv(HISTORY).decode("utf-8").splitlines()

    assert csv_text[0] == "date,total_value,unit_price,change_pct"
    assert csv_text[1] == "2025-01-31,1000.00,,"


def test_render_html():
    assert render_html([]) == "<p>No history available.</p>"
    html = render_html(HISTORY)
    assert html.startswith("<table><thead><tr><th>date</th>")
    assert "<td>2025-02-28</td>" in html
