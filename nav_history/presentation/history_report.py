"""History report generators for reconciled funds."""
from __future__ import annotations

from decimal import Decimal
from html import escape
from typing import Sequence

import pandas as pd

from nav_history.domain.models import HistoryEntry

COLUMNS = ["date", "total_value", "unit_price", "change_pct"]


def history_to_rows(history: Sequence[HistoryEntry], held_units: Decimal | None = None) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    previous: HistoryEntry | None = None
    for entry in sorted(history, key=lambda item: item.date):
        unit_price = entry.total_value / held_units if held_units else None
        change = ""
        if previous is not None and previous.total_value:
            change = f"{(entry.total_value / previous.total_value - 1) * 100:.2f}"
        rows.append(
            {
                "date": entry.date.isoformat(),
                "total_value": f"{entry.total_value:.2f}",
                "unit_price": "" if unit_price is None else f"{unit_price:.4f}",
                "change_pct": change,
            }
        )
        previous = entry
    return rows


def history_to_frame(history: Sequence[HistoryEntry], held_units: Decimal | None = None) -> pd.DataFrame:
    frame = pd.DataFrame(history_to_rows(history, held_units), columns=COLUMNS)
    if frame.empty:
        return frame
    frame["date"] = pd.to_datetime(frame["date"])
    for column in ("total_value", "unit_price", "change_pct"):
        frame[column] = pd.to_numeric(frame[column], errors="coerce")
    return frame


def render_csv(history: Sequence[HistoryEntry], held_units: Decimal | None = None) -> bytes:
    rows = history_to_rows(history, held_units)
    frame = pd.DataFrame(rows, columns=COLUMNS)
    return frame.to_csv(index=False).encode("utf-8")


def render_html(history: Sequence[HistoryEntry], held_units: Decimal | None = None) -> str:
    rows = history_to_rows(history, held_units)
    if not rows:
        return "<p>No history available.</p>"
    header = "".join(f"<th>{col}</th>" for col in COLUMNS)
    body = "".join(
        "<tr>" + "".join(f"<td>{escape(row[col])}</td>" for col in COLUMNS) + "</tr>" for row in rows
    )
    return f"<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"

