"""Central configuration for the NAV history package."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

# Outlier policy: keep candidates within [low, high] x reference price.
OUTLIER_LOW_RATIO = Decimal("0.2")
OUTLIER_HIGH_RATIO = Decimal("5.0")

# Maximum entries kept in a fund's rolling history.
RETENTION_CAP = 36

JSON_START_MARKER = "### JSON_START ###"
JSON_END_MARKER = "### JSON_END ###"


@dataclass(slots=True, frozen=True)
class Settings:
    outlier_low_ratio: Decimal
    outlier_high_ratio: Decimal
    retention_cap: int
    interpolate_gaps: bool
    price_quantum: Decimal
    default_currency: str
    refresh_delay_seconds: float
    update_source_label: str


SETTINGS = Settings(
    outlier_low_ratio=OUTLIER_LOW_RATIO,
    outlier_high_ratio=OUTLIER_HIGH_RATIO,
    retention_cap=RETENTION_CAP,
    interpolate_gaps=True,
    price_quantum=Decimal("0.01"),
    default_currency="EUR",
    refresh_delay_seconds=5.0,
    update_source_label="Google/Gemini",
)
