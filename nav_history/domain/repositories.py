"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Any, Protocol


class ProviderResponseRepository(Protocol):
    """Supplies the raw provider response for one fund query."""

    def fetch_response(self, isin: str, name: str) -> str:
        ...


class PortfolioRepository(Protocol):
    """Loads and persists the portfolio document owning fund histories."""

    def load(self) -> dict[str, Any]:
        ...

    def save(self, portfolio: dict[str, Any]) -> None:
        ...
