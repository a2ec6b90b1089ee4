"""NAV history reconciliation for LLM-refreshed fund portfolios."""
from nav_history.application.use_cases import (
    RefreshContext,
    RefreshPortfolioUseCase,
    reconcile,
)
from nav_history.domain.models import FundState, HistoryEntry, Observation
from nav_history.domain.results import ReconciliationResult
from nav_history.infrastructure.parsing.provider_response import extract_signals
from nav_history.infrastructure.repositories.file_repositories import DirectoryResponseRepository

__all__ = [
    "reconcile",
    "extract_signals",
    "RefreshContext",
    "RefreshPortfolioUseCase",
    "FundState",
    "HistoryEntry",
    "Observation",
    "ReconciliationResult",
    "DirectoryResponseRepository",
]
