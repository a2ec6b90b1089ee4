"""Exceptions raised to callers of the reconciliation engine.

Parse anomalies in provider text never surface here; they are skipped where
they occur. These cover caller mistakes and unusable persisted state.
"""


class NavHistoryError(Exception):
    """Base class for nav_history errors."""


class InvalidFundStateError(NavHistoryError, ValueError):
    """Raised when a fund snapshot cannot be reconciled (e.g. no units held)."""


class FundNotFoundError(NavHistoryError, LookupError):
    """Raised when an ISIN is not present in the portfolio."""


class PortfolioFormatError(NavHistoryError, ValueError):
    """Raised when a persisted portfolio document is not readable."""
