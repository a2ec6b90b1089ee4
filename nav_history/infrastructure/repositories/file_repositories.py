"""File-backed repositories replaying captured provider responses."""
from __future__ import annotations

from pathlib import Path

from nav_history.domain.repositories import ProviderResponseRepository

RESPONSE_SUFFIXES = (".txt", ".json", ".md")


class DirectoryResponseRepository(ProviderResponseRepository):
    """Reads ``<root>/<ISIN>.txt`` (or ``.json``/``.md``) for each fund."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def fetch_response(self, isin: str, name: str) -> str:
        for suffix in RESPONSE_SUFFIXES:
            candidate = self._root / f"{isin}{suffix}"
            if candidate.is_file():
                return candidate.read_text(encoding="utf-8")
        raise FileNotFoundError(f"No captured response for {isin} ({name}) in {self._root}")
