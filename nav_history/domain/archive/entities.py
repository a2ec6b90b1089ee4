"""Archive domain entities for storing refresh runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence


@dataclass(frozen=True)
class ArchiveFile:
    name: str
    content: bytes


@dataclass(frozen=True)
class FundAuditEntry:
    isin: str
    status: str
    summary: str


@dataclass(frozen=True)
class RefreshArchiveRequest:
    run_id: str
    responses: Sequence[ArchiveFile]
    outputs: Sequence[ArchiveFile]
    funds: Sequence[FundAuditEntry] = field(default_factory=tuple)


@dataclass(frozen=True)
class ArchiveReceipt:
    run_id: str
    location: Path


def iter_all_files(request: RefreshArchiveRequest) -> Iterable[tuple[str, ArchiveFile]]:
    for item in request.responses:
        yield "responses", item
    for item in request.outputs:
        yield "", item
