"""Archive application use cases."""
from __future__ import annotations

import json
from dataclasses import dataclass

from nav_history.application.dto import RefreshReport
from nav_history.domain.archive.entities import (
    ArchiveFile,
    ArchiveReceipt,
    FundAuditEntry,
    RefreshArchiveRequest,
)
from nav_history.infrastructure.archive.file_repository import FileSystemArchiveRepository


def build_archive_request(report: RefreshReport, run_id: str | None = None) -> RefreshArchiveRequest:
    responses = [
        ArchiveFile(name=f"{outcome.isin}.txt", content=outcome.raw_response.encode("utf-8"))
        for outcome in report.outcomes
        if outcome.raw_response is not None
    ]
    audit_log = "\n".join(report.audit_lines()) + "\n"
    outputs = [
        ArchiveFile(
            name="portfolio.json",
            content=json.dumps(report.portfolio, ensure_ascii=False, indent=2).encode("utf-8"),
        ),
        ArchiveFile(name="audit.log", content=audit_log.encode("utf-8")),
    ]
    return RefreshArchiveRequest(
        run_id=run_id or report.started_at.strftime("%Y%m%d_%H%M%S"),
        responses=responses,
        outputs=outputs,
        funds=[FundAuditEntry(isin=o.isin, status=o.status, summary=o.message) for o in report.outcomes],
    )


@dataclass(slots=True)
class ArchiveRefreshRunUseCase:
    repository: FileSystemArchiveRepository

    def execute(self, report: RefreshReport, run_id: str | None = None) -> ArchiveReceipt:
        return self.repository.save_run(build_archive_request(report, run_id))
