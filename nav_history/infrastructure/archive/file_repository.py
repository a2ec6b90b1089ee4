"""Filesystem repository for archiving refresh runs."""
from __future__ import annotations

import json
import re
from pathlib import Path

from nav_history.domain.archive.entities import (
    ArchiveFile,
    ArchiveReceipt,
    RefreshArchiveRequest,
    iter_all_files,
)


def normalize_run_id(run_id: str) -> str:
    """Turn timestamps like ``2026/10/19 08:30:00`` into ``20261019_083000``."""
    if not run_id:
        return "run"
    digits = re.findall(r"\d", run_id)
    if len(digits) >= 14:
        return "".join(digits[:8]) + "_" + "".join(digits[8:14]) + "".join(digits[14:])
    sanitized = re.sub(r"[^0-9A-Za-z_-]+", "", run_id.strip())
    return sanitized or "run"


def _safe_name(name: str) -> str:
    return re.sub(r"[^0-9A-Za-z._-]+", "_", Path(name).name) or "file"


class FileSystemArchiveRepository:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def save_run(self, request: RefreshArchiveRequest) -> ArchiveReceipt:
        run_id = normalize_run_id(request.run_id)
        run_dir = self._root / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        for folder, archive_file in iter_all_files(request):
            target_dir = run_dir / folder if folder else run_dir
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / _safe_name(archive_file.name)).write_bytes(archive_file.content)

        manifest = {
            "run_id": run_id,
            "responses": [self._manifest_entry(item) for item in request.responses],
            "outputs": [self._manifest_entry(item) for item in request.outputs],
            "funds": [
                {"isin": fund.isin, "status": fund.status, "summary": fund.summary}
                for fund in request.funds
            ],
        }
        (run_dir / "manifest.json").write_text(
            json.dumps(manifest, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        return ArchiveReceipt(run_id=run_id, location=run_dir)

    @staticmethod
    def _manifest_entry(archive_file: ArchiveFile) -> dict[str, object]:
        return {"name": _safe_name(archive_file.name), "bytes": len(archive_file.content)}
