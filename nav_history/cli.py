"""Command-line entrypoint for NAV history reconciliation."""
from __future__ import annotations

import argparse
import dataclasses
import sys
from datetime import date
from pathlib import Path

from nav_history.application.archive.use_cases import ArchiveRefreshRunUseCase
from nav_history.application.use_cases import RefreshContext, RefreshPortfolioUseCase, reconcile
from nav_history.config import SETTINGS
from nav_history.domain.errors import NavHistoryError
from nav_history.infrastructure.archive.file_repository import FileSystemArchiveRepository
from nav_history.infrastructure.repositories.file_repositories import DirectoryResponseRepository
from nav_history.infrastructure.storage.portfolio_store import (
    JsonPortfolioRepository,
    apply_result_to_record,
    find_fund,
    fund_state_from_record,
)
from nav_history.logging_setup import setup_logging


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile provider NAV responses into fund histories")
    parser.add_argument("--log-level", default="INFO", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--log-file", default=None, help="Optional audit log file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    single = subparsers.add_parser("reconcile", help="Reconcile one captured response into one fund")
    single.add_argument("response", type=Path, help="Path to the raw provider response")
    single.add_argument("portfolio", type=Path, help="Path to the portfolio JSON file")
    single.add_argument("--isin", required=True, help="ISIN of the fund to update")
    single.add_argument("--as-of", type=str, help="Override today's date (YYYY-MM-DD)")
    single.add_argument("--write", action="store_true", help="Persist the updated portfolio")

    refresh = subparsers.add_parser("refresh", help="Refresh every fund from a directory of responses")
    refresh.add_argument("portfolio", type=Path, help="Path to the portfolio JSON file")
    refresh.add_argument("responses", type=Path, help="Directory holding <ISIN>.txt responses")
    refresh.add_argument("--delay", type=float, default=SETTINGS.refresh_delay_seconds, help="Pause between funds (s)")
    refresh.add_argument("--as-of", type=str, help="Override today's date (YYYY-MM-DD)")
    refresh.add_argument("--archive", type=Path, help="Archive the run under this directory")
    refresh.add_argument("--output", type=Path, help="Write the portfolio here instead of in place")
    return parser.parse_args(argv)


def _run_reconcile(args: argparse.Namespace) -> int:
    repository = JsonPortfolioRepository(args.portfolio)
    portfolio = repository.load()
    record = find_fund(portfolio, args.isin)
    fund = fund_state_from_record(record)
    raw = args.response.read_text(encoding="utf-8")
    as_of = date.fromisoformat(args.as_of) if args.as_of else None

    result = reconcile(raw, fund, as_of=as_of)
    print(f"{fund.isin} {fund.name}")
    print(result.summary)
    for entry in result.updated_history:
        print(f"  {entry.date.isoformat()}  {entry.total_value:.2f}")

    if args.write:
        apply_result_to_record(record, result, SETTINGS.update_source_label)
        repository.save(portfolio)
        print(f"Saved {repository.path}")
    return 0


def _run_refresh(args: argparse.Namespace) -> int:
    repository = JsonPortfolioRepository(args.portfolio)
    portfolio = repository.load()
    settings = dataclasses.replace(SETTINGS, refresh_delay_seconds=max(args.delay, 0.0))
    context = RefreshContext(
        response_repository=DirectoryResponseRepository(args.responses),
        settings=settings,
        as_of=date.fromisoformat(args.as_of) if args.as_of else None,
    )
    report = RefreshPortfolioUseCase(context).execute(portfolio)

    print("Refresh Summary")
    print("===============")
    for line in report.audit_lines():
        print(line)

    target = JsonPortfolioRepository(args.output) if args.output else repository
    target.save(report.portfolio)
    print(f"Saved {target.path}")

    if args.archive:
        receipt = ArchiveRefreshRunUseCase(FileSystemArchiveRepository(args.archive)).execute(report)
        print(f"Archived run {receipt.run_id} at {receipt.location}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    setup_logging(level=args.log_level, log_file=args.log_file)
    try:
        if args.command == "reconcile":
            return _run_reconcile(args)
        return _run_refresh(args)
    except (NavHistoryError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
