#!/usr/bin/env python3
"""Backfill teacher wallets from historical completed payments (HIST_SYNC_V1).

Each teacher is credited once with earnings net of completed refunds. Running
again skips teachers whose wallet already carries the sync reference.

Usage:
    python -m scripts.sync_historical_earnings            # apply
    python -m scripts.sync_historical_earnings --dry-run  # report only

Exit non-zero on a fatal error or when any teacher failed to sync.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from functools import partial
from typing import Optional, Sequence

from application.dto import HistoricalSyncReportDTO
from application.services.historical_sync_service import HistoricalSyncService
from core.logging_config import configure_logging, get_logger
from infrastructure.database import Database
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

logger = get_logger("scripts.sync_historical_earnings")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync historical teacher earnings into wallets")
    parser.add_argument("--dry-run", action="store_true", help="compute and report without writing")
    parser.add_argument("--database-url", default=None, help="override DATABASE__URL")
    return parser.parse_args(argv)


async def run(dry_run: bool, database_url: Optional[str] = None) -> HistoricalSyncReportDTO:
    async with Database(database_url) as db:
        service = HistoricalSyncService(partial(SQLAlchemyUnitOfWork, db.session_factory))
        return await service.run(dry_run=dry_run)


def _log_report(report: HistoricalSyncReportDTO) -> None:
    for teacher in report.teachers:
        logger.info(
            "historical_sync_teacher",
            teacher_profile_id=teacher.teacher_profile_id,
            owner_id=teacher.owner_id,
            payments=teacher.payment_count,
            gross=str(teacher.gross),
            refunded_portion=str(teacher.refunded_portion),
            net=str(teacher.net),
            status=teacher.status,
            error=teacher.error,
        )
    logger.info(
        "historical_sync_summary",
        dry_run=report.dry_run,
        payments_scanned=report.payments_scanned,
        teachers=len(report.teachers),
        wallets_synced=report.wallets_synced,
        total_net=str(report.total_net),
        errors=report.errors,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    try:
        report = asyncio.run(run(args.dry_run, args.database_url))
    except Exception as exc:
        logger.error("historical_sync_fatal", error=str(exc), exc_info=True)
        return 1
    _log_report(report)
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
