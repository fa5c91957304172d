"""Wallet ledger Celery tasks"""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Optional

from celery import shared_task

from application.services.wallet_service import WalletSyncService
from core.logging_config import get_logger
from infrastructure.database import Database
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from ..utils.base_task import BaseTask

logger = get_logger(__name__)


async def drain_outbox(limit: Optional[int] = None, retry_failed: bool = False) -> dict:
    """Drain PENDING ledger intents with a task-scoped Database."""
    async with Database() as db:
        sync = WalletSyncService(partial(SQLAlchemyUnitOfWork, db.session_factory))
        if retry_failed:
            await sync.retry_failed()
        report = await sync.process_intents(limit=limit)
    return report.model_dump(mode="json")


@shared_task(
    name="wallet.process_outbox",
    bind=True,
    base=BaseTask,
    autoretry_for=(ConnectionError, OSError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
)
def process_outbox(self, limit: Optional[int] = None, retry_failed: bool = False) -> dict:
    """Post pending wallet credits/debits; per-intent failures are recorded, not raised."""
    report = asyncio.run(drain_outbox(limit=limit, retry_failed=retry_failed))
    if report["failed"]:
        logger.warning("wallet_outbox_task_partial", **report)
    return report
