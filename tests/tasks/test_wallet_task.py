import asyncio
from decimal import Decimal
from functools import partial

from core.config import settings
from domain.wallet.entity import LedgerIntent
from infrastructure.database import Database
from infrastructure.tasks import celery_app
from infrastructure.tasks.tasks.wallet import process_outbox
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def _seed_intent(url: str) -> None:
    async with Database(url) as db:
        await db.create_tables()
        async with SQLAlchemyUnitOfWork(db.session_factory) as uow:
            await uow.outbox_repository.add(LedgerIntent.credit(500, Decimal("42"), "SALE:1", {"paymentId": 1}))


async def _balance(url: str) -> Decimal:
    async with Database(url) as db:
        uow_factory = partial(SQLAlchemyUnitOfWork, db.session_factory)
        async with uow_factory(readonly=True) as uow:
            wallet = await uow.wallet_repository.get_by_owner(500)
    return wallet.available_balance


def test_outbox_task_is_scheduled_on_ledger_queue():
    schedule = celery_app.conf.beat_schedule["wallet-process-outbox"]
    assert schedule["task"] == "wallet.process_outbox"
    assert schedule["schedule"] == settings.commerce.outbox_interval_seconds
    assert celery_app.conf.task_routes["wallet.*"] == {"queue": "ledger"}
    assert "wallet.process_outbox" in celery_app.tasks


def test_outbox_task_drains_pending_intents(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}"
    monkeypatch.setattr(settings.database, "url", url)
    asyncio.run(_seed_intent(url))

    report = process_outbox.apply(kwargs={"retry_failed": True}).get()

    assert report == {"processed": 1, "succeeded": 1, "failed": 0, "failed_ids": []}
    assert asyncio.run(_balance(url)) == Decimal("42")
