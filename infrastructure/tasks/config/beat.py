"""Celery beat schedule.

The wallet outbox is drained inline after each sale or refund commits; the
periodic drain picks up intents left PENDING by a crash or a failed post.
"""
from __future__ import annotations

from core.config import settings

CELERY_BEAT_SCHEDULE = {
    "wallet-process-outbox": {
        "task": "wallet.process_outbox",
        "schedule": settings.commerce.outbox_interval_seconds,
    },
}
