"""
健康检查
"""
from fastapi import APIRouter, Request
from sqlalchemy import text

from core.config import settings
from core.logging_config import get_logger
from core.response import success_response

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get("/health", summary="健康检查")
async def health_check(request: Request):
    database = "ok"
    try:
        async with request.app.state.db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("health_database_unavailable", error=str(exc))
        database = "unavailable"
    return success_response(
        data={
            "status": "healthy" if database == "ok" else "degraded",
            "database": database,
            "version": settings.VERSION,
            "payment_gateway": request.app.state.payment_gateway is not None,
        }
    )
