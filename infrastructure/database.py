"""
数据库连接管理

Database 持有异步引擎与会话工厂，由组合根（应用 lifespan、命令行脚本、
Celery 任务）创建并负责释放，不存在模块级全局引擎。
"""
from __future__ import annotations

from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from core.logging_config import get_logger
from infrastructure.models import Base

logger = get_logger(__name__)


def build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"不支持的数据库驱动: {drivername}. 请使用 async 驱动或更新数据库URL")

    return url.set(drivername=driver_map[drivername]).render_as_string(hide_password=False)


class Database:
    """异步引擎 + 会话工厂"""

    def __init__(self, url: Optional[str] = None, *, echo: Optional[bool] = None) -> None:
        self.url = build_async_url(url or settings.database.url)
        kwargs = {}
        if not self.url.startswith("sqlite"):
            kwargs["pool_pre_ping"] = settings.database.pool_pre_ping
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=settings.database.echo if echo is None else echo,
            **kwargs,
        )
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
        )

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """获取数据库会话（不自动提交，由调用方控制事务）"""
        async with self.session_factory() as session:
            yield session

    async def create_tables(self) -> None:
        """根据 models 中定义的所有模型创建表（测试与本地开发用，生产走 alembic）"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """删除所有表

        警告：仅用于测试环境，会删除所有数据！
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.debug("database_disposed", url=make_url(self.url).render_as_string(hide_password=True))
