"""
方言相关的 INSERT 构造：PostgreSQL 与 SQLite 都支持 ON CONFLICT DO NOTHING
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def upsert_insert(session: AsyncSession, model):
    """根据会话绑定的方言返回支持 on_conflict_do_nothing 的 insert()"""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"不支持的数据库方言: {dialect}")
