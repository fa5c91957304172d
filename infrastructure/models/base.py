"""
数据库模型基类（SQLAlchemy 2.0 风格）
"""
from datetime import datetime, timezone

from sqlalchemy import Numeric
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# 金额统一精度：4 位小数可精确保存 179.991 这类分成结果
Money = Numeric(precision=18, scale=4, asdecimal=True)

# 元数据对象用于数据库迁移
metadata = Base.metadata
