"""
结算服务 ORM 基类与公共列默认值（SQLAlchemy 2.0 风格）
"""
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """所有时间列统一写入带时区的 UTC 时间"""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


# Alembic env.py 与 create_tables 共用同一份元数据
metadata = Base.metadata
