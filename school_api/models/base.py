# base.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import declarative_base, declared_attr
from sqlalchemy.sql import func

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    @declared_attr
    def created_at(cls):
        return Column(DateTime, server_default=func.now(), nullable=False)

    @declared_attr
    def updated_at(cls):
        return Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)


class TenantModel(Base):
    """
    A base for multi-tenant tables.
    This ensures models have a school_id foreign key.

    The ``__*_column__`` hints tell the tenant filter which attribute holds
    the school, class and student edges of a row.
    """
    __abstract__ = True

    __tenant_column__ = "school_id"
    __class_column__ = None
    __student_column__ = None

    @declared_attr
    def school_id(cls):
        return Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
