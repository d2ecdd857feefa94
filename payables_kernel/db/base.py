"""
Module: payables_kernel.db.base
Responsibility: Declarative base classes for the SQLAlchemy ORM models of the
    payables store.  Provides the type annotation map for consistent column
    types and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target for ORM
    models.  MUST NOT import from engines, services or config.

Invariants enforced:
    - Decimal precision: type_annotation_map maps Python Decimal to
      Numeric(38, 9).  NEVER use float for monetary amounts.
    - String primary keys: bills, vendors, payments and workflows are
      externally identified, so each model declares its own ``id`` column.
    - Audit timestamps: TrackedBase provides created_at and updated_at.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all payables ORM models.

    Guarantees:
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - date maps to Date.
        - str maps to String(100) unless a model overrides the length.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        str: String(100),
    }


class TrackedBase(Base):
    """
    Abstract base with audit timestamps.

    created_at is set by the database on INSERT; updated_at is refreshed on
    every UPDATE issued through the ORM.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
