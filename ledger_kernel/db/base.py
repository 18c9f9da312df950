"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for the SQLAlchemy ORM models behind the
    SQL record store.  Provides the type annotation map that keeps Decimal
    columns at fixed precision and timestamps timezone-aware.
Architecture position: Kernel > DB.  Lowest-level import target in the
    kernel; MUST NOT import from store/, services/ or outer layers.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }


class TrackedBase(Base):
    """Abstract base adding created_at/updated_at audit timestamps."""

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
