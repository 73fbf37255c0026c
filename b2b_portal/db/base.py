"""Declarative base for the portal tables.

Both tables mirror the hosted Postgres schema the storefront was built against,
so table names are set explicitly on each model.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import DateTime, Integer, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

# Only indexes, unique keys and primary keys are declared on these tables
PORTAL_METADATA = MetaData(
    naming_convention={
        "ix": "ix_%(table_name)s_%(column_0_name)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "pk": "pk_%(table_name)s",
    }
)


class Base(DeclarativeBase):
    metadata = PORTAL_METADATA

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Application code sets created_at on insert; the default covers raw SQL inserts
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @classmethod
    def has_column(cls, name: str) -> bool:
        return name in cls.__table__.columns

    def as_dict(self, columns: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """Column values keyed by column name, limited to ``columns`` when given."""
        names = columns or [column.key for column in self.__table__.columns]
        return {name: getattr(self, name) for name in names}
