"""Table-oriented persistence interface used by the session store and auth flow.

The portal only needs a handful of primitives from its relational store: select
with equality and range filters (optionally expecting exactly one row), upsert on
a conflict column, update, and delete. ``PersistenceService`` describes that
contract so request handlers never touch the ORM directly and tests can swap in a
fake.

Example usage:
    persistence = SqlAlchemyPersistence(engine)
    profile = await persistence.select_one("user_profiles", [eq("email", email)])
    await persistence.delete("user_sessions", [lte("expires_at", utc_now())])
"""

import logging
import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

from sqlalchemy import delete, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from b2b_portal.db.base import Base
from b2b_portal.db.models import UserProfile, UserSession
from b2b_portal.db.session import get_db_sync

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the backing store rejects or fails an operation."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class RecordNotFoundError(PersistenceError):
    """Raised by ``select_one`` when no row matches."""

    def __init__(self, message: str = "No matching record"):
        super().__init__(message, code="not_found")


class PersistenceUnavailableError(PersistenceError):
    """Raised when the backing store cannot be reached."""

    def __init__(self, message: str = "Persistence service unavailable"):
        super().__init__(message, code="unavailable")


FILTER_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "gt": operator.gt,
    "lt": operator.lt,
    "lte": operator.le,
}


@dataclass(frozen=True)
class Filter:
    """A single ``column <op> value`` condition."""

    column: str
    op: str
    value: Any

    def apply(self, left: Any) -> Any:
        """Apply the operator to a column expression or a plain value."""
        return FILTER_OPERATORS[self.op](left, self.value)


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


class PersistenceService(ABC):
    """Abstract table store.

    Rows travel as plain dictionaries keyed by column name. Every method may
    raise ``PersistenceError``; ``select_one`` raises ``RecordNotFoundError``
    when nothing matches.
    """

    @abstractmethod
    async def ping(self) -> None:
        """Raise ``PersistenceUnavailableError`` if the store cannot be reached."""

    @abstractmethod
    async def ensure_table(self, table: str) -> None:
        """Create the table if it does not exist yet."""

    @abstractmethod
    async def select_one(
        self,
        table: str,
        filters: Sequence[Filter],
        columns: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Return exactly one matching row."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return all matching rows."""

    @abstractmethod
    async def upsert(
        self,
        table: str,
        values: Mapping[str, Any],
        on_conflict: str,
        insert_defaults: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Insert ``values`` or overwrite the row sharing ``values[on_conflict]``.

        ``insert_defaults`` are only written when a new row is created.
        """

    @abstractmethod
    async def update(
        self, table: str, values: Mapping[str, Any], filters: Sequence[Filter]
    ) -> List[Dict[str, Any]]:
        """Update matching rows and return them."""

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        """Delete matching rows and return how many were removed."""


# Tables exposed through the persistence service
TABLES: Dict[str, Type[Base]] = {
    UserProfile.__tablename__: UserProfile,
    UserSession.__tablename__: UserSession,
}


class SqlAlchemyPersistence(PersistenceService):
    """``PersistenceService`` backed by a SQLAlchemy engine.

    ORM calls are blocking, so each operation runs in Starlette's thread pool and
    only suspends the awaiting request.
    """

    def __init__(self, engine: Engine, tables: Optional[Mapping[str, Type[Base]]] = None):
        self.engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._tables = dict(tables or TABLES)

    # ------------------------------------------------------------------
    # helpers

    def _model(self, table: str) -> Type[Base]:
        try:
            return self._tables[table]
        except KeyError:
            raise PersistenceError(f"Unknown table: {table}", code="unknown_table") from None

    @staticmethod
    def _column(model: Type[Base], name: str) -> Any:
        if not model.has_column(name):
            raise PersistenceError(
                f"Unknown column {name!r} for table {model.__tablename__}",
                code="unknown_column",
            )
        return getattr(model, name)

    def _where(self, model: Type[Base], filters: Sequence[Filter]) -> List[Any]:
        clauses = []
        for condition in filters:
            if condition.op not in FILTER_OPERATORS:
                raise PersistenceError(f"Unsupported filter operator: {condition.op}")
            clauses.append(condition.apply(self._column(model, condition.column)))
        return clauses

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await run_in_threadpool(func, *args)
        except OperationalError as e:
            logger.error(f"Persistence backend unreachable: {e}")
            raise PersistenceUnavailableError(str(e)) from e
        except SQLAlchemyError as e:
            logger.error(f"Persistence operation failed: {e}")
            raise PersistenceError(str(e)) from e

    # ------------------------------------------------------------------
    # PersistenceService

    async def ping(self) -> None:
        def _ping() -> None:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

        await self._run(_ping)

    async def ensure_table(self, table: str) -> None:
        model = self._model(table)

        def _create() -> None:
            Base.metadata.create_all(
                bind=self.engine,
                tables=[model.__table__],
                checkfirst=True,
            )

        await self._run(_create)

    async def select_one(
        self,
        table: str,
        filters: Sequence[Filter],
        columns: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        rows = await self.select(table, filters, columns=columns, limit=2)
        if not rows:
            raise RecordNotFoundError(f"No row in {table} matches the given filters")
        if len(rows) > 1:
            raise PersistenceError(
                f"Expected a single row from {table}, got several", code="multiple_rows"
            )
        return rows[0]

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        model = self._model(table)
        for name in columns or ():
            self._column(model, name)

        stmt = select(model).where(*self._where(model, filters))
        if order_by:
            column = self._column(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        def _select() -> List[Dict[str, Any]]:
            with get_db_sync(self._session_factory) as db:
                return [row.as_dict(columns) for row in db.scalars(stmt).all()]

        return await self._run(_select)

    async def upsert(
        self,
        table: str,
        values: Mapping[str, Any],
        on_conflict: str,
        insert_defaults: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        model = self._model(table)
        insert_values = {**(insert_defaults or {}), **values}
        for name in insert_values:
            self._column(model, name)
        if on_conflict not in values:
            raise PersistenceError(f"Upsert values must include {on_conflict!r}")
        key_column = self._column(model, on_conflict)
        key_value = values[on_conflict]

        def _upsert() -> Dict[str, Any]:
            with get_db_sync(self._session_factory) as db:
                try:
                    row = db.scalar(select(model).where(key_column == key_value))
                    if row is None:
                        row = model(**insert_values)
                        db.add(row)
                    else:
                        for name, value in values.items():
                            setattr(row, name, value)
                    db.commit()
                except IntegrityError:
                    # Another writer inserted the same key between our SELECT and
                    # INSERT; retry as an update (last writer wins).
                    db.rollback()
                    logger.debug(f"Upsert insert raced on {table}, retrying as update")
                    row = db.scalar(select(model).where(key_column == key_value))
                    if row is None:
                        raise
                    for name, value in values.items():
                        setattr(row, name, value)
                    db.commit()
                except Exception:
                    db.rollback()
                    raise
                db.refresh(row)
                return row.as_dict()

        return await self._run(_upsert)

    async def update(
        self, table: str, values: Mapping[str, Any], filters: Sequence[Filter]
    ) -> List[Dict[str, Any]]:
        model = self._model(table)
        for name in values:
            self._column(model, name)
        stmt = select(model).where(*self._where(model, filters))

        def _update() -> List[Dict[str, Any]]:
            with get_db_sync(self._session_factory) as db:
                try:
                    rows = db.scalars(stmt).all()
                    for row in rows:
                        for name, value in values.items():
                            setattr(row, name, value)
                    db.commit()
                except Exception:
                    db.rollback()
                    raise
                for row in rows:
                    db.refresh(row)
                return [row.as_dict() for row in rows]

        return await self._run(_update)

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        model = self._model(table)
        stmt = delete(model).where(*self._where(model, filters))

        def _delete() -> int:
            with get_db_sync(self._session_factory) as db:
                try:
                    result = db.execute(stmt)
                    db.commit()
                except Exception:
                    db.rollback()
                    raise
                return result.rowcount or 0

        return await self._run(_delete)
