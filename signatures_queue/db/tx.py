from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Protocol

from sqlalchemy import Table, exists, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.elements import TextClause

from .helpers import resolve_column, resolve_table
from .metrics import observe_db_write

logger = logging.getLogger(__name__)


class DbTx(Protocol):
    """
    Storage handle passed explicitly to every piece of code that touches the
    database. There is no process-wide "active connection": whoever needs a
    query gets a DbTx from the DbFactory that owns the target engine.
    """

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def insert(self, table: str | Table, record: Mapping[str, Any]) -> Any:
        """Insert one row and return its primary key."""
        ...

    def exists(self, table: str | Table, column: str, value: Any) -> bool:
        """Return True if at least one row has column == value."""
        ...

    def execute(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        ...

    def execute_scalar(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        ...

    def fetch_one(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        ...

    def fetch_all(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        ...


class DbTransaction:
    """
    One transaction on one connection, with explicit commit() and rollback().

    The transaction begins on construction. After commit or rollback the
    connection is closed and the object cannot be used again.

    Do NOT retry inside a single DbTransaction; each attempt needs a new one
    from DbFactory.begin().

    Usage:
        tx = factory.begin()
        try:
            tx.insert("validations", row)
            tx.commit()
        except Exception:
            tx.rollback()
            raise
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None
        self._closed = False
        # (table, start_time) of every insert, reported on commit/rollback
        self._inserts: list[tuple[str, float]] = []

        self._conn = self.engine.connect()
        self._tx = self._conn.begin()

    @property
    def closed(self) -> bool:
        return self._closed

    def _connection(self) -> Connection:
        if self._closed or self._conn is None:
            raise RuntimeError("Transaction is already closed")
        return self._conn

    def _close(self, status: str) -> None:
        end_time = time.monotonic()
        self._closed = True
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._tx = None

        try:
            for table, start_time in self._inserts:
                observe_db_write(table=table, status=status, latency_s=end_time - start_time)
        except Exception:
            # metric errors must not mask the real outcome
            logger.debug("Failed to record DB write metrics", exc_info=True)

    def commit(self) -> None:
        """
        Commit and close the connection.

        Raises:
            RuntimeError: If the transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        status = "success"
        try:
            if self._tx is not None:
                self._tx.commit()
        except Exception:
            status = "error"
            try:
                if self._tx is not None:
                    self._tx.rollback()
            except Exception:
                logger.debug("Rollback after failed commit also failed", exc_info=True)
            raise
        finally:
            self._close(status)

    def rollback(self) -> None:
        """
        Roll back and close the connection.

        Raises:
            RuntimeError: If the transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        try:
            if self._tx is not None:
                self._tx.rollback()
        finally:
            self._close("error")

    def insert(self, table: str | Table, record: Mapping[str, Any]) -> Any:
        """
        Insert one row into a table known to the static schema.

        Keys of ``record`` that are not columns of the table raise ValueError
        before anything is sent to the database.

        Returns:
            The primary key of the new row
        """
        target = resolve_table(table)
        for column in record:
            resolve_column(target, column)

        start_time = time.monotonic()
        conn = self._connection()
        result = conn.execute(target.insert().values(**dict(record)))
        self._inserts.append((target.name, start_time))
        pk = result.inserted_primary_key
        return pk[0] if pk else None

    def exists(self, table: str | Table, column: str, value: Any) -> bool:
        target = resolve_table(table)
        col = resolve_column(target, column)
        stmt = select(exists().where(col == value))
        return bool(self._connection().execute(stmt).scalar())

    def execute(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Execute a non-SELECT statement and return affected row count.

        Raises:
            RuntimeError: If the transaction is closed or rowcount is None
        """
        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        result = conn.execute(stmt, params or {})
        try:
            if result.rowcount is None:
                raise RuntimeError(
                    "execute() received None rowcount for statement. "
                    "This may indicate a DDL statement or unsupported operation type."
                )
            return int(result.rowcount)
        finally:
            result.close()

    def execute_scalar(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        result = conn.execute(stmt, params or {})
        try:
            return result.scalar_one_or_none()
        finally:
            result.close()

    def fetch_one(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """
        Execute a SELECT expected to return 0 or 1 row. Raises if more than one row.
        """
        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        result = conn.execute(stmt, params or {})
        try:
            row = result.mappings().one_or_none()
            return None if row is None else dict(row)
        finally:
            result.close()

    def fetch_all(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        result = conn.execute(stmt, params or {})
        try:
            return [dict(row) for row in result.mappings()]
        finally:
            result.close()


class DbFactory:
    """
    Owns an Engine and hands out transactions on it.

    Usage:
        factory = DbFactory(engine)

        tx = factory.begin()          # explicit control
        ...
        tx.commit()

        with factory.session() as tx:  # commit on success, rollback on error
            tx.exists("validations_processed", "secret_validation_key", key)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def begin(self) -> DbTransaction:
        return DbTransaction(self.engine)

    @contextmanager
    def session(self) -> Iterator[DbTransaction]:
        tx = self.begin()
        try:
            yield tx
        except Exception:
            if not tx.closed:
                tx.rollback()
            raise
        else:
            if not tx.closed:
                tx.commit()
