"""Connection management for the relational user store.

A gateway hands out :class:`Handle` objects for exactly one unit of work.
Acquisition is scoped: the handle is committed when the ``with`` block
finishes cleanly, rolled back when it raises, and the underlying
connection is released on every exit path.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2 import pool

from .config import StoreSettings

logger = logging.getLogger("usersapi.store")


class StoreError(Exception):
    """Base class for failures raised by the user store."""


class StoreConnectionError(StoreError):
    """Raised when the store is unreachable or rejects the credentials."""


class QueryError(StoreError):
    """Raised when a statement fails or a returned row cannot be decoded."""


class Handle:
    """A live store connection scoped to one unit of work.

    Statements are written with ``%s`` placeholders on every backend; the
    handle rewrites them to the driver's own marker.
    """

    def __init__(
        self,
        connection: Any,
        *,
        placeholder: str = "%s",
        driver_errors: Tuple[type, ...] = (Exception,),
    ) -> None:
        self._connection = connection
        self._placeholder = placeholder
        self._driver_errors = driver_errors

    def _run(self, statement: str, params: Sequence[Any]) -> Any:
        if self._placeholder != "%s":
            statement = statement.replace("%s", self._placeholder)
        cursor = self._connection.cursor()
        try:
            if params:
                cursor.execute(statement, tuple(params))
            else:
                cursor.execute(statement)
        except self._driver_errors as exc:
            cursor.close()
            raise QueryError(str(exc)) from exc
        return cursor

    def fetchall(self, statement: str, params: Sequence[Any] = ()) -> List[Sequence[Any]]:
        with closing(self._run(statement, params)) as cursor:
            try:
                return list(cursor.fetchall())
            except self._driver_errors as exc:
                raise QueryError(str(exc)) from exc

    def execute(self, statement: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the number of affected rows."""
        with closing(self._run(statement, params)) as cursor:
            return cursor.rowcount

    def execute_script(self, statements: Sequence[str]) -> None:
        """Run DDL statements verbatim, without placeholder translation."""
        for statement in statements:
            cursor = self._connection.cursor()
            try:
                cursor.execute(statement)
            except self._driver_errors as exc:
                raise QueryError(str(exc)) from exc
            finally:
                cursor.close()

    def ping(self) -> None:
        self.fetchall("SELECT 1")


class StoreGateway(ABC):
    """Base gateway. Subclasses open, release and describe their backend."""

    placeholder = "%s"
    driver_errors: Tuple[type, ...] = (Exception,)
    schema: Tuple[str, ...] = ()

    @abstractmethod
    def _open(self) -> Any:
        """Open a raw DB-API connection."""

    @abstractmethod
    def _release(self, connection: Any, *, discard: bool = False) -> None:
        """Give ``connection`` back, closing it when ``discard`` is set."""

    @contextmanager
    def acquire(self) -> Iterator[Handle]:
        """Yield a pinged :class:`Handle` for one unit of work."""

        connection = self._open()
        discard = False
        try:
            handle = Handle(connection, placeholder=self.placeholder, driver_errors=self.driver_errors)
            try:
                handle.ping()
            except QueryError as exc:
                discard = True
                logger.error("Store liveness check failed: %s", exc)
                raise StoreConnectionError("Store did not answer the liveness check") from exc

            try:
                yield handle
            except BaseException:
                self._rollback(connection)
                raise
            try:
                connection.commit()
            except self.driver_errors as exc:
                self._rollback(connection)
                raise QueryError(str(exc)) from exc
        finally:
            self._release(connection, discard=discard)

    def _rollback(self, connection: Any) -> None:
        try:
            connection.rollback()
        except self.driver_errors as exc:
            logger.warning("Rollback failed: %s", exc)

    def initialize(self, *, reset: bool = False) -> None:
        """Create the ``users`` table if needed, dropping it first when ``reset`` is set."""

        statements: Tuple[str, ...] = self.schema
        if reset:
            statements = ("DROP TABLE IF EXISTS users",) + statements
        with self.acquire() as handle:
            handle.execute_script(statements)

    def close(self) -> None:
        """Release any resources held across units of work."""


class SQLiteGateway(StoreGateway):
    """Opens one SQLite connection per unit of work."""

    placeholder = "?"
    # sqlite3 raises OverflowError for integers outside the 64-bit range.
    driver_errors = (sqlite3.Error, OverflowError)
    schema = (
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL,
            email TEXT NOT NULL,
            firstname TEXT,
            lastname TEXT,
            sex TEXT,
            date_created TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now'))
        )
        """,
    )

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _open(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self._path, check_same_thread=False)
        except sqlite3.Error as exc:
            logger.error("Unable to open SQLite store at %s: %s", self._path, exc)
            raise StoreConnectionError("Unable to open the user store") from exc

    def _release(self, connection: sqlite3.Connection, *, discard: bool = False) -> None:
        connection.close()


class PostgresGateway(StoreGateway):
    """PostgreSQL gateway backed by a bounded psycopg2 connection pool."""

    driver_errors = (psycopg2.Error,)
    schema = (
        """
        CREATE TABLE IF NOT EXISTS users (
            id serial PRIMARY KEY,
            username varchar NOT NULL,
            email varchar NOT NULL,
            firstname varchar,
            lastname varchar,
            sex varchar,
            date_created timestamptz DEFAULT CURRENT_TIMESTAMP
        )
        """,
    )

    def __init__(self, settings: StoreSettings) -> None:
        self._settings = settings
        self._pool: Optional[pool.ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(settings.pool_size)

    def _get_pool(self) -> pool.ThreadedConnectionPool:
        with self._lock:
            if self._pool is None:
                settings = self._settings
                self._pool = pool.ThreadedConnectionPool(
                    0,
                    settings.pool_size,
                    host=settings.host,
                    port=settings.port,
                    user=settings.user,
                    password=settings.password,
                    dbname=settings.database,
                    sslmode=settings.sslmode,
                )
                logger.info(
                    "Connection pool ready for %s@%s:%s/%s (max %s connections)",
                    settings.user,
                    settings.host,
                    settings.port,
                    settings.database,
                    settings.pool_size,
                )
            return self._pool

    def _open(self) -> Any:
        if not self._slots.acquire(timeout=self._settings.acquire_timeout):
            raise StoreConnectionError("Timed out waiting for a free store connection")
        try:
            return self._get_pool().getconn()
        except psycopg2.Error as exc:
            self._slots.release()
            logger.error("Unable to connect to PostgreSQL: %s", exc)
            raise StoreConnectionError("Unable to connect to the user store") from exc

    def _release(self, connection: Any, *, discard: bool = False) -> None:
        try:
            if self._pool is not None:
                self._pool.putconn(connection, close=discard or bool(connection.closed))
        finally:
            self._slots.release()

    def close(self) -> None:
        with self._lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("Connection pool closed.")


def create_gateway(settings: StoreSettings) -> StoreGateway:
    """Build the gateway matching ``settings.driver``."""

    if settings.driver == "sqlite":
        if settings.path is None:
            raise ValueError("The sqlite driver requires a database path")
        return SQLiteGateway(settings.path)
    return PostgresGateway(settings)


__all__ = [
    "Handle",
    "PostgresGateway",
    "QueryError",
    "SQLiteGateway",
    "StoreConnectionError",
    "StoreError",
    "StoreGateway",
    "create_gateway",
]
