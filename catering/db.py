from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Union

import streamlit as st

from catering.errors import ConstraintViolation, NotFoundError, RemoteOperationError
from catering.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)

# Streamlit sessions run on their own threads but share the cached connection.
# Every statement, and every transaction from BEGIN to COMMIT/ROLLBACK, runs
# while holding this lock, so one session's transaction never absorbs another
# session's statements.
_LOCK = threading.RLock()


def connect(db_path: Union[Path, str]) -> sqlite3.Connection:
    # Autocommit: single writes land immediately, multi-row writes go through transaction().
    conn = sqlite3.connect(str(db_path), check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    return connect(db_path)


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    with _LOCK:
        conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs go here ----


def _execute(conn: sqlite3.Connection, sql: str, params: Iterable[Any]) -> sqlite3.Cursor:
    try:
        return conn.execute(sql, tuple(params))
    except sqlite3.IntegrityError as exc:
        logger.warning("Constraint violation: %s", exc)
        raise ConstraintViolation(str(exc)) from exc
    except sqlite3.Error as exc:
        logger.exception("Database operation failed")
        raise RemoteOperationError(str(exc)) from exc


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    with _LOCK:
        cur = _execute(conn, sql, params)
        rows = cur.fetchall()
        cur.close()
    return rows


def q_one(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, what: str = "Row") -> sqlite3.Row:
    rows = q(conn, sql, params)
    if not rows:
        raise NotFoundError(f"{what} not found.")
    return rows[0]


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    with _LOCK:
        cur = _execute(conn, sql, params)
        last = cur.lastrowid
        cur.close()
    return int(last or 0)


def rowcount(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    with _LOCK:
        cur = _execute(conn, sql, params)
        n = cur.rowcount
        cur.close()
    return int(n)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a multi-write sequence atomically.

    The calling thread holds the connection lock until COMMIT or ROLLBACK, and
    BEGIN IMMEDIATE takes the database write lock up front, so guards checked
    inside the block cannot be invalidated by another writer (another session
    on the shared connection, or another process on the file) before the block
    commits. A nested call from the thread that owns the transaction joins it.
    """
    with _LOCK:
        if conn.in_transaction:
            yield conn
            return

        try:
            conn.execute("BEGIN IMMEDIATE;")
        except sqlite3.Error as exc:
            logger.exception("Could not open transaction")
            raise RemoteOperationError(str(exc)) from exc

        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK;")
            raise
        else:
            conn.execute("COMMIT;")
