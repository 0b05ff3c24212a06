"""Helpers for working with database/SQLAlchemy errors."""

from __future__ import annotations

from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

_MISSING_TABLE_SQLSTATES = {"42P01"}
# connection exceptions, insufficient resources, operator intervention
_TRANSIENT_SQLSTATE_CLASSES = ("08", "53", "57")


def is_missing_table_error(exc: SQLAlchemyError, table_name: str) -> bool:
    """Return ``True`` if ``exc`` indicates that ``table_name`` is missing."""

    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "sqlstate", None)
    if sqlstate in _MISSING_TABLE_SQLSTATES:
        return True

    message = str(orig).lower()
    if table_name.lower() not in message:
        return False

    return "no such table" in message or "does not exist" in message


def is_transient_error(exc: SQLAlchemyError) -> bool:
    """Return ``True`` if ``exc`` looks like a retryable I/O failure.

    Connection drops, pool exhaustion and the PostgreSQL SQLSTATE classes for
    connection/resource problems count as transient. Constraint violations and
    programming errors do not.
    """

    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError)):
        return True

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True

    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None)
    if isinstance(sqlstate, str) and sqlstate[:2] in _TRANSIENT_SQLSTATE_CLASSES:
        return True

    return False
