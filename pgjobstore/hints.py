"""Database driver errors and the operator hints derived from them."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "DatabaseErrorInfo",
    "DieselError",
    "DieselDatabaseError",
    "RecordNotFound",
    "database_hint",
]

_REGISTER_WORKER_HINT = (
    "; register the worker for this queue before locking or acknowledging jobs"
)
_RUN_SETUP_HINT = (
    "; run apalis_diesel_postgres::setup(&pool).await before using the storage"
)
_WORKER_FOREIGN_KEYS = frozenset({"jobs_lock_by_worker_type_fkey", "jobs_lock_by_fkey"})


@dataclass(frozen=True)
class DatabaseErrorInfo:
    """Structured details a PostgreSQL server reports with a failed statement."""

    message: str
    details: str | None = None
    hint: str | None = None
    table_name: str | None = None
    column_name: str | None = None
    constraint_name: str | None = None
    statement_position: int | None = None


class DieselError(Exception):
    """Base class for errors raised by the query layer."""


class DieselDatabaseError(DieselError):
    """The database server rejected a statement."""

    def __init__(self, info: DatabaseErrorInfo, kind: str = "unknown") -> None:
        super().__init__(info.message)
        self.info = info
        self.kind = kind

    def __str__(self) -> str:
        return self.info.message


class RecordNotFound(DieselError):
    """A query that expected a row returned none."""

    def __init__(self) -> None:
        super().__init__("Record not found")

    def __str__(self) -> str:
        return "Record not found"


def database_hint(error: BaseException) -> str:
    """Return a suffix suggesting the next step for ``error``, or ``""``."""
    if not isinstance(error, DieselDatabaseError):
        return ""
    info = error.info
    # Structured fields are locale-independent, so they are checked first.
    if info.table_name == "jobs" and info.constraint_name in _WORKER_FOREIGN_KEYS:
        return _REGISTER_WORKER_HINT

    message = info.message
    if "apalis.jobs" in message and (
        "does not exist" in message or "relation" in message
    ):
        return _RUN_SETUP_HINT
    if "foreign key" in message or any(name in message for name in _WORKER_FOREIGN_KEYS):
        return _REGISTER_WORKER_HINT
    return ""