"""Exceptions raised by the PostgreSQL job storage backend."""

from __future__ import annotations

from typing import Callable

from .hints import DieselError, database_hint

__all__ = [
    "BackendError",
    "DatabaseError",
    "PoolError",
    "BlockingError",
    "MigrationError",
    "RowError",
    "InvalidArgumentError",
    "DecodeError",
    "JsonError",
    "MissingFieldError",
    "AlreadyRegisteredError",
    "TaskNotFoundError",
    "StaleAcknowledgementError",
    "WorkerNotRegisteredError",
    "NotifyListenerError",
    "SinkBufferFullError",
    "database",
    "UNLABELED_OPERATION",
]

# Used when a driver error escapes a transaction without an explicit label,
# e.g. a failing BEGIN / COMMIT / ROLLBACK.
UNLABELED_OPERATION = (
    "diesel transaction begin/commit/rollback "
    "(unlabeled \u2014 use map_err inside the closure)"
)


class BackendError(Exception):
    """Base class for every error the storage backend raises."""

    def __init__(self, message: str, source: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.__cause__ = source

    @property
    def source(self) -> BaseException | None:
        """The underlying error, if there is one."""
        return self.__cause__

    def __str__(self) -> str:
        return self.message


class DatabaseError(BackendError):
    """A query failed while running a named backend operation."""

    def __init__(self, source: DieselError, operation: str = UNLABELED_OPERATION) -> None:
        self.operation = operation
        super().__init__(
            f"database error while {operation}: {source}{database_hint(source)}",
            source,
        )


class PoolError(BackendError):
    """Acquiring a pooled connection failed."""

    def __init__(self, source: BaseException) -> None:
        super().__init__(
            f"failed to acquire PostgreSQL connection from r2d2 pool: {source}; "
            "check that DATABASE_URL points to a reachable PostgreSQL server "
            "and that the pool has enough connections",
            source,
        )


class BlockingError(BackendError):
    """A blocking task failed to complete."""

    def __init__(self, source: BaseException) -> None:
        super().__init__(f"blocking task failed: {source}", source)


class MigrationError(BackendError):
    """Database migrations failed."""

    def __init__(self, source: BaseException) -> None:
        super().__init__(f"failed to run embedded migrations: {source}", source)


class RowError(BackendError):
    """A task row could not be converted into a task."""

    def __init__(self, source: BaseException) -> None:
        super().__init__(
            f"failed to convert database row into an Apalis task: {source}", source
        )


class InvalidArgumentError(BackendError):
    """A caller-supplied argument was out of range for the backend."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"invalid argument: {detail}")


class DecodeError(BackendError):
    """A task payload or result could not be decoded."""

    def __init__(self, source: BaseException) -> None:
        super().__init__(
            "failed to decode task payload or result with the configured codec: "
            f"{source}",
            source,
        )


class JsonError(BackendError):
    """JSON encoding or decoding failed."""

    def __init__(self, source: BaseException) -> None:
        super().__init__(f"json error: {source}", source)


class MissingFieldError(BackendError):
    """A required task field was missing."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(
            f"task metadata is missing required field `{field}`; this usually means "
            "the task did not go through the expected poll/lock/ack lifecycle"
        )


class AlreadyRegisteredError(BackendError):
    """A worker or queue registration already exists."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(
            "worker registration already exists or is being registered "
            f"concurrently: {detail}"
        )


class TaskNotFoundError(BackendError):
    """A task was absent or not currently lockable."""

    def __init__(
        self, operation: str, task_id: str, queue: str | None, hint: str
    ) -> None:
        self.operation = operation
        self.task_id = task_id
        self.queue = queue if queue is not None else "<not constrained>"
        self.hint = hint
        super().__init__(
            f"task not found while {operation} "
            f"(task_id: {task_id}, queue: {self.queue}); {hint}"
        )


class StaleAcknowledgementError(BackendError):
    """An acknowledgement no longer matches the stored lock state."""

    def __init__(self, task_id: str, queue: str, worker_id: str) -> None:
        self.task_id = task_id
        self.queue = queue
        self.worker_id = worker_id
        super().__init__(
            f"stale acknowledgement for task {task_id} in queue {queue} by worker "
            f"{worker_id}; the task is no longer Running with the same lock owner, "
            "attempt, and lock timestamp"
        )


class WorkerNotRegisteredError(BackendError):
    """A worker heartbeat could not be recorded because the worker is absent."""

    def __init__(self, operation: str, worker_id: str, queue: str, hint: str) -> None:
        self.operation = operation
        self.worker_id = worker_id
        self.queue = queue
        self.hint = hint
        super().__init__(
            f"worker not registered while {operation} "
            f"(worker_id: {worker_id}, queue: {queue}); {hint}"
        )


class NotifyListenerError(BackendError):
    """The PostgreSQL notification listener failed."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(
            f"PostgreSQL notification listener failed: {detail}; polling fallback "
            "can still fetch jobs, but LISTEN/NOTIFY wakeups are disabled until "
            "the stream is recreated"
        )


class SinkBufferFullError(BackendError):
    """A producer sent without observing backpressure."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(
            "sink buffer is full; call poll_ready before start_send "
            f"(capacity: {capacity})"
        )


def database(operation: str) -> Callable[[DieselError], DatabaseError]:
    """Return a converter that labels a driver error with ``operation``."""

    def convert(source: DieselError) -> DatabaseError:
        return DatabaseError(source, operation)

    return convert