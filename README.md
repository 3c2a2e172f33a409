# pgjobstore

Building blocks for the worker side of a PostgreSQL-backed job queue: an error
hierarchy with actionable messages, hints derived from database failures, and
asyncio stream plumbing for fetching tasks. The package has no third-party
dependencies.

## Modules

### `pgjobstore.hints`

Models the failures a query layer reports and derives operator hints from them.

- `DatabaseErrorInfo` is a frozen dataclass. It holds the details a server sends
  with a failed statement: `message`, `details`, `hint`, `table_name`,
  `column_name`, `constraint_name` and `statement_position`.
- `DieselError` is the base exception. It has two subclasses.
  `DieselDatabaseError(info, kind="unknown")` means the server rejected a
  statement, and its text is the message. `RecordNotFound` has the text
  `"Record not found"`.
- `database_hint(error)` returns a suffix that starts with `"; "`, or `""` when
  it has no hint:
  - A foreign-key failure on the `jobs` table gives the hint to register the
    worker for the queue. The failure is recognised by `table_name` plus the
    constraint `jobs_lock_by_worker_type_fkey` or `jobs_lock_by_fkey`. It is
    also recognised from the message text.
  - A message saying `apalis.jobs` does not exist gives the hint to run setup.

### `pgjobstore.errors`

Every error derives from `BackendError`. `str(error)` is the full message, and
`error.source` (also `__cause__`) is the underlying exception, where there is
one. The classes are:

`DatabaseError`, `PoolError`, `BlockingError`, `MigrationError`, `RowError`,
`InvalidArgumentError`, `DecodeError`, `JsonError`, `MissingFieldError`,
`AlreadyRegisteredError`, `TaskNotFoundError`, `StaleAcknowledgementError`,
`WorkerNotRegisteredError`, `NotifyListenerError`, `SinkBufferFullError`.

`DatabaseError(source, operation=UNLABELED_OPERATION)` puts the operation and
the `database_hint` of the source into its message. `database(operation)`
returns a converter that turns a `DieselError` into a `DatabaseError` with that
label:

```python
from pgjobstore.errors import database
from pgjobstore.hints import RecordNotFound

error = database("fetching jobs")(RecordNotFound())
print(error)  # database error while fetching jobs: Record not found
```

`TaskNotFoundError(operation, task_id, queue, hint)` shows
`<not constrained>` when `queue` is `None`.

### `pgjobstore.streams`

- `Task(args, ctx={}, task_id=None)` is a frozen dataclass.
  `task.try_map(func)` returns a copy whose `args` are `func(args)`.
- `register_then_stream(register, body)` is an async iterator. It first awaits
  `register` and yields its result, then yields from `body`. If registration
  raises, the error is raised and `body` is never iterated.
- `decode_task_stream(stream, decode)` passes the `args` of each task through
  `decode`. `None` items pass through unchanged. A failing `decode` raises
  `DecodeError`.

### `pgjobstore.poll_fetcher`

`PollFetcher(fetch, poll_strategy, worker)` is an endless async iterator of
tasks:

- `fetch` is a coroutine function that returns a batch of tasks.
- `poll_strategy` is called with the fetcher's `PollContext`. It returns an
  async iterable whose items signal that it is time to fetch.
- When the strategy runs out, the fetcher waits `STRATEGY_EXHAUSTED_BACKOFF`
  (0.1 s) and then fetches.
- Fetched tasks are buffered and yielded one at a time.
- `previous_task_count` records the size of the last batch. It is 0 after an
  empty or failed fetch.
- A failing fetch raises its error, and the fetcher then waits for the next
  poll signal.

The fetcher has these methods:

- `poll_once()` advances without blocking. It returns a task or `PENDING`.
- `take_pending()` drains the tasks still buffered.
- `clone()` returns a fresh fetcher with the same configuration. The clone
  shares none of the original's state.

The current phase is exposed as `state`, a `FetchState`.

```python
import asyncio
from pgjobstore.poll_fetcher import PollFetcher
from pgjobstore.streams import Task

async def fetch():
    return [Task(args=b'{"n": 1}')]

async def every_second(context):
    while True:
        yield None
        await asyncio.sleep(1)

async def main():
    async for task in PollFetcher(fetch, every_second, "worker-1"):
        print(task.args)
        break

asyncio.run(main())
```

## What this package does not do

It does not connect to PostgreSQL, run queries or migrations, or listen for
notifications. It also does not provide a storage class or a worker command.
You supply the `fetch` coroutine and the poll strategy; the package provides
the error types and the stream machinery around them.

## Running the tests

```
pip install -e ".[test]"
pytest
```