"""Polling fetcher: waits on a poll strategy, fetches batches and buffers them."""

from __future__ import annotations

import asyncio
import enum
from collections import deque
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, Sequence

from .streams import Task

__all__ = [
    "FetchState",
    "PollContext",
    "PollFetcher",
    "PENDING",
    "STRATEGY_EXHAUSTED_BACKOFF",
]

# Seconds to wait after the poll strategy ends before fetching again. The
# strategy already self-tunes through ``previous_task_count``; this only
# smooths the case where the strategy stream runs out.
STRATEGY_EXHAUSTED_BACKOFF = 0.1


class _Pending:
    """Marker returned by :meth:`PollFetcher.poll_once` when no item is ready."""

    _instance: "_Pending | None" = None

    def __new__(cls) -> "_Pending":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()

_EXHAUSTED = object()


class FetchState(enum.Enum):
    """Where a :class:`PollFetcher` is in its fetch cycle."""

    WAIT_FOR_POLL = "wait_for_poll"
    STRATEGY_ENDED = "strategy_ended"
    FETCH = "fetch"
    BUFFERED = "buffered"


@dataclass
class PollContext:
    """What a poll strategy may consult: the worker and the last batch size."""

    worker: str
    previous_task_count: int = 0


PollStrategy = Callable[[PollContext], AsyncIterable[Any]]
FetchNext = Callable[[], Awaitable[Sequence[Task[Any]]]]


async def _next_tick(poller: AsyncIterator[Any]) -> Any:
    try:
        return await poller.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


async def _resolve(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class PollFetcher:
    """An endless asynchronous stream of tasks fetched whenever the strategy ticks.

    ``fetch`` returns the next batch of tasks; ``poll_strategy`` builds, from a
    :class:`PollContext`, the stream whose items signal that it is time to
    fetch. A failing fetch raises its error from the step that observed it and
    the fetcher then waits for the next poll signal, so iteration may go on.
    """

    def __init__(
        self, fetch: FetchNext, poll_strategy: PollStrategy, worker: str
    ) -> None:
        self._fetch = fetch
        self._poll_strategy = poll_strategy
        self.worker = worker
        self.context = PollContext(worker)
        self._buffer: deque[Task[Any]] = deque()
        self._pending: asyncio.Future[Any] | None = None
        self._poller: AsyncIterator[Any] | None = None
        self.state = FetchState.WAIT_FOR_POLL
        self._wait_for_poll()

    @property
    def previous_task_count(self) -> int:
        """Size of the last fetched batch, as the poll strategy sees it."""
        return self.context.previous_task_count

    def clone(self) -> "PollFetcher":
        """Return a fetcher sharing the configuration but none of the state."""
        return PollFetcher(self._fetch, self._poll_strategy, self.worker)

    def take_pending(self) -> deque[Task[Any]]:
        """Remove and return buffered tasks not yet yielded."""
        if self.state is not FetchState.BUFFERED:
            return deque()
        drained, self._buffer = self._buffer, deque()
        return drained

    def _wait_for_poll(self) -> None:
        self.state = FetchState.WAIT_FOR_POLL
        self._pending = None
        self._buffer = deque()
        self._poller = aiter(self._poll_strategy(self.context))

    def _start_fetch(self) -> None:
        self.state = FetchState.FETCH
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(_resolve(self._fetch()))

    def _strategy_ended(self) -> None:
        self.state = FetchState.STRATEGY_ENDED
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(asyncio.sleep(STRATEGY_EXHAUSTED_BACKOFF))

    def _take_done(self) -> asyncio.Future[Any] | None:
        """Return the pending step if it finished, clearing it; else ``None``."""
        pending = self._pending
        if pending is None or not pending.done():
            return None
        self._pending = None
        return pending

    def poll_once(self) -> Task[Any] | _Pending:
        """Advance without blocking; return a task or :data:`PENDING`.

        Must be called while an event loop is running.
        """
        while True:
            if self.state is FetchState.WAIT_FOR_POLL:
                if self._pending is None:
                    assert self._poller is not None
                    loop = asyncio.get_running_loop()
                    self._pending = loop.create_task(_next_tick(self._poller))
                done = self._take_done()
                if done is None:
                    return PENDING
                if done.result() is _EXHAUSTED:
                    self._strategy_ended()
                else:
                    self._start_fetch()
            elif self.state is FetchState.STRATEGY_ENDED:
                done = self._take_done()
                if done is None:
                    return PENDING
                self._start_fetch()
            elif self.state is FetchState.FETCH:
                done = self._take_done()
                if done is None:
                    return PENDING
                try:
                    tasks = list(done.result())
                except Exception:
                    self.context.previous_task_count = 0
                    self._wait_for_poll()
                    raise
                if not tasks:
                    self.context.previous_task_count = 0
                    self._wait_for_poll()
                else:
                    self.context.previous_task_count = len(tasks)
                    self.state = FetchState.BUFFERED
                    self._buffer = deque(tasks)
            else:
                if self._buffer:
                    task = self._buffer.popleft()
                    if not self._buffer:
                        self._wait_for_poll()
                    return task
                self._wait_for_poll()

    def __aiter__(self) -> "PollFetcher":
        return self

    async def __anext__(self) -> Task[Any]:
        while True:
            item = self.poll_once()
            if not isinstance(item, _Pending):
                return item
            if self._pending is not None:
                await asyncio.wait({self._pending})
            else:
                await asyncio.sleep(0)