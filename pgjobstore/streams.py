"""Task values and the asynchronous stream combinators used by the fetchers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, Generic, TypeVar

from .errors import DecodeError

__all__ = ["Task", "register_then_stream", "decode_task_stream"]

A = TypeVar("A")
B = TypeVar("B")


@dataclass(frozen=True)
class Task(Generic[A]):
    """A queued job: its arguments plus the storage context that travels with it."""

    args: A
    ctx: dict[str, Any] = field(default_factory=dict)
    task_id: str | None = None

    def try_map(self, func: Callable[[A], B]) -> "Task[B]":
        """Return a copy whose arguments are ``func(args)``; errors propagate."""
        return replace(self, args=func(self.args))  # type: ignore[return-value]


class _RegisteredStream:
    """Yields the registration outcome first, then the body only on success."""

    def __init__(self, register: Awaitable[Any], body: AsyncIterable[Any]) -> None:
        self._register: Awaitable[Any] | None = register
        self._body: AsyncIterable[Any] | None = body
        self._iterator: AsyncIterator[Any] | None = None
        self._done = False

    def __aiter__(self) -> "_RegisteredStream":
        return self

    async def __anext__(self) -> Any:
        if self._done:
            raise StopAsyncIteration
        if self._register is not None:
            register, self._register = self._register, None
            try:
                outcome = await register
            except BaseException:
                # The body is never started when registration fails, so the
                # original error is not masked by follow-up failures.
                self._done = True
                self._body = None
                raise
            assert self._body is not None
            self._iterator = aiter(self._body)
            self._body = None
            return outcome
        assert self._iterator is not None
        try:
            return await self._iterator.__anext__()
        except StopAsyncIteration:
            self._done = True
            self._iterator = None
            raise


class _DecodedStream:
    """Decodes the arguments of every task a compact stream yields."""

    def __init__(
        self, source: AsyncIterable[Task[Any] | None], decode: Callable[[Any], Any]
    ) -> None:
        self._source = aiter(source)
        self._decode = decode

    def __aiter__(self) -> "_DecodedStream":
        return self

    def _decode_args(self, compact: Any) -> Any:
        try:
            return self._decode(compact)
        except Exception as exc:
            raise DecodeError(exc) from exc

    async def __anext__(self) -> Task[Any] | None:
        row = await self._source.__anext__()
        if row is None:
            return None
        return row.try_map(self._decode_args)


def register_then_stream(
    register: Awaitable[Any], body: AsyncIterable[Any]
) -> AsyncIterator[Any]:
    """Await ``register`` and yield its result, then yield from ``body``.

    If registration raises, that error is raised from the first step and the
    stream ends without ever iterating ``body``. Errors raised by ``body``
    propagate one at a time; iteration may continue after them.
    """
    return _RegisteredStream(register, body)


def decode_task_stream(
    stream: AsyncIterable[Task[Any] | None], decode: Callable[[Any], Any]
) -> AsyncIterator[Task[Any] | None]:
    """Map each task's compact arguments through ``decode``.

    ``None`` items pass through, errors from ``stream`` propagate unchanged and
    a failing ``decode`` raises :class:`DecodeError`. Iteration may continue
    after an error.
    """
    return _DecodedStream(stream, decode)