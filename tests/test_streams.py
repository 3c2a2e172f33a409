import json

import pytest

from pgjobstore.errors import BackendError, DecodeError, SinkBufferFullError
from pgjobstore.streams import Task, decode_task_stream, register_then_stream


class _Scripted:
    """Async iterator that yields items, raising those that are exceptions."""

    def __init__(self, items):
        self._items = list(items)
        self.polled = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        self.polled += 1
        if not self._items:
            raise StopAsyncIteration
        item = self._items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


async def _drain(iterator):
    """Collect every item, recording raised backend errors in place."""
    out = []
    while True:
        try:
            out.append(await iterator.__anext__())
        except StopAsyncIteration:
            return out
        except BackendError as error:
            out.append(error)


async def _ok(value=None):
    return value


async def _fail(error):
    raise error


def test_try_map_replaces_args_and_keeps_context():
    task = Task(b"[1,2]", ctx={"attempt": 3}, task_id="task-1")
    mapped = task.try_map(json.loads)
    assert mapped == Task([1, 2], ctx={"attempt": 3}, task_id="task-1")
    assert task.args == b"[1,2]"


def test_try_map_propagates_errors():
    task = Task(b"not json")
    with pytest.raises(ValueError):
        task.try_map(json.loads)


@pytest.mark.asyncio
async def test_successful_registration_is_emitted_before_body():
    body = _Scripted([Task(b"one"), Task(b"two")])
    items = await _drain(register_then_stream(_ok(), body))
    assert items == [None, Task(b"one"), Task(b"two")]


@pytest.mark.asyncio
async def test_registration_value_is_the_first_item():
    items = await _drain(register_then_stream(_ok("registered"), _Scripted([])))
    assert items == ["registered"]


@pytest.mark.asyncio
async def test_failed_registration_never_polls_body():
    body = _Scripted([Task(b"one")])
    error = SinkBufferFullError(1)
    items = await _drain(register_then_stream(_fail(error), body))
    assert items == [error]
    assert body.polled == 0


@pytest.mark.asyncio
async def test_stream_stays_finished_after_failed_registration():
    stream = register_then_stream(_fail(SinkBufferFullError(2)), _Scripted([Task(b"x")]))
    with pytest.raises(SinkBufferFullError):
        await stream.__anext__()
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


@pytest.mark.asyncio
async def test_body_errors_do_not_end_the_stream():
    error = SinkBufferFullError(3)
    body = _Scripted([Task(b"a"), error, Task(b"b")])
    items = await _drain(register_then_stream(_ok(), body))
    assert items == [None, Task(b"a"), error, Task(b"b")]


@pytest.mark.asyncio
async def test_decode_maps_each_task_and_passes_none_through():
    source = _Scripted([None, Task(b'{"n": 1}', task_id="t1")])
    items = await _drain(decode_task_stream(source, json.loads))
    assert items == [None, Task({"n": 1}, task_id="t1")]


@pytest.mark.asyncio
async def test_decode_failure_raises_decode_error_with_source():
    def bad(_compact):
        raise ValueError("bad payload")

    stream = decode_task_stream(_Scripted([Task(b"x")]), bad)
    with pytest.raises(DecodeError) as caught:
        await stream.__anext__()
    assert str(caught.value) == (
        "failed to decode task payload or result with the configured codec: bad payload"
    )
    assert isinstance(caught.value.source, ValueError)


@pytest.mark.asyncio
async def test_decode_continues_after_failure_and_forwards_source_errors():
    upstream_error = SinkBufferFullError(4)
    source = _Scripted([Task(b"oops"), upstream_error, Task(b"[3]")])
    items = await _drain(decode_task_stream(source, json.loads))
    assert isinstance(items[0], DecodeError)
    assert items[1] is upstream_error
    assert items[2] == Task([3])
    assert len(items) == 3


@pytest.mark.asyncio
async def test_decode_composes_with_registration():
    body = _Scripted([Task(b"[1]")])
    stream = decode_task_stream(register_then_stream(_ok(), body), json.loads)
    assert await _drain(stream) == [None, Task([1])]