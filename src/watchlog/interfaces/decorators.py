"""
Function and block timing interfaces: decorator, context managers, loop wrapper.

All of them take the Recorder explicitly; there is no global default.

Usage:
    recorder = Recorder()

    @watch(recorder)                    # group is the function qualname
    def my_function(): ...

    @watch(recorder, "db", key="users") # custom group and key
    def load_users(): ...

    with watch_block(recorder, "db query"):
        result = db.query(...)

    for row in watch_loop(recorder, "rows", rows):
        handle(row)
"""

import functools
import inspect
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional

from ..core.recorder import Recorder
from ..core.records import TagMap


def _make_wrapper(fn: Callable, recorder: Recorder, group: str,
                  key: Optional[str], tags: Optional[TagMap]) -> Callable:
    """Wrap a callable so every invocation records and closes its own event."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        event = recorder.start_event(group, key, tags)
        try:
            return fn(*args, **kwargs)
        finally:
            recorder.stop_event(event)

    return wrapper


def _make_async_wrapper(fn: Callable, recorder: Recorder, group: str,
                        key: Optional[str], tags: Optional[TagMap]) -> Callable:
    """Wrap an async callable so every awaited invocation records its own event."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        event = recorder.start_event(group, key, tags)
        try:
            return await fn(*args, **kwargs)
        finally:
            recorder.stop_event(event)

    return wrapper


def watch(recorder: Recorder, group: Optional[str] = None, *,
          key: Optional[str] = None, tags: Optional[TagMap] = None) -> Callable:
    """
    Decorator that records one event around every call.

    Each call closes the event it started, so recursive and concurrent
    calls with the same group and key are recorded independently.

    Supported usage patterns:
        @watch(recorder)
        @watch(recorder, "custom group")
        @watch(recorder, "group", key="k", tags={"kind": "io"})

    Args:
        recorder: Recorder receiving the events
        group: Group name; defaults to the function's qualified name
        key: Optional key within the group
        tags: Optional tags attached to every event
    """

    def decorator(fn: Callable) -> Callable:
        label = group or fn.__qualname__
        if inspect.iscoroutinefunction(fn):
            return _make_async_wrapper(fn, recorder, label, key, tags)
        return _make_wrapper(fn, recorder, label, key, tags)

    return decorator


@contextmanager
def watch_block(recorder: Recorder, group: str, key: Optional[str] = None,
                tags: Optional[TagMap] = None):
    """
    Context manager recording an inline block as one event.

    Example:
        with watch_block(recorder, "parse json"):
            data = json.loads(raw)
    """
    event = recorder.start_event(group, key, tags)
    try:
        yield recorder
    finally:
        recorder.stop_event(event)


def watch_call(recorder: Recorder, fn: Callable, *args, group: Optional[str] = None,
               key: Optional[str] = None, tags: Optional[TagMap] = None, **kwargs):
    """
    Time a single function call without decorating the function.

    Args:
        recorder: Recorder receiving the event
        fn: The callable to time
        *args: Positional arguments forwarded to fn
        group: Group name; defaults to fn's qualified name
        key: Optional key within the group
        tags: Optional tags attached to the event
        **kwargs: Keyword arguments forwarded to fn

    Returns:
        The return value of fn(*args, **kwargs)
    """
    label = group or getattr(fn, "__qualname__", repr(fn))
    event = recorder.start_event(label, key, tags)
    try:
        return fn(*args, **kwargs)
    finally:
        recorder.stop_event(event)


def watch_loop(recorder: Recorder, group: str, iterable: Iterable,
               tags: Optional[TagMap] = None) -> Iterator:
    """
    Yield items from iterable, recording each iteration as a loop event.

    The last iteration is closed when the iterable is exhausted, when the
    consumer breaks out early, or when its body raises.
    """
    try:
        for item in iterable:
            recorder.loop(group, tags)
            yield item
    finally:
        recorder.end_loop(group)
