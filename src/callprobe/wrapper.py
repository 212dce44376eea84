"""Wrap callables so every invocation opens and closes a span."""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import inspect
import weakref
from typing import Any, Callable, TypeVar

from .tracker import CallStackTracker

F = TypeVar("F", bound=Callable[..., Any])

_WRAPPED: "weakref.WeakSet[Callable[..., Any]]" = weakref.WeakSet()


def is_wrapped(fn: Any) -> bool:
    try:
        return fn in _WRAPPED
    except TypeError:
        return False


def unwrap(fn: F) -> F:
    """Return the original callable behind a traced wrapper."""
    while is_wrapped(fn):
        fn = fn.__wrapped__
    return fn


def callable_name(fn: Any) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or "anonymous"


def callable_location(fn: Any) -> str:
    code = getattr(inspect.unwrap(fn), "__code__", None)
    if code is None:
        return ""
    return f"{code.co_filename}:{code.co_firstlineno}"


def _cancelled_error() -> asyncio.CancelledError:
    return asyncio.CancelledError("cancelled")


def _settle_future(tracker: CallStackTracker, token: str, future: Any) -> None:
    if future.cancelled():
        tracker.exit(token, error=_cancelled_error())
        return
    exc = future.exception()
    if exc is not None:
        tracker.exit(token, error=exc)
    else:
        tracker.exit(token, future.result())


async def _await_and_close(tracker: CallStackTracker, token: str, awaitable: Any) -> Any:
    tracker.attach(token)
    try:
        value = await awaitable
    except BaseException as exc:
        tracker.exit(token, error=exc)
        raise
    tracker.exit(token, value)
    return value


def _close_sync_result(tracker: CallStackTracker, token: str, result: Any) -> Any:
    if isinstance(result, (asyncio.Future, concurrent.futures.Future)):
        tracker.detach(token)
        result.add_done_callback(functools.partial(_settle_future, tracker, token))
        return result
    if inspect.iscoroutine(result):
        tracker.detach(token)
        return _await_and_close(tracker, token, result)
    tracker.exit(token, result)
    return result


def wrap_callable(
    tracker: CallStackTracker,
    fn: F,
    name: str | None = None,
    location: str | None = None,
) -> F:
    """Return a callable equivalent to ``fn`` that records a span per call.

    Wrapping an already wrapped callable returns it unchanged. Exceptions
    raised by ``fn`` are recorded and re-raised untouched. Generator
    functions, sync or async, get one span covering the whole iteration;
    sent values, thrown exceptions and close pass through to the inner
    generator.
    """
    if is_wrapped(fn):
        return fn

    span_name = name or callable_name(fn)
    span_location = callable_location(fn) if location is None else location

    if inspect.isasyncgenfunction(fn):

        @functools.wraps(fn)
        async def agen_wrapper(*args, **kwargs):
            token = tracker.enter(span_name, span_location, args, kwargs)
            agen = fn(*args, **kwargs)
            try:
                item = await agen.__anext__()
                while True:
                    # the consumer's calls between items are not ours
                    tracker.detach(token)
                    try:
                        sent = yield item
                    except GeneratorExit:
                        raise
                    except BaseException as thrown:
                        tracker.attach(token)
                        item = await agen.athrow(thrown)
                    else:
                        tracker.attach(token)
                        item = await agen.asend(sent)
            except StopAsyncIteration:
                tracker.exit(token)
            except GeneratorExit:
                tracker.attach(token)
                try:
                    await agen.aclose()
                finally:
                    tracker.exit(token)
                raise
            except BaseException as exc:
                tracker.exit(token, error=exc)
                raise

        wrapped: Any = agen_wrapper

    elif inspect.isgeneratorfunction(fn):

        @functools.wraps(fn)
        def gen_wrapper(*args, **kwargs):
            token = tracker.enter(span_name, span_location, args, kwargs)
            gen = fn(*args, **kwargs)
            try:
                item = next(gen)
                while True:
                    tracker.detach(token)
                    try:
                        sent = yield item
                    except GeneratorExit:
                        raise
                    except BaseException as thrown:
                        tracker.attach(token)
                        item = gen.throw(thrown)
                    else:
                        tracker.attach(token)
                        item = gen.send(sent)
            except StopIteration as stop:
                tracker.exit(token, stop.value)
                return stop.value
            except GeneratorExit:
                tracker.attach(token)
                try:
                    gen.close()
                finally:
                    tracker.exit(token)
                raise
            except BaseException as exc:
                tracker.exit(token, error=exc)
                raise

        wrapped = gen_wrapper

    elif inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def async_wrapper(*args, **kwargs):
            token = tracker.enter(span_name, span_location, args, kwargs)
            try:
                value = await fn(*args, **kwargs)
            except BaseException as exc:
                tracker.exit(token, error=exc)
                raise
            tracker.exit(token, value)
            return value

        wrapped = async_wrapper

    else:

        @functools.wraps(fn)
        def sync_wrapper(*args, **kwargs):
            token = tracker.enter(span_name, span_location, args, kwargs)
            try:
                result = fn(*args, **kwargs)
            except BaseException as exc:
                tracker.exit(token, error=exc)
                raise
            return _close_sync_result(tracker, token, result)

        wrapped = sync_wrapper

    _WRAPPED.add(wrapped)
    return wrapped
