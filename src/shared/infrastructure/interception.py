"""
Call Interception
=================

Decorators that wrap service and controller calls with tracing,
performance monitoring and exception tracking.

They are applied explicitly at the call sites that want them:

    class StoryService:
        @observed
        async def complete(self, story_id: int) -> StoryModel:
            ...

Every decorator works for both coroutine functions and plain functions and
always re-raises the original exception.
"""

import functools
import inspect
import time
from typing import Any, Callable, Optional, TypeVar

from src.config import settings
from src.core.exceptions import ApplicationException
from src.shared.infrastructure.logging import (
    get_correlation_id,
    get_logger,
    new_trace_id,
    reset_correlation_id,
    set_correlation_id,
)

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _method_name(func: Callable, args: tuple) -> str:
    # Bound methods are reported as Owner.method
    if args and not inspect.isclass(args[0]) and hasattr(args[0], func.__name__):
        return f"{type(args[0]).__name__}.{func.__name__}"
    return func.__qualname__


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _wrap(func: F, before: Callable, after: Callable, failed: Callable) -> F:
    """Build a sync or async wrapper around the three hooks."""

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            state = before(func, args)
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                failed(state, exc)
                raise
            after(state)
            return result

        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        state = before(func, args)
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            failed(state, exc)
            raise
        after(state)
        return result

    return sync_wrapper  # type: ignore[return-value]


# ========== Tracing ==========

def log_execution(func: F) -> F:
    """
    Log entry and exit of a call at DEBUG, failures at ERROR.

    Assigns a short trace id when the call is not already part of a traced
    request or job.
    """

    def before(f, args):
        token = None
        trace_id = get_correlation_id()
        if trace_id is None:
            trace_id = new_trace_id()
            token = set_correlation_id(trace_id)
        method = _method_name(f, args)
        logger.debug(f"[{trace_id}] -> {method}")
        return {"trace_id": trace_id, "token": token, "method": method,
                "start": time.perf_counter()}

    def release(state):
        if state["token"] is not None:
            reset_correlation_id(state["token"])

    def after(state):
        logger.debug(
            f"[{state['trace_id']}] <- {state['method']} ({_elapsed_ms(state['start'])}ms)"
        )
        release(state)

    def failed(state, exc):
        logger.error(
            f"[{state['trace_id']}] !! {state['method']} failed after "
            f"{_elapsed_ms(state['start'])}ms: {exc}"
        )
        release(state)

    return _wrap(func, before, after, failed)


# ========== Performance ==========

def monitor_performance(
    func: Optional[F] = None,
    *,
    threshold_ms: Optional[int] = None
):
    """
    Warn about calls slower than ``threshold_ms``.

    Defaults to ``settings.slow_method_threshold_ms``. Usable bare
    (``@monitor_performance``) or with arguments
    (``@monitor_performance(threshold_ms=200)``).
    """

    def decorate(f: F) -> F:
        def before(fn, args):
            return {"method": _method_name(fn, args), "start": time.perf_counter()}

        def after(state):
            limit = threshold_ms if threshold_ms is not None else settings.slow_method_threshold_ms
            duration = _elapsed_ms(state["start"])
            if duration > limit:
                logger.warning(
                    f"Slow method: {state['method']} took {duration}ms",
                    extra={"method": state["method"], "duration_ms": duration},
                )

        def failed(state, exc):
            logger.error(
                f"Failed after {_elapsed_ms(state['start'])}ms: {state['method']}"
            )

        return _wrap(f, before, after, failed)

    if func is not None:
        return decorate(func)
    return decorate


# ========== Exceptions ==========

def track_exceptions(func: F) -> F:
    """Log every exception escaping the call with its error code."""

    def before(f, args):
        return {"method": _method_name(f, args)}

    def after(state):
        pass

    def failed(state, exc):
        trace_id = get_correlation_id()
        if isinstance(exc, ApplicationException):
            logger.error(
                f"[{trace_id}] {state['method']}: {exc.error_code} - {exc.message}",
                extra={"error_code": exc.error_code},
            )
        else:
            logger.error(f"[{trace_id}] {state['method']}: {exc}")

    return _wrap(func, before, after, failed)


def observed(func: F) -> F:
    """Tracing, performance monitoring and exception tracking combined."""
    # Tracing outermost so the inner hooks log under the same trace id
    return log_execution(track_exceptions(monitor_performance(func)))


__all__ = [
    "log_execution",
    "monitor_performance",
    "track_exceptions",
    "observed",
]
