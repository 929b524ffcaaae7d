"""Cancellable polling shared by the blocking steps."""

from __future__ import annotations

import threading
from collections.abc import Callable

from tenacity import (
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_delay,
    stop_when_event_set,
    wait_fixed,
)

from softbake.core.exceptions import CancelledError, SoftLayerError, WaitTimeoutError


class _Pending(Exception):
    """Resource not in the wanted state yet - poll again."""


def _is_transient(e: BaseException) -> bool:
    return isinstance(e, SoftLayerError) and (e.status is None or e.status >= 500)


def wait_until[T](
    check: Callable[[], T | None],
    *,
    timeout: float,
    cancelled: threading.Event,
    interval: float = 5.0,
    description: str = "resource",
) -> T:
    """Poll *check* until it returns a value other than None.

    Transient API errors (5xx, connection failures) are retried like a
    pending state. Sleeping between polls wakes up as soon as *cancelled*
    is set.

    Raises:
        CancelledError: If *cancelled* was set before the check succeeded.
        WaitTimeoutError: If *timeout* seconds elapsed first.
        SoftLayerError: A non-transient API error, or the last transient
            one when polling timed out on it.
    """

    @retry(
        stop=stop_after_delay(timeout) | stop_when_event_set(cancelled),
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(_Pending) | retry_if_exception(_is_transient),
        sleep=cancelled.wait,
        reraise=True,
    )
    def _poll() -> T:
        result = check()
        if result is None:
            raise _Pending()
        return result

    try:
        return _poll()
    except _Pending:
        if cancelled.is_set():
            raise CancelledError(f"waiting for {description}") from None
        raise WaitTimeoutError(description, timeout) from None
    except SoftLayerError as e:
        if cancelled.is_set() and _is_transient(e):
            raise CancelledError(f"waiting for {description}") from e
        raise
