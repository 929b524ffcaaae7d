import threading

import pytest

from softbake.core.exceptions import CancelledError, SoftLayerError, WaitTimeoutError
from softbake.steps.wait import wait_until

pytestmark = [pytest.mark.xdist_group("unit")]


def _counter(ready_on: int, value="done"):
    calls = {"n": 0}

    def check():
        calls["n"] += 1
        return value if calls["n"] >= ready_on else None

    return check, calls


class TestWaitUntil:
    def test_returns_first_value(self):
        check, calls = _counter(3)
        result = wait_until(check, timeout=5, cancelled=threading.Event(), interval=0)
        assert result == "done"
        assert calls["n"] == 3

    def test_timeout(self):
        with pytest.raises(WaitTimeoutError, match="Timeout waiting for thing"):
            wait_until(lambda: None, timeout=0, cancelled=threading.Event(), interval=0, description="thing")

    def test_cancelled(self):
        cancelled = threading.Event()
        cancelled.set()
        with pytest.raises(CancelledError, match="waiting for thing"):
            wait_until(lambda: None, timeout=5, cancelled=cancelled, interval=0, description="thing")

    def test_cancel_wakes_sleeping_poll(self):
        cancelled = threading.Event()
        timer = threading.Timer(0.1, cancelled.set)
        timer.start()
        try:
            with pytest.raises(CancelledError):
                wait_until(lambda: None, timeout=30, cancelled=cancelled, interval=10)
        finally:
            timer.cancel()

    def test_transient_api_errors_are_retried(self):
        calls = {"n": 0}

        def check():
            calls["n"] += 1
            if calls["n"] == 1:
                raise SoftLayerError("unavailable", status=503)
            if calls["n"] == 2:
                raise SoftLayerError("Request failed: reset")
            return 7

        assert wait_until(check, timeout=5, cancelled=threading.Event(), interval=0) == 7

    def test_client_errors_propagate(self):
        def check():
            raise SoftLayerError("bad request", status=400)

        with pytest.raises(SoftLayerError, match="bad request"):
            wait_until(check, timeout=5, cancelled=threading.Event(), interval=0)

    def test_transient_error_after_cancel_is_a_cancel(self):
        cancelled = threading.Event()

        def check():
            cancelled.set()
            raise SoftLayerError("unavailable", status=503)

        with pytest.raises(CancelledError):
            wait_until(check, timeout=5, cancelled=cancelled, interval=0)

    def test_client_error_after_cancel_propagates(self):
        cancelled = threading.Event()

        def check():
            cancelled.set()
            raise SoftLayerError("forbidden", status=403)

        with pytest.raises(SoftLayerError, match="forbidden"):
            wait_until(check, timeout=5, cancelled=cancelled, interval=0)
