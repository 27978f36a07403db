import threading
import time
from concurrent.futures import Future

from invocationerrors import InvocationCancelled


def in_background(fn, *args, name=None, **kwargs):
    """Run fn on a daemon thread; the returned Future carries its result or exception."""
    future = Future()
    future.set_running_or_notify_cancel()

    def _run():
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=_run, name=name, daemon=True).start()
    return future


class InvocationContext:
    """Cancellation flag plus an optional deadline shared by one invocation."""

    def __init__(self, timeout=None):
        self._cancelled = threading.Event()
        self.deadline = None
        if timeout:
            self.deadline = time.monotonic() + timeout

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    @property
    def expired(self):
        return self.deadline is not None and time.monotonic() >= self.deadline

    def done(self):
        return self.cancelled or self.expired

    def remaining(self):
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self):
        if self.cancelled:
            raise InvocationCancelled("invocation cancelled")
        if self.expired:
            raise InvocationCancelled("invocation deadline exceeded")

    def wait_for(self, future, poll_interval=0.1):
        """
        Block until future completes or the context is done, whichever comes
        first. The future is left running when the context wins.
        """
        finished = threading.Event()
        future.add_done_callback(lambda _: finished.set())
        while not finished.wait(poll_interval):
            self.check()
        return future
