import socket
import threading
import time


class Deadline:
    """A time budget measured on the monotonic clock from the moment of creation."""

    def __init__(self, budget: float):
        self.budget = budget
        self._start = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def remaining(self) -> float:
        return max(0.0, self.budget - self.elapsed)

    def expired(self) -> bool:
        return self.elapsed >= self.budget


class CancelToken:
    """Cooperative cancellation flag that can be fired from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def sleep(self, seconds: float) -> bool:
        """Sleeps up to `seconds`. Returns True if the token was cancelled meanwhile."""
        return self._event.wait(max(0.0, seconds))


def is_reachable(host: str, port: int, timeout: float) -> bool:
    """Opens a TCP connection to `host:port` and closes it right away."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False
