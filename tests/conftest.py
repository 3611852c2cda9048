import socket
import threading
import time
from collections.abc import Iterator
from typing import Any

import pytest
from docker.errors import APIError, NotFound

from tempdock.utils.free_port import find_free_port


class FakeDockerClient:
    """In-memory stand-in for the subset of `docker.APIClient` used by tempdock."""

    def __init__(
        self,
        *,
        tags: list[str] | None = None,
        pull_events: list[Any] | None = None,
        warnings: list[str] | None = None,
        running_after: float | None = 0.0,
        inspect_failures: int = 0,
        fail_create: bool = False,
        fail_start: bool = False,
        fail_remove: bool = False,
    ):
        self.tags = tags if tags is not None else []
        self.pull_events = pull_events if pull_events is not None else [{"status": "Downloading"}, {"status": "Done"}]
        self.warnings = warnings or []
        self.running_after = running_after
        self.inspect_failures = inspect_failures
        self.fail_create = fail_create
        self.fail_start = fail_start
        self.fail_remove = fail_remove
        self.calls: list[tuple[str, tuple, dict]] = []
        self.containers: dict[str, dict[str, Any]] = {}
        self._started_at: dict[str, float] = {}

    def _record(self, _call: str, /, *args, **kwargs) -> None:
        self.calls.append((_call, args, kwargs))

    def called(self, name: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    def images(self):
        self._record("images")
        return [{"RepoTags": [tag]} for tag in self.tags]

    def pull(self, repository, stream=False, decode=False):
        self._record("pull", repository, stream=stream, decode=decode)

        def events():
            for event in self.pull_events:
                if isinstance(event, Exception):
                    raise event
                yield event
            self.tags.append(repository)

        return events()

    def create_host_config(self, **kwargs):
        return {"PortBindings": kwargs.get("port_bindings")}

    def create_container(self, **kwargs):
        self._record("create_container", **kwargs)
        if self.fail_create:
            msg = "create refused"
            raise APIError(msg)
        container_id = f"c{len(self.containers) + 1:064d}"
        self.containers[container_id] = {"config": kwargs, "running": False}
        return {"Id": container_id, "Warnings": self.warnings}

    def start(self, container):
        self._record("start", container)
        if self.fail_start:
            msg = "start refused"
            raise APIError(msg)
        self._started_at[container] = time.monotonic()

    def inspect_container(self, container):
        self._record("inspect_container", container)
        if self.inspect_failures > 0:
            self.inspect_failures -= 1
            msg = "engine hiccup"
            raise APIError(msg)
        if container not in self.containers:
            msg = f"No such container: {container}"
            raise NotFound(msg)
        started = self._started_at.get(container)
        running = (
            started is not None
            and self.running_after is not None
            and time.monotonic() - started >= self.running_after
        )
        return {"Id": container, "State": {"Running": running}}

    def remove_container(self, container, force=False):
        self._record("remove_container", container, force=force)
        if self.fail_remove:
            msg = "remove refused"
            raise APIError(msg)
        if container not in self.containers:
            msg = f"No such container: {container}"
            raise NotFound(msg)
        del self.containers[container]


class DelayedListener:
    """Accepts TCP connections on a port once `delay` seconds have passed."""

    def __init__(self, port: int, delay: float = 0.0, host: str = "127.0.0.1"):
        self.host = host
        self.port = port
        self.delay = delay
        self.opened_at: float | None = None
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> "DelayedListener":
        self._thread.start()
        return self

    def _serve(self) -> None:
        if self._stop.wait(self.delay):
            return
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen()
            sock.settimeout(0.05)
            self.opened_at = time.monotonic()
            while not self._stop.is_set():
                try:
                    conn, _ = sock.accept()
                except TimeoutError:
                    continue
                conn.close()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2)


@pytest.fixture
def make_client() -> type[FakeDockerClient]:
    return FakeDockerClient


@pytest.fixture
def fake_client() -> FakeDockerClient:
    return FakeDockerClient(tags=["busybox:latest"])


@pytest.fixture
def free_port() -> int:
    return find_free_port()


@pytest.fixture
def listener_factory() -> Iterator:
    listeners: list[DelayedListener] = []

    def _factory(port: int, delay: float = 0.0) -> DelayedListener:
        listener = DelayedListener(port, delay).start()
        listeners.append(listener)
        return listener

    yield _factory
    for listener in listeners:
        listener.stop()


@pytest.fixture
def bound_port() -> Iterator[int]:
    """A TCP port that is bound (not listening) for the duration of the test."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        yield sock.getsockname()[1]
