"""Blocks until a freshly started container actually serves.

A running process is not enough: most services open their listening socket
some time after they start. The gate therefore runs two phases, each with its
own time budget::

    CREATED --(State.Running)--> PROCESS_RUNNING --(TCP connect)--> NETWORK_REACHABLE --> READY
       |                               |
       +-----------> TIMED_OUT <-------+

Both phases poll with the same interval, so the worst case wait is the sum of
both budgets.
"""

import enum
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tempdock.deployment.config import PortSpec
from tempdock.deployment.ports import PortAssignment
from tempdock.exceptions import ContainerNotStartedError, ProvisionCancelledError, ServiceUnreachableError
from tempdock.utils.log import null_logger
from tempdock.utils.wait import CancelToken, Deadline, is_reachable

if TYPE_CHECKING:
    from docker import APIClient


@enum.unique
class ReadinessState(enum.Enum):
    CREATED = "created"
    PROCESS_RUNNING = "process_running"
    NETWORK_REACHABLE = "network_reachable"
    READY = "ready"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class ReadinessStrategy(ABC):
    """Decides which published ports have to accept connections."""

    @abstractmethod
    def endpoints(self, address: str, specs: Sequence[PortSpec], assignment: PortAssignment) -> list[Endpoint]: ...


class FirstPortReadiness(ReadinessStrategy):
    """Only the first declared port is checked, whatever its protocol."""

    def endpoints(self, address: str, specs: Sequence[PortSpec], assignment: PortAssignment) -> list[Endpoint]:
        return [Endpoint(address, assignment[specs[0]])]


class AllPortsReadiness(ReadinessStrategy):
    """Every declared TCP port is checked. UDP ports cannot be probed with a connection and are skipped."""

    def endpoints(self, address: str, specs: Sequence[PortSpec], assignment: PortAssignment) -> list[Endpoint]:
        return [Endpoint(address, assignment[spec]) for spec in specs if spec.protocol == "tcp"]


_STRATEGIES: dict[str, type[ReadinessStrategy]] = {
    "first_port": FirstPortReadiness,
    "all_ports": AllPortsReadiness,
}


def readiness_strategy(name: str) -> ReadinessStrategy:
    try:
        return _STRATEGIES[name]()
    except KeyError:
        msg = f"Unknown readiness strategy {name!r}, expected one of {sorted(_STRATEGIES)}"
        raise ValueError(msg) from None


class ReadinessGate:
    def __init__(
        self,
        client: "APIClient",
        container_id: str,
        endpoints: Sequence[Endpoint],
        *,
        poll_interval: float = 0.01,
        startup_timeout: float = 5.0,
        reachable_timeout: float = 5.0,
        connect_timeout: float = 1.0,
        cancel: CancelToken | None = None,
        logger: logging.Logger | None = None,
    ):
        self._client = client
        self.container_id = container_id
        self.endpoints = list(endpoints)
        self._poll_interval = poll_interval
        self._startup_timeout = startup_timeout
        self._reachable_timeout = reachable_timeout
        self._connect_timeout = connect_timeout
        self._cancel = cancel or CancelToken()
        self.logger = logger or null_logger()
        self.state = ReadinessState.CREATED

    def wait(self) -> None:
        """Runs both phases.

        Raises:
            ContainerNotStartedError: The process was not running within the startup budget.
            ServiceUnreachableError: An endpoint did not accept connections within the reachability budget.
            ProvisionCancelledError: The cancel token fired.
        """
        self._wait_started()
        self._wait_reachable()
        self.state = ReadinessState.READY

    def _sleep(self, deadline: Deadline) -> None:
        if self._cancel.sleep(min(self._poll_interval, deadline.remaining())):
            self._cancelled()

    def _cancelled(self) -> None:
        self.state = ReadinessState.CANCELLED
        msg = f"Waiting for container {self.container_id} was cancelled"
        raise ProvisionCancelledError(msg)

    def _is_running(self) -> bool:
        info = self._client.inspect_container(self.container_id)
        return bool((info.get("State") or {}).get("Running"))

    def _wait_started(self) -> None:
        deadline = Deadline(self._startup_timeout)
        last_error: Exception | None = None
        while not deadline.expired():
            if self._cancel.cancelled:
                self._cancelled()
            try:
                if self._is_running():
                    self.logger.debug(f"Container {self.container_id} running after {deadline.elapsed:.2f}s")
                    self.state = ReadinessState.PROCESS_RUNNING
                    return
            except Exception as e:
                # engine hiccups are retried until the budget is spent
                self.logger.debug(f"Inspecting {self.container_id} failed: {e}")
                last_error = e
            self._sleep(deadline)
        self.state = ReadinessState.TIMED_OUT
        raise ContainerNotStartedError(self.container_id, self._startup_timeout) from last_error

    def _wait_reachable(self) -> None:
        deadline = Deadline(self._reachable_timeout)
        pending = list(self.endpoints)
        while pending and not deadline.expired():
            if self._cancel.cancelled:
                self._cancelled()
            still_pending = []
            for i, ep in enumerate(pending):
                if deadline.expired():
                    still_pending.extend(pending[i:])
                    break
                timeout = max(min(self._connect_timeout, deadline.remaining()), 0.001)
                if not is_reachable(ep.host, ep.port, timeout):
                    still_pending.append(ep)
            pending = still_pending
            if not pending:
                break
            self._sleep(deadline)
        if pending:
            self.state = ReadinessState.TIMED_OUT
            raise ServiceUnreachableError(str(pending[0]), self._reachable_timeout)
        self.logger.debug(f"Reached {', '.join(map(str, self.endpoints))} after {deadline.elapsed:.2f}s")
        self.state = ReadinessState.NETWORK_REACHABLE
