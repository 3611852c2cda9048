import ipaddress
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from docker.errors import DockerException, NotFound

from tempdock.deployment.config import PortSpec
from tempdock.exceptions import RemovalError

if TYPE_CHECKING:
    from docker import APIClient


@dataclass(frozen=True)
class ContainerHandle:
    """Connection info of a provisioned container."""

    identifier: str
    """Engine-assigned container ID."""

    name: str
    address: ipaddress.IPv4Address | ipaddress.IPv6Address
    ports: dict[PortSpec, int] = field(default_factory=dict)
    """Selected host port for every `PortSpec` of the request."""

    def port(self, internal_port: int, protocol: str = "tcp") -> int:
        """Host port published for `internal_port`.

        Raises:
            KeyError: If the port was not part of the request.
        """
        for spec, host_port in self.ports.items():
            if spec.internal_port == internal_port and spec.protocol == protocol.lower():
                return host_port
        msg = f"{internal_port}/{protocol} is not published by {self.name}"
        raise KeyError(msg)

    def endpoint(self, internal_port: int, protocol: str = "tcp") -> str:
        host = f"[{self.address}]" if self.address.version == 6 else str(self.address)
        return f"{host}:{self.port(internal_port, protocol)}"


class Teardown:
    """Force-removes one provisioned container when called."""

    def __init__(self, client: "APIClient", container_id: str, name: str, logger: logging.Logger):
        self._client = client
        self.container_id = container_id
        self.name = name
        self.logger = logger

    def __call__(self) -> None:
        """Removes the container without stopping it gracefully first.

        Raises:
            RemovalError: If the engine refuses. Removal is not retried.
        """
        self.logger.info(f"Removing container: {self.name}")
        try:
            self._client.remove_container(self.container_id, force=True)
        except NotFound:
            self.logger.debug(f"Container {self.name} already removed")
        except (DockerException, OSError) as e:
            msg = f"Could not remove {self.name}: {e}"
            raise RemovalError(msg) from e

    def __repr__(self) -> str:
        return f"Teardown(container_id={self.container_id!r}, name={self.name!r})"
