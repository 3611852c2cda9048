import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from docker.errors import DockerException

from tempdock.deployment.config import ProvisionOptions
from tempdock.deployment.ports import PortAssignment
from tempdock.exceptions import LaunchError

if TYPE_CHECKING:
    from docker import APIClient


@dataclass(frozen=True)
class LaunchedContainer:
    id: str
    name: str


def container_name(name: str) -> str:
    """Returns a unique container name so that runs sharing a logical name do not collide."""
    return f"{name}-{uuid.uuid4()}"


def exposed_ports(assignment: PortAssignment) -> list[tuple[int, str]]:
    return [(spec.internal_port, spec.protocol) for spec in assignment]


def port_bindings(address: str, assignment: PortAssignment) -> dict[str, tuple[str, int]]:
    return {spec.docker_port: (address, host_port) for spec, host_port in assignment.items()}


def environment(env: dict[str, str]) -> list[str]:
    return [f"{key}={value}" for key, value in env.items()]


def launch(
    client: "APIClient",
    options: ProvisionOptions,
    assignment: PortAssignment,
    *,
    address: str,
    logger: logging.Logger,
) -> LaunchedContainer:
    """Creates and starts the container.

    Raises:
        LaunchError: If create or start fails. When start fails, `container_id`
            is set on the error since the container already exists.
    """
    name = container_name(options.name)
    bindings = port_bindings(address, assignment)
    logger.debug(f"Port bindings: {bindings}")

    logger.info(f"Creating container: {name}")
    try:
        created = client.create_container(
            image=options.image,
            name=name,
            ports=exposed_ports(assignment),
            environment=environment(options.env),
            host_config=client.create_host_config(port_bindings=bindings),
        )
    except (DockerException, OSError) as e:
        msg = f"Could not create container ({name}): {e}"
        raise LaunchError(msg) from e
    for warning in created.get("Warnings") or []:
        logger.warning(warning)

    container_id = created["Id"]
    logger.info(f"Starting container: {name}")
    try:
        client.start(container_id)
    except (DockerException, OSError) as e:
        msg = f"Could not start container ({name}): {e}"
        raise LaunchError(msg, container_id=container_id, container_name=name) from e
    return LaunchedContainer(id=container_id, name=name)
