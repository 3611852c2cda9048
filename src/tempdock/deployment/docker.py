import contextlib
import ipaddress
import logging
import os
import time
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import docker
from docker.errors import DockerException
from typing_extensions import Self

from tempdock.deployment.config import ProvisionerConfig, ProvisionOptions
from tempdock.deployment.handle import ContainerHandle, Teardown
from tempdock.deployment.images import ensure_image
from tempdock.deployment.launcher import LaunchedContainer, launch
from tempdock.deployment.ports import allocate_ports
from tempdock.deployment.readiness import ReadinessGate, readiness_strategy
from tempdock.exceptions import (
    EngineConnectionError,
    LaunchError,
    PullError,
    RemovalError,
    ValidationError,
)
from tempdock.utils.log import null_logger
from tempdock.utils.wait import CancelToken

__all__ = ["DockerProvisioner", "ProvisionerConfig", "provision", "provisioned"]

if TYPE_CHECKING:
    from docker import APIClient

_DEFAULT_SOCKET = "unix:///var/run/docker.sock"


class DockerProvisioner:
    def __init__(
        self,
        *,
        logger: logging.Logger | None = None,
        client: "APIClient | None" = None,
        **kwargs: Any,
    ):
        """Provisions short-lived containers that are reachable from the host.

        Each call to `provision` creates one container, waits until its
        service accepts connections and returns the connection info together
        with the function that removes it again.
        """
        self._config = ProvisionerConfig(**kwargs)
        self._client = client
        self.logger = logger or null_logger()

    @classmethod
    def from_config(cls, config: ProvisionerConfig, **kwargs: Any) -> Self:
        return cls(**config.model_dump(), **kwargs)

    @property
    def config(self) -> ProvisionerConfig:
        return self._config

    def _base_url(self) -> str:
        base_url = self._config.docker_endpoint or os.environ.get("DOCKER_HOST")
        if base_url is None:
            if not Path("/var/run/docker.sock").exists():
                self.logger.debug(f"{_DEFAULT_SOCKET} does not exist, connecting anyway")
            base_url = _DEFAULT_SOCKET
        return base_url

    def _ensure_client(self) -> "APIClient":
        if self._client is not None:
            return self._client

        base_url = self._base_url()
        params: dict[str, Any] = {"base_url": base_url}
        if self._config.docker_tls:
            cert_path = self._config.docker_cert_path or os.environ.get("DOCKER_CERT_PATH")
            params["tls"] = docker.tls.TLSConfig(
                client_cert=(str(Path(cert_path) / "cert.pem"), str(Path(cert_path) / "key.pem"))
                if cert_path
                else None,
                ca_cert=str(Path(cert_path) / "ca.pem") if cert_path else None,
                verify=True,
            )

        self.logger.debug(f"New docker client for {base_url}")
        try:
            client = cast("APIClient", docker.APIClient(**params))
            client.ping()
        except (DockerException, OSError) as e:
            msg = f"Could not connect to the docker daemon at {base_url!r}: {e}"
            raise EngineConnectionError(msg) from e
        self._client = client
        return client

    def _remove_after_failure(self, client: "APIClient", container: LaunchedContainer) -> None:
        if not self._config.remove_on_failure:
            self.logger.warning(f"Leaving container {container.name} behind")
            return
        try:
            Teardown(client, container.id, container.name, self.logger)()
        except RemovalError as e:
            self.logger.warning(f"Cleanup after failure did not succeed: {e}")

    def provision(
        self, options: ProvisionOptions, *, cancel: CancelToken | None = None
    ) -> tuple[ContainerHandle, Teardown]:
        """Creates the container and blocks until it is reachable.

        Raises:
            ValidationError: If no port is requested or a port is declared twice. Raised before the engine is contacted.
            ProvisionError: Subclass identifying the failing stage.
        """
        if not options.ports:
            msg = f"{options.name}: at least one port should be open for external communication"
            raise ValidationError(msg)
        docker_ports = [spec.docker_port for spec in options.ports]
        duplicates = sorted({p for p in docker_ports if docker_ports.count(p) > 1})
        if duplicates:
            msg = f"{options.name}: ports declared more than once: {', '.join(duplicates)}"
            raise ValidationError(msg)

        client = self._ensure_client()
        try:
            ensure_image(client, options.image, pull=self._config.pull, logger=self.logger)
        except PullError as e:
            msg = f"Downloading image {options.image}: {e}"
            raise PullError(msg) from e

        address = self._config.address
        assignment = allocate_ports(address, options.ports)

        try:
            container = launch(client, options, assignment, address=address, logger=self.logger)
        except LaunchError as e:
            if e.container_id is not None:
                self._remove_after_failure(client, LaunchedContainer(e.container_id, e.container_name or options.name))
            raise

        endpoints = readiness_strategy(self._config.readiness).endpoints(address, options.ports, assignment)
        gate = ReadinessGate(
            client,
            container.id,
            endpoints,
            poll_interval=self._config.poll_interval,
            startup_timeout=self._config.startup_timeout,
            reachable_timeout=self._config.reachable_timeout,
            connect_timeout=self._config.connect_timeout,
            cancel=cancel,
            logger=self.logger,
        )
        self.logger.info(f"Waiting for container: {container.name}")
        t0 = time.monotonic()
        try:
            gate.wait()
        except BaseException:
            self.logger.error(f"Container {container.name} not ready ({gate.state.value})")
            self._remove_after_failure(client, container)
            raise
        self.logger.info(f"Container started in {time.monotonic() - t0:.2f}s: {container.name}")

        handle = ContainerHandle(
            identifier=container.id,
            name=container.name,
            address=ipaddress.ip_address(address),
            ports=dict(assignment),
        )
        return handle, Teardown(client, container.id, container.name, self.logger)


def provision(
    options: ProvisionOptions,
    *,
    logger: logging.Logger | None = None,
    client: "APIClient | None" = None,
    cancel: CancelToken | None = None,
    **kwargs: Any,
) -> tuple[ContainerHandle, Teardown]:
    """Provisions one container. See `DockerProvisioner.provision`."""
    return DockerProvisioner(logger=logger, client=client, **kwargs).provision(options, cancel=cancel)


@contextlib.contextmanager
def provisioned(
    options: ProvisionOptions,
    *,
    logger: logging.Logger | None = None,
    client: "APIClient | None" = None,
    cancel: CancelToken | None = None,
    **kwargs: Any,
) -> Iterator[ContainerHandle]:
    """Context manager variant of `provision`. The container is removed on exit.

    A failing removal is logged and otherwise ignored.
    """
    provisioner = DockerProvisioner(logger=logger, client=client, **kwargs)
    handle, teardown = provisioner.provision(options, cancel=cancel)
    try:
        yield handle
    finally:
        try:
            teardown()
        except RemovalError as e:
            provisioner.logger.warning(str(e))
