"""pytest fixtures provisioning throwaway containers.

Usage::

    def test_redis(tempdock_provision):
        handle = tempdock_provision(
            ProvisionOptions(name="redis", image="redis:7", ports=[PortSpec(internal_port=6379, external_range="40000-40100")])
        )
        ...

Every container created through the fixture is removed when the test ends.
"""

import warnings
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from tempdock.deployment.config import ProvisionOptions
from tempdock.deployment.docker import DockerProvisioner
from tempdock.deployment.handle import ContainerHandle, Teardown
from tempdock.exceptions import RemovalError
from tempdock.utils.log import get_logger


@pytest.fixture
def tempdock_provision() -> Iterator[Callable[..., ContainerHandle]]:
    logger = get_logger("tempdock", emoji="🐳")
    teardowns: list[Teardown] = []

    def _provision(options: ProvisionOptions, **kwargs: Any) -> ContainerHandle:
        handle, teardown = DockerProvisioner(logger=logger, **kwargs).provision(options)
        teardowns.append(teardown)
        return handle

    yield _provision

    for teardown in reversed(teardowns):
        try:
            teardown()
        except RemovalError as e:
            warnings.warn(str(e), stacklevel=1)
