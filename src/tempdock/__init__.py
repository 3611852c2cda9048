from importlib.metadata import PackageNotFoundError, version

from tempdock.deployment.config import PortSpec, ProvisionerConfig, ProvisionOptions
from tempdock.deployment.docker import DockerProvisioner, provision, provisioned
from tempdock.deployment.handle import ContainerHandle, Teardown
from tempdock.utils.wait import CancelToken

PACKAGE_NAME = "tempdock"

try:
    __version__ = version(PACKAGE_NAME)
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "CancelToken",
    "ContainerHandle",
    "DockerProvisioner",
    "PortSpec",
    "ProvisionOptions",
    "ProvisionerConfig",
    "Teardown",
    "provision",
    "provisioned",
]
