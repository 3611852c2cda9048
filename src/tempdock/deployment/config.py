import ipaddress
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PortSpec(BaseModel):
    """An internal port of the container together with the range of host ports it may be published on."""

    internal_port: int = Field(ge=1, le=65535)
    """Port inside the container."""

    external_range: str
    """Interval of acceptable host ports, e.g. ``"30000-30100"``."""

    protocol: Literal["tcp", "udp"] = "tcp"

    model_config = ConfigDict(frozen=True)

    @field_validator("protocol", mode="before")
    @classmethod
    def _lowercase_protocol(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def docker_port(self) -> str:
        return f"{self.internal_port}/{self.protocol}"

    def __str__(self) -> str:
        return f"{self.docker_port} -> {self.external_range}"


class ProvisionOptions(BaseModel):
    """What to run. Owned by the caller, never modified by the provisioner."""

    name: str
    """Logical name. The container gets ``<name>-<uuid>``."""

    image: str
    ports: list[PortSpec] = []
    """The first entry is the readiness endpoint unless `ProvisionerConfig.readiness` says otherwise."""

    env: dict[str, str] = {}

    model_config = ConfigDict(frozen=True)


class ProvisionerConfig(BaseModel):
    address: str = "127.0.0.1"
    """Host address the ports are published on and probed at."""

    startup_timeout: float = Field(default=5.0, gt=0)
    """Seconds to wait for the container process to be running."""

    reachable_timeout: float = Field(default=5.0, gt=0)
    """Seconds to wait for the readiness endpoint(s) to accept connections, counted after the process runs."""

    poll_interval: float = Field(default=0.01, gt=0)
    connect_timeout: float = Field(default=1.0, gt=0)
    """Upper bound of a single connection attempt during the reachability phase."""

    readiness: Literal["first_port", "all_ports"] = "first_port"
    pull: Literal["missing", "always", "never"] = "missing"

    remove_on_failure: bool = True
    """Force-remove a container that was created when a later stage fails.
    If False, such a container is left behind.
    """

    docker_endpoint: str | None = None
    """Docker daemon URL. Defaults to ``DOCKER_HOST``, then the local unix socket."""

    docker_tls: bool = False
    docker_cert_path: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("address")
    @classmethod
    def _check_address(cls, v: str) -> str:
        ipaddress.ip_address(v)
        return v
