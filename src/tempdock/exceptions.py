from typing import Any


class ProvisionError(RuntimeError):
    """Base class for every error raised while provisioning or tearing down a container."""


class ValidationError(ProvisionError, ValueError):
    """The provisioning options cannot be used (e.g. no external port)."""


class ParseError(ProvisionError, ValueError):
    def __init__(self, text: str, reason: str = "", *, spec: Any = None):
        self.text = text
        self.spec = spec
        msg = f"Could not parse interval {text!r}"
        if spec is not None:
            msg += f" of {spec}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ExhaustedRangeError(ProvisionError):
    def __init__(self, msg: str, *, spec: Any = None):
        self.spec = spec
        super().__init__(msg)


class PullError(ProvisionError):
    pass


class EngineConnectionError(ProvisionError):
    pass


class LaunchError(ProvisionError):
    def __init__(self, msg: str, *, container_id: str | None = None, container_name: str | None = None):
        #: Set when the container was created before the failure happened
        self.container_id = container_id
        self.container_name = container_name
        super().__init__(msg)


class ReadinessError(ProvisionError):
    pass


class ContainerNotStartedError(ReadinessError):
    def __init__(self, container_id: str, waiting_time: float):
        self.container_id = container_id
        self.waiting_time = waiting_time
        super().__init__(f"Container not started: {container_id} (waiting time: {waiting_time}s)")


class ServiceUnreachableError(ReadinessError):
    def __init__(self, endpoint: str, waiting_time: float):
        self.endpoint = endpoint
        self.waiting_time = waiting_time
        super().__init__(f"Could not reach {endpoint} (waiting time: {waiting_time}s)")


class ProvisionCancelledError(ReadinessError):
    pass


class RemovalError(ProvisionError):
    pass
