from collections.abc import Sequence

from tempdock.deployment.config import PortSpec
from tempdock.exceptions import ExhaustedRangeError, ParseError
from tempdock.utils.free_port import select_free_port
from tempdock.utils.interval import parse_interval

PortAssignment = dict[PortSpec, int]
"""Host port chosen for each `PortSpec` of a request."""


def allocate_ports(address: str, specs: Sequence[PortSpec]) -> PortAssignment:
    """Picks one free host port per spec, in order, never handing out the same port twice.

    Availability is checked with a bind probe that is released immediately.
    Nothing holds the port until the container engine binds it, so two
    concurrent allocations on the same host may pick the same port.

    Raises:
        ParseError: If the external range of a spec is malformed.
        ExhaustedRangeError: If a spec has no free port left in its range.
    """
    assignment: PortAssignment = {}
    used: set[int] = set()
    for spec in specs:
        try:
            interval = parse_interval(spec.external_range)
        except ParseError as e:
            raise ParseError(spec.external_range, "malformed external range", spec=spec) from e
        if interval.min < 1 or interval.max > 65535:
            raise ParseError(spec.external_range, "outside of the valid port range", spec=spec)
        try:
            port = select_free_port(address, interval, used, spec.protocol)
        except ExhaustedRangeError as e:
            msg = f"Selecting port for {spec}: {e}"
            raise ExhaustedRangeError(msg, spec=spec) from e
        used.add(port)
        assignment[spec] = port
    return assignment
