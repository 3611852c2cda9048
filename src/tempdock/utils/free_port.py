import socket
from collections.abc import Collection

from tempdock.exceptions import ExhaustedRangeError
from tempdock.utils.interval import IntegerInterval

_SOCKET_TYPES = {"tcp": socket.SOCK_STREAM, "udp": socket.SOCK_DGRAM}


def _family(address: str) -> socket.AddressFamily:
    return socket.AF_INET6 if ":" in address else socket.AF_INET


def find_free_port(address: str = "127.0.0.1") -> int:
    """Lets the OS pick an unused TCP port on `address`."""
    with socket.socket(_family(address), socket.SOCK_STREAM) as sock:
        sock.bind((address, 0))
        return sock.getsockname()[1]


def is_port_free(address: str, port: int, protocol: str = "tcp") -> bool:
    """Returns True if `port` can currently be bound on `address`.

    The probe socket is closed before returning, so a positive answer does not
    reserve the port.
    """
    with socket.socket(_family(address), _SOCKET_TYPES[protocol]) as sock:
        try:
            sock.bind((address, port))
        except OSError:
            return False
    return True


def select_free_port(
    address: str,
    interval: IntegerInterval,
    excluded: Collection[int] = (),
    protocol: str = "tcp",
) -> int:
    """First port of `interval` (ascending) that is not excluded and can be bound.

    Raises:
        ExhaustedRangeError: If no port of the interval qualifies.
    """
    for port in interval:
        if port in excluded:
            continue
        if is_port_free(address, port, protocol):
            return port
    msg = f"No free {protocol} port in {interval} on {address} (excluded: {sorted(excluded)})"
    raise ExhaustedRangeError(msg)
