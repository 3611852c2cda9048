import pytest

from tempdock.deployment.config import PortSpec
from tempdock.deployment.ports import allocate_ports
from tempdock.exceptions import ExhaustedRangeError, ParseError
from tempdock.utils.free_port import find_free_port, is_port_free
from tempdock.utils.interval import parse_interval


def _free_block(size: int) -> int:
    """Start of `size` consecutive ports that are free right now."""
    for _ in range(50):
        start = find_free_port()
        if start + size > 65535:
            continue
        if all(is_port_free("127.0.0.1", p) and is_port_free("127.0.0.1", p, "udp") for p in range(start, start + size)):
            return start
    pytest.skip("no block of consecutive free ports found")


def test_allocate_disjoint_ranges():
    start = _free_block(6)
    specs = [
        PortSpec(internal_port=80, external_range=f"{start}-{start + 2}"),
        PortSpec(internal_port=443, external_range=f"{start + 3}-{start + 5}"),
    ]
    assignment = allocate_ports("127.0.0.1", specs)
    assert list(assignment) == specs
    for spec, port in assignment.items():
        assert port in parse_interval(spec.external_range)
    assert len(set(assignment.values())) == len(specs)


def test_allocate_shared_range_gives_distinct_ports():
    start = _free_block(3)
    specs = [
        PortSpec(internal_port=80, external_range=f"{start}-{start + 2}"),
        PortSpec(internal_port=81, external_range=f"{start}-{start + 2}"),
        PortSpec(internal_port=53, external_range=f"{start}-{start + 2}", protocol="udp"),
    ]
    assignment = allocate_ports("127.0.0.1", specs)
    assert sorted(assignment.values()) == [start, start + 1, start + 2]


def test_allocate_first_fit(free_port: int):
    spec = PortSpec(internal_port=80, external_range=f"{free_port}-{free_port}")
    assert allocate_ports("127.0.0.1", [spec]) == {spec: free_port}


def test_allocate_exhausted_by_earlier_spec(free_port: int):
    specs = [
        PortSpec(internal_port=80, external_range=str(free_port)),
        PortSpec(internal_port=81, external_range=str(free_port)),
    ]
    with pytest.raises(ExhaustedRangeError) as exc_info:
        allocate_ports("127.0.0.1", specs)
    assert exc_info.value.spec == specs[1]


def test_allocate_exhausted_by_bound_port(bound_port: int):
    spec = PortSpec(internal_port=80, external_range=f"{bound_port}-{bound_port}")
    with pytest.raises(ExhaustedRangeError, match="80/tcp"):
        allocate_ports("127.0.0.1", [spec])


def test_allocate_parse_error_names_spec():
    good = PortSpec(internal_port=80, external_range=str(find_free_port()))
    bad = PortSpec(internal_port=5432, external_range="lots")
    with pytest.raises(ParseError, match="5432/tcp") as exc_info:
        allocate_ports("127.0.0.1", [good, bad])
    assert exc_info.value.spec == bad


def test_allocate_rejects_invalid_port_numbers():
    with pytest.raises(ParseError, match="outside of the valid port range"):
        allocate_ports("127.0.0.1", [PortSpec(internal_port=80, external_range="65000-70000")])
