from ipaddress import IPv4Address

import pytest

from httpsniff.filters import FilterError, PacketFilter, compile_filter
from httpsniff.packets import PacketInfo, Protocol


def packet(protocol=Protocol.TCP, src="10.0.0.1", sport=40000, dst="10.0.0.2", dport=80):
    return PacketInfo(
        protocol=protocol,
        src_ip=IPv4Address(src),
        src_port=sport,
        dst_ip=IPv4Address(dst),
        dst_port=dport,
        length=1,
    )


def test_example_from_the_ui():
    flt = compile_filter("tcp port 80 or port 443")
    assert flt.matches(packet(Protocol.TCP, dport=80))
    assert flt.matches(packet(Protocol.UDP, dport=443))
    assert flt.matches(packet(Protocol.TCP, sport=443, dport=5000))
    assert not flt.matches(packet(Protocol.UDP, dport=80))


def test_empty_expression_matches_everything():
    flt = compile_filter("   ")
    assert flt.matches(packet())
    assert flt.matches(None)


def test_protocol_terms():
    assert compile_filter("udp").matches(packet(Protocol.UDP))
    assert not compile_filter("udp").matches(packet(Protocol.TCP))
    assert compile_filter("ip").matches(packet(Protocol.UDP))
    assert not compile_filter("tcp").matches(None)


def test_not_matches_other_frames():
    flt = compile_filter("not tcp")
    assert flt.matches(None)
    assert flt.matches(packet(Protocol.UDP))
    assert not flt.matches(packet(Protocol.TCP))


def test_bang_and_symbolic_operators():
    flt = compile_filter("!udp && (port 80 || port 8080)")
    assert flt.matches(packet(dport=8080))
    assert not flt.matches(packet(dport=22))
    assert not flt.matches(packet(Protocol.UDP, dport=80))


def test_host_directions():
    src_only = compile_filter("src host 10.0.0.1")
    assert src_only.matches(packet(src="10.0.0.1"))
    assert not src_only.matches(packet(src="10.0.0.9", dst="10.0.0.1"))
    either = compile_filter("host 10.0.0.1")
    assert either.matches(packet(src="10.0.0.9", dst="10.0.0.1"))


def test_direction_without_kind_means_host():
    flt = compile_filter("dst 10.0.0.2")
    assert flt.matches(packet(dst="10.0.0.2"))
    assert not flt.matches(packet(src="10.0.0.2", dst="10.0.0.3"))


def test_port_direction_with_protocol():
    flt = compile_filter("tcp dst port 80")
    assert flt.matches(packet(Protocol.TCP, dport=80))
    assert not flt.matches(packet(Protocol.TCP, sport=80, dport=1234))
    assert not flt.matches(packet(Protocol.UDP, dport=80))


def test_and_or_group_left_to_right():
    flt = compile_filter("udp or tcp and port 80")
    assert not flt.matches(packet(Protocol.UDP, sport=5353, dport=53))
    assert flt.matches(packet(Protocol.UDP, dport=80))


def test_expression_is_kept():
    flt = compile_filter("tcp")
    assert isinstance(flt, PacketFilter)
    assert flt.expression == "tcp"


@pytest.mark.parametrize(
    "expression",
    [
        "tcp port",
        "port abc",
        "port 70000",
        "(tcp",
        "tcp)",
        "tcp udp",
        "host 999.1.1.1",
        "foo",
        "and tcp",
        "tcp and",
        "port 80 & port 81",
        "src port tcp",
        "not",
    ],
)
def test_invalid_expressions(expression):
    with pytest.raises(FilterError):
        compile_filter(expression)