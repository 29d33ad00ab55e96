import struct
from ipaddress import IPv4Address

from httpsniff.packets import PacketInfo, Protocol, decode_frame

ETHERNET = bytes(12) + b"\x08\x00"


def ip_header(src, dst, proto, payload_length):
    total = 20 + payload_length
    return struct.pack(
        "!BBHHHBBH4s4s",
        0x45, 0, total, 0, 0, 64, proto, 0,
        IPv4Address(src).packed, IPv4Address(dst).packed,
    )


def tcp_frame(src, dst, sport, dport, seq, payload, options=b""):
    words = 5 + len(options) // 4
    tcp = struct.pack("!HHIIBBHHH", sport, dport, seq, 0, words << 4, 0x18, 65535, 0, 0) + options
    return ETHERNET + ip_header(src, dst, 6, len(tcp) + len(payload)) + tcp + payload


def udp_frame(src, dst, sport, dport, payload, declared=None):
    length = 8 + len(payload) if declared is None else declared
    udp = struct.pack("!HHHH", sport, dport, length, 0)
    return ETHERNET + ip_header(src, dst, 17, len(udp) + len(payload)) + udp + payload


def test_decodes_tcp_segment():
    payload = b"GET / HTTP/1.1\r\n\r\n"
    info = decode_frame(tcp_frame("192.168.0.1", "10.0.0.2", 51000, 80, 123456, payload))
    assert info == PacketInfo(
        protocol=Protocol.TCP,
        src_ip=IPv4Address("192.168.0.1"),
        src_port=51000,
        dst_ip=IPv4Address("10.0.0.2"),
        dst_port=80,
        length=len(payload),
        payload=payload,
        seq=123456,
    )


def test_dotted_addresses():
    info = decode_frame(tcp_frame("192.168.0.1", "10.0.0.2", 1, 2, 0, b"x"))
    assert str(info.src_ip) == "192.168.0.1"
    assert str(info.dst_ip) == "10.0.0.2"


def test_tcp_options_are_skipped():
    payload = b"hello"
    frame = tcp_frame("1.2.3.4", "5.6.7.8", 10, 20, 7, payload, options=bytes(12))
    info = decode_frame(frame)
    assert info.payload == payload
    assert info.length == len(payload)


def test_tcp_without_payload_has_zero_length():
    info = decode_frame(tcp_frame("1.2.3.4", "5.6.7.8", 10, 20, 7, b""))
    assert info.protocol is Protocol.TCP
    assert info.length == 0
    assert info.payload == b""


def test_decodes_udp_datagram():
    payload = b"\x12\x34query"
    info = decode_frame(udp_frame("172.16.0.5", "8.8.4.4", 5353, 53, payload))
    assert info.protocol is Protocol.UDP
    assert (info.src_port, info.dst_port) == (5353, 53)
    assert info.payload == payload
    assert info.length == len(payload)
    assert info.seq == 0


def test_udp_declared_length_below_header_is_negative():
    info = decode_frame(udp_frame("1.1.1.1", "2.2.2.2", 1, 2, b"", declared=4))
    assert info.length < 0
    assert info.payload == b""


def test_other_ip_protocol_is_ignored():
    icmp = ETHERNET + ip_header("1.1.1.1", "2.2.2.2", 1, 8) + bytes(8)
    assert decode_frame(icmp) is None


def test_short_frames_are_ignored():
    frame = tcp_frame("1.1.1.1", "2.2.2.2", 1, 2, 3, b"data")
    assert decode_frame(frame[:20]) is None
    assert decode_frame(frame[:40]) is None
    assert decode_frame(b"") is None


def test_payload_limited_to_captured_bytes():
    payload = b"abcdefgh"
    frame = tcp_frame("1.1.1.1", "2.2.2.2", 1, 2, 3, payload)
    info = decode_frame(frame[:-3])
    assert info.length == len(payload)
    assert info.payload == payload[:-3]