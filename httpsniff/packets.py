"""Decoding of captured Ethernet frames carrying IPv4 TCP or UDP."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from ipaddress import IPv4Address

_ETHERNET_HEADER = 14
_IP_MIN_HEADER = 20
_TCP_MIN_HEADER = 20
_UDP_HEADER = 8


class Protocol(Enum):
    """Transport protocols the sniffer reports, keyed by IP protocol number."""

    TCP = 6
    UDP = 17


@dataclass(frozen=True)
class PacketInfo:
    """Addresses, ports and payload of one TCP or UDP packet.

    ``length`` is the payload length the headers declare; ``payload`` holds
    the bytes actually captured, at most ``length`` of them.
    """

    protocol: Protocol
    src_ip: IPv4Address
    src_port: int
    dst_ip: IPv4Address
    dst_port: int
    length: int
    payload: bytes = b""
    seq: int = 0


def decode_frame(frame: bytes) -> PacketInfo | None:
    """Decode an Ethernet frame; None when it is not TCP or UDP or is truncated."""
    frame = bytes(frame)
    ip_start = _ETHERNET_HEADER
    if len(frame) < ip_start + _IP_MIN_HEADER:
        return None
    try:
        protocol = Protocol(frame[ip_start + 9])
    except ValueError:
        return None

    ip_header_length = (frame[ip_start] & 0x0F) * 4
    total_length = int.from_bytes(frame[ip_start + 2:ip_start + 4], "big")
    src_ip = IPv4Address(frame[ip_start + 12:ip_start + 16])
    dst_ip = IPv4Address(frame[ip_start + 16:ip_start + 20])
    transport = ip_start + ip_header_length

    if protocol is Protocol.TCP:
        if len(frame) < transport + _TCP_MIN_HEADER:
            return None
        src_port, dst_port, seq, _ack, offset = struct.unpack_from("!HHIIB", frame, transport)
        tcp_header_length = (offset >> 4) * 4
        length = total_length - ip_header_length - tcp_header_length
        data_start = transport + tcp_header_length
    else:
        if len(frame) < transport + _UDP_HEADER:
            return None
        src_port, dst_port, udp_length = struct.unpack_from("!HHH", frame, transport)
        seq = 0
        length = udp_length - _UDP_HEADER
        data_start = transport + _UDP_HEADER

    payload = frame[data_start:data_start + max(length, 0)]
    return PacketInfo(
        protocol=protocol,
        src_ip=src_ip,
        src_port=src_port,
        dst_ip=dst_ip,
        dst_port=dst_port,
        length=length,
        payload=payload,
        seq=seq,
    )