"""Packet capture session: counting, reporting and HTTP reassembly."""

from __future__ import annotations

import socket
import struct
import time
from dataclasses import dataclass, replace
from ipaddress import IPv4Address
from typing import Callable, Iterable, Iterator, Optional

from httpsniff.filters import PacketFilter
from httpsniff.http import is_http, parse_http
from httpsniff.packets import PacketInfo, Protocol, decode_frame
from httpsniff.streams import StreamKey, TCPStreamAssembler

_STREAM_TIMEOUT = 300
_STATISTICS_INTERVAL = 10
_SNAPLEN = 65536
_READ_TIMEOUT = 1.0
_ETH_P_ALL = 0x0003
_SOL_PACKET = 263
_PACKET_ADD_MEMBERSHIP = 1
_PACKET_MR_PROMISC = 1

REQUEST = "Request"
RESPONSE = "Response"


class CaptureError(Exception):
    """Raised when an interface cannot be opened or read."""


@dataclass
class Statistics:
    """Packet counters of a capture session."""

    total: int = 0
    tcp: int = 0
    udp: int = 0
    http: int = 0


@dataclass(frozen=True)
class HTTPEvent:
    """A complete HTTP message seen on one TCP stream direction."""

    kind: str
    src_ip: str
    src_port: int
    dst_ip: str
    dst_port: int
    info: str
    headers: str
    body: str


def list_interfaces() -> list[str]:
    """Names of the network interfaces of this machine."""
    try:
        entries = socket.if_nameindex()
    except (OSError, AttributeError) as exc:
        raise CaptureError(f"Could not list interfaces: {exc}") from exc
    return [name for _index, name in entries]


def open_interface(name: str) -> Iterator[bytes | None]:
    """Open ``name`` in promiscuous mode and return its frames.

    The iterator yields None whenever a read times out, so that a consumer
    can check whether it should stop. Closing it releases the interface.
    """
    family = getattr(socket, "AF_PACKET", None)
    if family is None:
        raise CaptureError(
            f"Could not open interface {name}: raw capture is not supported on this platform"
        )
    try:
        sock = socket.socket(family, socket.SOCK_RAW, socket.htons(_ETH_P_ALL))
    except OSError as exc:
        raise CaptureError(f"Could not open interface {name}: {exc}") from exc
    try:
        sock.bind((name, 0))
        membership = struct.pack(
            "iHH8s", socket.if_nametoindex(name), _PACKET_MR_PROMISC, 0, b""
        )
        sock.setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, membership)
        sock.settimeout(_READ_TIMEOUT)
    except OSError as exc:
        sock.close()
        raise CaptureError(f"Could not open interface {name}: {exc}") from exc
    return _read_frames(sock)


def _read_frames(sock: socket.socket) -> Iterator[bytes | None]:
    with sock:
        while True:
            try:
                frame = sock.recv(_SNAPLEN)
            except socket.timeout:
                frame = None
            except OSError as exc:
                raise CaptureError(f"Error while capturing packets: {exc}") from exc
            yield frame


class CaptureSession:
    """Processes captured frames and reports packets, HTTP messages and counters."""

    def __init__(
        self,
        on_packet: Optional[Callable[[PacketInfo], None]] = None,
        on_http: Optional[Callable[[HTTPEvent], None]] = None,
        on_statistics: Optional[Callable[[Statistics], None]] = None,
        packet_filter: Optional[PacketFilter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._on_packet = on_packet
        self._on_http = on_http
        self._on_statistics = on_statistics
        self._filter = packet_filter
        self._clock = clock
        self._stats = Statistics()
        self._assembler = TCPStreamAssembler(self._on_stream_message, clock)
        self._running = False

    @property
    def running(self) -> bool:
        """Whether :meth:`run` is consuming frames."""
        return self._running

    def stop(self) -> None:
        """Ask :meth:`run` to stop before the next frame."""
        self._running = False

    def process_frame(self, frame: bytes) -> None:
        """Count and report one captured frame."""
        packet = decode_frame(frame)
        if self._filter is not None and not self._filter.matches(packet):
            return

        self._stats.total += 1
        if packet is not None:
            if packet.protocol is Protocol.TCP:
                self._stats.tcp += 1
                if packet.length > 0:
                    self._report(packet)
                    key = StreamKey(
                        int(packet.src_ip), int(packet.dst_ip), packet.src_port, packet.dst_port
                    )
                    self._assembler.process_packet(key, packet.seq, packet.payload)
            else:
                self._stats.udp += 1
                if packet.length > 0:
                    self._report(packet)

        if self._stats.total % _STATISTICS_INTERVAL == 0:
            self._emit_statistics()
            self._assembler.clear_old_streams(_STREAM_TIMEOUT)

    def run(self, frames: Iterable[bytes | None]) -> None:
        """Process frames until they run out or :meth:`stop` is called.

        None items stand for idle reads and are skipped. Final counters are
        reported at the end; a CaptureError from the frames is raised again
        unless the session was stopped first.
        """
        self._stats = Statistics()
        self._assembler = TCPStreamAssembler(self._on_stream_message, self._clock)
        self._running = True
        failure: CaptureError | None = None
        try:
            for frame in frames:
                if not self._running:
                    break
                if frame is not None:
                    self.process_frame(frame)
        except CaptureError as exc:
            if self._running:
                failure = exc
        finally:
            close = getattr(frames, "close", None)
            if callable(close):
                close()
            self._running = False
        self._emit_statistics()
        if failure is not None:
            raise failure

    def _report(self, packet: PacketInfo) -> None:
        if self._on_packet is not None:
            self._on_packet(packet)

    def _emit_statistics(self) -> None:
        if self._on_statistics is not None:
            self._on_statistics(replace(self._stats))

    def _on_stream_message(self, key: StreamKey, data: bytes) -> None:
        if not is_http(data):
            return
        self._stats.http += 1
        message = parse_http(data)
        event = HTTPEvent(
            kind=REQUEST if message.is_request else RESPONSE,
            src_ip=str(IPv4Address(key.src_ip)),
            src_port=key.src_port,
            dst_ip=str(IPv4Address(key.dst_ip)),
            dst_port=key.dst_port,
            info=message.summary(),
            headers=message.headers_text(),
            body=message.body,
        )
        if self._on_http is not None:
            self._on_http(event)
        self._emit_statistics()