"""Reassembly of TCP segments into complete HTTP messages."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Callable

_SEQ_MODULUS = 1 << 32
_HTTP_PREFIXES = (b"GET ", b"POST ", b"PUT ", b"HEAD ", b"DELETE ", b"OPTIONS ", b"HTTP/")
_HEADERS_END = b"\r\n\r\n"
_CONTENT_LENGTH = b"Content-Length:"
_NUMBER = re.compile(rb"\s*([+-]?)(\d+)")


@dataclass(frozen=True, order=True)
class StreamKey:
    """One direction of a TCP connection; addresses are IPv4 as integers."""

    src_ip: int
    dst_ip: int
    src_port: int
    dst_port: int


@dataclass
class _Stream:
    expected_seq: int = 0
    pending: dict[int, bytes] = field(default_factory=dict)
    assembled: bytearray = field(default_factory=bytearray)


MessageCallback = Callable[[StreamKey, bytes], None]


def is_http_message(data: bytes) -> bool:
    """Tell whether reassembled stream data begins with an HTTP message."""
    return len(data) >= 10 and bytes(data[:8]).startswith(_HTTP_PREFIXES)


def http_message_length(data: bytes) -> int:
    """Length of the first complete HTTP message in ``data``.

    Returns 0 while the header block is still incomplete. The body length
    comes from ``Content-Length``; without it only the headers count.
    Raises ValueError when ``Content-Length`` holds no number.
    """
    data = bytes(data)
    end = data.find(_HEADERS_END)
    if end < 0:
        return 0
    headers_end = end + len(_HEADERS_END)
    headers = data[:headers_end]

    position = headers.find(_CONTENT_LENGTH)
    if position < 0:
        return headers_end

    value_start = position + len(_CONTENT_LENGTH)
    while value_start < len(headers) and headers[value_start:value_start + 1] == b" ":
        value_start += 1
    value_end = headers.find(b"\r\n", value_start)
    if value_end < 0:
        return headers_end

    match = _NUMBER.match(headers[value_start:value_end])
    if not match:
        raise ValueError(f"invalid Content-Length: {headers[value_start:value_end]!r}")
    length = int(match.group(2))
    if match.group(1) == b"-":
        length = (-length) % (1 << 64)
    return headers_end + length


class TCPStreamAssembler:
    """Orders TCP payloads per stream and reports each complete HTTP message."""

    def __init__(self, callback: MessageCallback, clock: Callable[[], float] = time.time) -> None:
        self._callback = callback
        self._clock = clock
        self._streams: dict[StreamKey, _Stream] = {}
        self._last_activity: dict[StreamKey, float] = {}

    @property
    def stream_count(self) -> int:
        """Number of streams currently tracked."""
        return len(self._streams)

    def process_packet(self, key: StreamKey, seq: int, data: bytes) -> None:
        """Feed one segment's payload, starting at sequence number ``seq``."""
        if not data:
            return
        self._last_activity[key] = self._clock()
        stream = self._streams.setdefault(key, _Stream())
        if not stream.pending and not stream.assembled:
            stream.expected_seq = seq
        stream.pending[seq] = bytes(data)
        self._assemble(key, stream)

    def _assemble(self, key: StreamKey, stream: _Stream) -> None:
        added = False
        for seq in sorted(stream.pending):
            if seq == stream.expected_seq:
                chunk = stream.pending.pop(seq)
                stream.assembled += chunk
                stream.expected_seq = (stream.expected_seq + len(chunk)) % _SEQ_MODULUS
                added = True
            elif seq < stream.expected_seq:
                del stream.pending[seq]

        if not added:
            return
        while is_http_message(stream.assembled):
            length = http_message_length(stream.assembled)
            if length == 0 or length > len(stream.assembled):
                break
            message = bytes(stream.assembled[:length])
            del stream.assembled[:length]
            self._callback(key, message)

    def clear_old_streams(self, older_than: float) -> None:
        """Forget streams idle for more than ``older_than`` seconds."""
        now = self._clock()
        stale = [key for key, seen in self._last_activity.items() if now - seen > older_than]
        for key in stale:
            del self._last_activity[key]
            self._streams.pop(key, None)