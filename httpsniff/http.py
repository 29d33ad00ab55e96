"""Recognition and parsing of HTTP/1.x messages."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

_REQUEST_PREFIXES = (b"GET ", b"POST ", b"PUT ", b"DELETE ", b"HEAD ", b"OPTIONS ")
_RESPONSE_PREFIXES = (b"HTTP/1.", b"HTTP/2")

_FIRST_WORD = re.compile(r"\s*(\S+)")
_STATUS_CODE = re.compile(r"\s*([+-]?\d+)")


class HTTPMethod(Enum):
    """Request methods the parser recognises."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_token(cls, token: str) -> HTTPMethod:
        """Return the method named exactly by ``token``, or ``UNKNOWN``."""
        if token == cls.UNKNOWN.value:
            return cls.UNKNOWN
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class HTTPMessage:
    """A parsed HTTP request or response."""

    is_request: bool = False
    method: HTTPMethod = HTTPMethod.UNKNOWN
    uri: str = ""
    version: str = ""
    status_code: int = 0
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def summary(self) -> str:
        """One-line description: the request line or the status line."""
        if self.is_request:
            return f"{self.method.value} {self.uri} {self.version}"
        return f"{self.version} {self.status_code} {self.status_text}"

    def headers_text(self) -> str:
        """Headers as ``Name: value`` lines, ordered by name."""
        return "".join(f"{name}: {self.headers[name]}\n" for name in sorted(self.headers))


def is_http(data: bytes) -> bool:
    """Tell whether ``data`` starts like an HTTP request or response."""
    if len(data) < 10:
        return False
    start = bytes(data[:20])
    return start.startswith(_REQUEST_PREFIXES) or start.startswith(_RESPONSE_PREFIXES)


def _lines(text: str) -> Iterator[str]:
    if not text:
        return
    parts = text.split("\n")
    if text.endswith("\n"):
        parts.pop()
    yield from parts


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def _parse_start_line(line: str, message: HTTPMessage) -> None:
    match = _FIRST_WORD.match(line)
    first = match.group(1) if match else ""
    rest = line[match.end():] if match else ""

    if first.startswith("HTTP/"):
        message.is_request = False
        message.version = first
        code = _STATUS_CODE.match(rest)
        if code:
            message.status_code = int(code.group(1))
            text = rest[code.end():]
            message.status_text = text[1:] if text.startswith(" ") else text
    else:
        message.is_request = True
        message.method = HTTPMethod.from_token(first)
        parts = rest.split()
        if parts:
            message.uri = parts[0]
        if len(parts) > 1:
            message.version = parts[1]


def parse_http(data: bytes) -> HTTPMessage:
    """Parse a raw HTTP message into its start line, headers and body."""
    message = HTTPMessage()
    lines = _lines(bytes(data).decode("utf-8", errors="replace"))

    first = next(lines, None)
    if first is not None:
        _parse_start_line(_strip_cr(first), message)

    for raw in lines:
        line = _strip_cr(raw)
        if not line:
            break
        name, colon, value = line.partition(":")
        if colon:
            message.headers[name] = value.lstrip(" ")

    message.body = "".join(line + "\n" for line in lines)
    return message