"""Packet filter expressions in a subset of the tcpdump syntax.

Supported terms: ``tcp``, ``udp``, ``ip``, ``[proto] [src|dst] host ADDR``,
``[proto] [src|dst] port N`` and ``src|dst ADDR``, joined by ``and``/``&&``,
``or``/``||``, negated by ``not``/``!`` and grouped with parentheses.
As in tcpdump, ``and`` and ``or`` share one precedence and group left to right.
"""

from __future__ import annotations

import re
from ipaddress import IPv4Address
from typing import Callable, Optional

from httpsniff.packets import PacketInfo, Protocol

Predicate = Callable[[Optional[PacketInfo]], bool]

_AND = {"and", "&&"}
_OR = {"or", "||"}
_NOT = {"not", "!"}
_PROTOCOLS = {"tcp": Protocol.TCP, "udp": Protocol.UDP, "ip": None}
_DIRECTIONS = {"src", "dst"}
_KINDS = {"host", "port"}
_RESERVED = _AND | _OR | _NOT | set(_PROTOCOLS) | _DIRECTIONS | _KINDS | {"(", ")"}

_TOKENS = re.compile(r"\s*(?:(&&|\|\||[()!])|([^\s()!&|]+)|(\S))")


class FilterError(ValueError):
    """Raised when a filter expression cannot be compiled."""


class PacketFilter:
    """A compiled filter expression."""

    def __init__(self, expression: str, predicate: Predicate) -> None:
        self._expression = expression
        self._predicate = predicate

    @property
    def expression(self) -> str:
        """The source text of the filter."""
        return self._expression

    def matches(self, packet: PacketInfo | None) -> bool:
        """Tell whether a decoded packet passes; None stands for any other frame."""
        return bool(self._predicate(packet))

    def __repr__(self) -> str:
        return f"PacketFilter({self._expression!r})"


def compile_filter(expression: str) -> PacketFilter:
    """Compile ``expression``; an empty expression lets everything through."""
    tokens = _tokenize(expression)
    if not tokens:
        return PacketFilter(expression, lambda packet: True)
    return PacketFilter(expression, _Parser(tokens).parse())


def _tokenize(expression: str) -> list[str]:
    tokens = []
    for match in _TOKENS.finditer(expression):
        symbol, word, bad = match.groups()
        if bad is not None:
            raise FilterError(f"unexpected character {bad!r}")
        tokens.append(symbol or word)
    return tokens


def _both(left: Predicate, right: Predicate) -> Predicate:
    return lambda packet: left(packet) and right(packet)


def _either(left: Predicate, right: Predicate) -> Predicate:
    return lambda packet: left(packet) or right(packet)


def _negate(inner: Predicate) -> Predicate:
    return lambda packet: not inner(packet)


def _protocol_ok(packet: PacketInfo | None, protocol: Protocol | None) -> bool:
    return packet is not None and (protocol is None or packet.protocol is protocol)


def _directional(src_hit: bool, dst_hit: bool, direction: str | None) -> bool:
    if direction == "src":
        return src_hit
    if direction == "dst":
        return dst_hit
    return src_hit or dst_hit


def _protocol_test(protocol: Protocol | None) -> Predicate:
    return lambda packet: _protocol_ok(packet, protocol)


def _host_test(address: IPv4Address, direction: str | None, protocol: Protocol | None) -> Predicate:
    def test(packet: PacketInfo | None) -> bool:
        if not _protocol_ok(packet, protocol):
            return False
        return _directional(packet.src_ip == address, packet.dst_ip == address, direction)

    return test


def _port_test(port: int, direction: str | None, protocol: Protocol | None) -> Predicate:
    def test(packet: PacketInfo | None) -> bool:
        if not _protocol_ok(packet, protocol):
            return False
        return _directional(packet.src_port == port, packet.dst_port == port, direction)

    return test


def _parse_host(value: str) -> IPv4Address:
    try:
        return IPv4Address(value)
    except ValueError as exc:
        raise FilterError(f"invalid host address {value!r}") from exc


def _parse_port(value: str) -> int:
    if not (value.isascii() and value.isdigit()) or int(value) > 0xFFFF:
        raise FilterError(f"invalid port {value!r}")
    return int(value)


class _Parser:
    def __init__(self, tokens: list[str]) -> None:
        self._tokens = tokens
        self._position = 0

    def _peek(self) -> str | None:
        if self._position < len(self._tokens):
            return self._tokens[self._position]
        return None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise FilterError("unexpected end of expression")
        self._position += 1
        return token

    def parse(self) -> Predicate:
        predicate = self._expression()
        leftover = self._peek()
        if leftover is not None:
            raise FilterError(f"unexpected {leftover!r}")
        return predicate

    def _expression(self) -> Predicate:
        predicate = self._unary()
        while (operator := self._peek()) in _AND | _OR:
            self._position += 1
            right = self._unary()
            predicate = _both(predicate, right) if operator in _AND else _either(predicate, right)
        return predicate

    def _unary(self) -> Predicate:
        token = self._take()
        if token in _NOT:
            return _negate(self._unary())
        if token == "(":
            inner = self._expression()
            closing = self._take()
            if closing != ")":
                raise FilterError(f"expected ')', got {closing!r}")
            return inner
        if token in _AND | _OR or token == ")":
            raise FilterError(f"unexpected {token!r}")
        return self._primitive(token)

    def _primitive(self, first: str) -> Predicate:
        token = first
        protocol = None
        if token in _PROTOCOLS:
            protocol = _PROTOCOLS[token]
            if self._peek() not in _DIRECTIONS | _KINDS:
                return _protocol_test(protocol)
            token = self._take()

        direction = None
        if token in _DIRECTIONS:
            direction = token
            token = self._take()

        if token in _KINDS:
            kind = token
            token = self._take()
        elif direction is None:
            raise FilterError(f"unknown term {first!r}")
        else:
            kind = "host"

        if token in _RESERVED or token in {"!", "&&", "||"}:
            raise FilterError(f"expected a value after {kind!r}, got {token!r}")
        if kind == "host":
            return _host_test(_parse_host(token), direction, protocol)
        return _port_test(_parse_port(token), direction, protocol)