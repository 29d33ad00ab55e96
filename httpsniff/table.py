"""The table of captured packets, its CSV export and detail views."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, Iterator, Optional, Union

from httpsniff.capture import HTTPEvent, Statistics
from httpsniff.packets import PacketInfo

COLUMNS = (
    "№",
    "Time",
    "Protocol",
    "Source",
    "Port",
    "Destination",
    "Port",
    "Size (bytes)",
)
CSV_HEADER = ("№", "Time", "Protocol", "Source", "Port", "Destination", "Port", "Size")


def statistics_text(stats: Statistics) -> str:
    """Counters as shown in the status bar."""
    return f"Packets: {stats.total}, TCP: {stats.tcp}, UDP: {stats.udp}, HTTP: {stats.http}"


def _format_time(timestamp: Optional[datetime]) -> str:
    moment = timestamp if timestamp is not None else datetime.now()
    return f"{moment:%H:%M:%S}.{moment.microsecond // 1000:03d}"


@dataclass(frozen=True)
class HTTPDetails:
    """The full content of an HTTP message shown in the details view."""

    kind: str
    info: str
    headers: str
    body: str


@dataclass(frozen=True)
class PacketRow:
    """One line of the packet table."""

    number: int
    time: str
    protocol: str
    src_ip: str
    src_port: int
    dst_ip: str
    dst_port: int
    size: int
    details: Optional[HTTPDetails] = None

    def values(self) -> tuple:
        """The visible cells of the row, in column order."""
        return (
            self.number,
            self.time,
            self.protocol,
            self.src_ip,
            self.src_port,
            self.dst_ip,
            self.dst_port,
            self.size,
        )


class PacketTable:
    """Rows of captured packets and HTTP messages, numbered from 1."""

    def __init__(self) -> None:
        self._rows: list[PacketRow] = []

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[PacketRow]:
        return iter(self._rows)

    def __getitem__(self, index: int) -> PacketRow:
        return self._rows[index]

    def _append(self, row: PacketRow) -> PacketRow:
        self._rows.append(row)
        return row

    def add_packet(self, packet: PacketInfo, timestamp: Optional[datetime] = None) -> PacketRow:
        """Add a TCP or UDP packet and return its row."""
        return self._append(
            PacketRow(
                number=len(self._rows) + 1,
                time=_format_time(timestamp),
                protocol=packet.protocol.name,
                src_ip=str(packet.src_ip),
                src_port=packet.src_port,
                dst_ip=str(packet.dst_ip),
                dst_port=packet.dst_port,
                size=packet.length,
            )
        )

    def add_http(self, event: HTTPEvent, timestamp: Optional[datetime] = None) -> PacketRow:
        """Add a complete HTTP message and return its row."""
        return self._append(
            PacketRow(
                number=len(self._rows) + 1,
                time=_format_time(timestamp),
                protocol=f"HTTP {event.kind}",
                src_ip=event.src_ip,
                src_port=event.src_port,
                dst_ip=event.dst_ip,
                dst_port=event.dst_port,
                size=len(event.headers) + len(event.body),
                details=HTTPDetails(event.kind, event.info, event.headers, event.body),
            )
        )

    def clear(self) -> None:
        """Remove every row."""
        self._rows.clear()

    def write_csv(self, stream: IO[str]) -> None:
        """Write the header and every row as CSV."""
        writer = csv.writer(stream, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        writer.writerows(row.values() for row in self._rows)

    def save(self, path: Union[str, Path]) -> None:
        """Write the table as a CSV file; OSError when it cannot be written."""
        with open(path, "w", newline="", encoding="utf-8") as stream:
            self.write_csv(stream)

    def details_html(self, index: int) -> str:
        """HTML description of the row at ``index``."""
        row = self._rows[index]
        details = row.details
        if details is not None:
            html = f"<h3>HTTP {details.kind}</h3>"
            html += f"<p><b>{details.info}</b></p>"
            html += "<h4>Headers:</h4>"
            html += f"<pre>{details.headers}</pre>"
            if details.body:
                body = details.body.replace("<", "&lt;").replace(">", "&gt;")
                html += "<h4>Message body:</h4>"
                html += f"<pre>{body}</pre>"
            return html

        html = f"<h3>{row.protocol} packet</h3>"
        html += f"<p><b>Source:</b> {row.src_ip}:{row.src_port}</p>"
        html += f"<p><b>Destination:</b> {row.dst_ip}:{row.dst_port}</p>"
        html += f"<p><b>Data size:</b> {row.size} bytes</p>"
        return html