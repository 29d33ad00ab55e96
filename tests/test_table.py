import csv
import io
from datetime import datetime
from ipaddress import IPv4Address

import pytest

from httpsniff.capture import HTTPEvent, Statistics
from httpsniff.packets import PacketInfo, Protocol
from httpsniff.table import CSV_HEADER, PacketTable, statistics_text


def _packet(protocol=Protocol.TCP, length=42):
    return PacketInfo(
        protocol=protocol,
        src_ip=IPv4Address("10.0.0.1"),
        src_port=1234,
        dst_ip=IPv4Address("10.0.0.2"),
        dst_port=80,
        length=length,
    )


def _event(body="<b>hi</b>"):
    return HTTPEvent(
        kind="Request",
        src_ip="10.0.0.1",
        src_port=5555,
        dst_ip="10.0.0.2",
        dst_port=80,
        info="GET /index.html HTTP/1.1",
        headers="Host: example.com\n",
        body=body,
    )


STAMP = datetime(2024, 1, 2, 3, 4, 5, 678000)


def test_statistics_text():
    assert statistics_text(Statistics(1, 2, 3, 4)) == "Packets: 1, TCP: 2, UDP: 3, HTTP: 4"


def test_add_packet_fills_row():
    table = PacketTable()
    row = table.add_packet(_packet(Protocol.UDP, 17), STAMP)
    assert row.number == 1
    assert row.time == "03:04:05.678"
    assert row.protocol == "UDP"
    assert (row.src_ip, row.src_port, row.dst_ip, row.dst_port) == ("10.0.0.1", 1234, "10.0.0.2", 80)
    assert row.size == 17
    assert row.details is None
    assert table[0] == row


def test_rows_are_numbered_in_order():
    table = PacketTable()
    table.add_packet(_packet(), STAMP)
    table.add_http(_event(), STAMP)
    table.add_packet(_packet(), STAMP)
    assert [row.number for row in table] == [1, 2, 3]
    assert len(table) == 3


def test_add_http_row():
    event = _event()
    table = PacketTable()
    row = table.add_http(event, STAMP)
    assert row.protocol == "HTTP " + event.kind
    assert row.size == len(event.headers) + len(event.body)
    assert row.details.info == event.info
    assert row.details.body == event.body


def test_clear_restarts_numbering():
    table = PacketTable()
    table.add_packet(_packet(), STAMP)
    table.add_packet(_packet(), STAMP)
    table.clear()
    assert len(table) == 0
    assert table.add_packet(_packet(), STAMP).number == 1


def test_write_csv_round_trip():
    table = PacketTable()
    first = table.add_packet(_packet(), STAMP)
    second = table.add_http(_event(), STAMP)
    stream = io.StringIO()
    table.write_csv(stream)
    stream.seek(0)
    rows = list(csv.reader(stream))
    assert tuple(rows[0]) == CSV_HEADER
    assert rows[1] == [str(value) for value in first.values()]
    assert rows[2] == [str(value) for value in second.values()]
    assert len(rows) == 3


def test_save_writes_file(tmp_path):
    table = PacketTable()
    row = table.add_packet(_packet(), STAMP)
    target = tmp_path / "packets.csv"
    table.save(target)
    with open(target, newline="", encoding="utf-8") as stream:
        rows = list(csv.reader(stream))
    assert tuple(rows[0]) == CSV_HEADER
    assert rows[1] == [str(value) for value in row.values()]


def test_save_to_missing_directory_raises(tmp_path):
    table = PacketTable()
    with pytest.raises(OSError):
        table.save(tmp_path / "missing" / "packets.csv")


def test_details_html_for_plain_packet():
    table = PacketTable()
    row = table.add_packet(_packet(length=42), STAMP)
    html = table.details_html(0)
    assert html.startswith(f"<h3>{row.protocol} packet</h3>")
    assert f"{row.src_ip}:{row.src_port}" in html
    assert f"{row.dst_ip}:{row.dst_port}" in html
    assert f"{row.size} bytes" in html


def test_details_html_for_http_escapes_body():
    event = _event(body="<b>hi</b>")
    table = PacketTable()
    table.add_http(event, STAMP)
    html = table.details_html(0)
    assert html.startswith(f"<h3>HTTP {event.kind}</h3>")
    assert f"<p><b>{event.info}</b></p>" in html
    assert f"<pre>{event.headers}</pre>" in html
    assert "&lt;b&gt;hi&lt;/b&gt;" in html
    assert event.body not in html


def test_details_html_without_body_has_no_body_section():
    event = _event(body="")
    table = PacketTable()
    table.add_http(event, STAMP)
    html = table.details_html(0)
    assert html.endswith(f"<pre>{event.headers}</pre>")


def test_details_html_bad_index():
    with pytest.raises(IndexError):
        PacketTable().details_html(0)