# httpsniff

A small network sniffer with a desktop window. It captures Ethernet
frames from a network interface, lists every IPv4 TCP and UDP packet
that carries data, reassembles TCP streams and decodes the HTTP
requests and responses found in them.

## Installing

```
pip install .
```

The window is built with tkinter, which some Linux distributions ship
as a separate system package.

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running

```
sudo httpsniff
```

The same window opens with `python -m httpsniff.app`. Capturing packets
needs raw access to the network, so the program must run as root; without
that it prints a message to standard error and exits with status 1.

In the window:

- pick an interface from the list (use *Refresh* to reload it),
- optionally enter a filter such as `tcp port 80 or port 443`,
- press *Start* to capture and *Stop* to end the capture.

Each captured TCP or UDP packet with a payload becomes a row with its
number, time, protocol, source and destination address and port, and
payload size. Every complete HTTP message gets a row of its own
(protocol `HTTP Request` or `HTTP Response`, size counted as the length
of its header text plus its body); selecting it shows the start line,
the headers and the body. Clicking a column heading sorts the table by
that column, clicking again reverses the order. The status bar shows
totals of all packets, TCP, UDP and HTTP messages, refreshed every ten
packets, after each HTTP message and when a capture ends.

The *File* menu saves the table as CSV (header
`№,Time,Protocol,Source,Port,Destination,Port,Size`) or clears it.
*Settings → Parameters...* asks for a TCP stream timeout between 10 and
3600 seconds (300 by default) and stores it as `settings.json` in the
user's configuration directory.

## Filters

`compile_filter` accepts a subset of the tcpdump syntax:

- `tcp`, `udp`, `ip`
- `[tcp|udp|ip] [src|dst] host ADDR`
- `[tcp|udp|ip] [src|dst] port N`
- `src ADDR`, `dst ADDR`
- `and`/`&&`, `or`/`||`, `not`/`!` and parentheses; `and` and `or`
  have the same precedence and group left to right.

An empty filter lets every frame through. An invalid one raises
`FilterError`, which the window reports without starting the capture.

## Using the pieces as a library

The decoding parts work without the window and without capturing.

Recognising and parsing an HTTP message (`httpsniff.http`):

```python
from httpsniff.http import is_http, parse_http

raw = b"GET /index.html HTTP/1.1\r\nHost: example.com\r\n\r\n"
if is_http(raw):
    message = parse_http(raw)
    print(message.summary())       # GET /index.html HTTP/1.1
    print(message.headers_text())  # Host: example.com
```

`parse_http` returns an `HTTPMessage` with `is_request`, `method` (an
`HTTPMethod`), `uri`, `version`, `status_code`, `status_text`, `headers`
and `body`.

Reassembling TCP payloads (`httpsniff.streams`): give
`TCPStreamAssembler` a callback, feed it segments with
`process_packet(key, seq, data)` where `key` is a `StreamKey`, and the
callback receives every complete HTTP message, in stream order, together
with the key of its stream. Segments may arrive out of order; duplicates
and data already seen are dropped. `clear_old_streams(seconds)` forgets
streams idle for longer than that, and `stream_count` tells how many are
tracked. `http_message_length` and `is_http_message` are the checks it
uses.

Decoding frames (`httpsniff.packets`): `decode_frame` turns a raw
Ethernet frame into a `PacketInfo` for TCP and UDP packets and returns
None for anything else or a truncated frame.

Capturing (`httpsniff.capture`): a `CaptureSession` decodes frames with
`process_frame` or `run(frames)`, applies an optional `PacketFilter`,
keeps `Statistics`, and reports packets, `HTTPEvent`s and counters
through the callbacks it was given; `stop()` ends `run`.
`list_interfaces` names the interfaces of the machine, and
`open_interface` opens one in promiscuous mode, raising `CaptureError`
when it cannot.

The table (`httpsniff.table`): `PacketTable` holds the rows shown in the
window, writes them as CSV with `write_csv` or `save`, and describes a
row as HTML with `details_html`; `statistics_text` formats the counters.

## What it does not do

- Capture works on Linux only, through raw packet sockets; elsewhere
  `open_interface` raises `CaptureError`.
- Only IPv4 over Ethernet is decoded; IPv6 and other frames are counted
  but not listed.
- The filter language is the subset above, not full tcpdump syntax.
- A message body is taken from `Content-Length`; without it the message
  ends with its headers, so chunked bodies are not reassembled.
- The stored stream timeout is not applied to the capture, which always
  forgets TCP streams idle for more than 300 seconds.
- Raw frames are not saved; only the table can be exported, as CSV.