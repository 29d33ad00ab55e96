"""Desktop window of the sniffer and the command that opens it."""

from __future__ import annotations

import argparse
import json
import os
import queue
import sys
import threading
import tkinter as tk
from dataclasses import asdict, dataclass
from datetime import datetime
from html.parser import HTMLParser
from pathlib import Path
from tkinter import filedialog, messagebox, simpledialog, ttk
from typing import Optional, Union

from platformdirs import user_config_dir

from httpsniff.capture import (
    CaptureError,
    CaptureSession,
    Statistics,
    list_interfaces,
    open_interface,
)
from httpsniff.filters import FilterError, compile_filter
from httpsniff.table import COLUMNS, PacketRow, PacketTable, statistics_text

DEFAULT_TIMEOUT = 300
MIN_TIMEOUT = 10
MAX_TIMEOUT = 3600
_POLL_MS = 100
_APP_NAME = "httpsniff"


def has_capture_privileges() -> bool:
    """Whether this process may capture packets: root where that applies."""
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None:
        return True
    return geteuid() == 0


def _default_settings_path() -> Path:
    return Path(user_config_dir(_APP_NAME)) / "settings.json"


@dataclass
class Settings:
    """User preferences kept between runs."""

    tcp_stream_timeout: int = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        value = self.tcp_stream_timeout
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"timeout must be an integer, got {value!r}")
        if not MIN_TIMEOUT <= value <= MAX_TIMEOUT:
            raise ValueError(
                f"timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} seconds, got {value}"
            )

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> Settings:
        """Read settings; defaults when the file is missing or unusable."""
        source = Path(path) if path is not None else _default_settings_path()
        try:
            data = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return cls()
        if not isinstance(data, dict):
            return cls()
        try:
            return cls(tcp_stream_timeout=data.get("tcp_stream_timeout", DEFAULT_TIMEOUT))
        except ValueError:
            return cls()

    def save(self, path: Union[str, Path, None] = None) -> None:
        """Write settings, creating the directory when needed."""
        target = Path(path) if path is not None else _default_settings_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(asdict(self), indent=2) + "\n", encoding="utf-8")


class _HTMLText(HTMLParser):
    _BLOCKS = {"h3", "h4", "p", "pre"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []

    def handle_starttag(self, tag, attrs):
        if tag in self._BLOCKS and self.parts and not self.parts[-1].endswith("\n"):
            self.parts.append("\n")

    def handle_endtag(self, tag):
        if tag in self._BLOCKS:
            self.parts.append("\n")

    def handle_data(self, data):
        self.parts.append(data)


def _html_to_text(markup: str) -> str:
    parser = _HTMLText()
    parser.feed(markup)
    parser.close()
    return "".join(parser.parts)


class MainWindow:
    """Interface selection, filter, packet table and details in one window."""

    def __init__(self, root: tk.Tk) -> None:
        self.root = root
        self.table = PacketTable()
        self.settings = Settings.load()
        self._events: queue.Queue = queue.Queue()
        self._session: Optional[CaptureSession] = None
        self._thread: Optional[threading.Thread] = None
        self._interfaces: list[str] = []
        self._sort_reverse: dict[str, bool] = {}

        root.title("Network Sniffer with HTTP Support")
        root.geometry("900x600")
        self._build_controls()
        self._build_status_bar()
        self._build_views()
        self._build_menus()

        self.refresh_interfaces()
        root.protocol("WM_DELETE_WINDOW", self._close)
        root.after(_POLL_MS, self._poll)

    def _build_controls(self) -> None:
        bar = ttk.Frame(self.root, padding=4)
        bar.pack(side=tk.TOP, fill=tk.X)

        ttk.Label(bar, text="Interface:").pack(side=tk.LEFT)
        self._interface_var = tk.StringVar()
        self._interface_combo = ttk.Combobox(bar, textvariable=self._interface_var, state="readonly")
        self._interface_combo.pack(side=tk.LEFT, fill=tk.X, expand=True, padx=4)
        ttk.Button(bar, text="Refresh", command=self.refresh_interfaces).pack(side=tk.LEFT)

        ttk.Label(bar, text="Filter:").pack(side=tk.LEFT, padx=(8, 0))
        self._filter_var = tk.StringVar()
        self._filter_entry = ttk.Entry(bar, textvariable=self._filter_var, width=30)
        self._filter_entry.pack(side=tk.LEFT, padx=4)

        self._start_button = ttk.Button(bar, text="Start", command=self.start_capture)
        self._start_button.pack(side=tk.LEFT)
        self._stop_button = ttk.Button(bar, text="Stop", command=self.stop_capture, state=tk.DISABLED)
        self._stop_button.pack(side=tk.LEFT, padx=(4, 0))

    def _build_status_bar(self) -> None:
        bar = ttk.Frame(self.root, padding=(4, 2))
        bar.pack(side=tk.BOTTOM, fill=tk.X)
        self._status_var = tk.StringVar(value="Ready")
        self._stats_var = tk.StringVar(value=statistics_text(Statistics()))
        ttk.Label(bar, textvariable=self._status_var).pack(side=tk.LEFT)
        ttk.Label(bar, textvariable=self._stats_var).pack(side=tk.RIGHT)

    def _build_views(self) -> None:
        pane = ttk.PanedWindow(self.root, orient=tk.VERTICAL)
        pane.pack(side=tk.TOP, fill=tk.BOTH, expand=True)

        frame = ttk.Frame(pane)
        columns = [f"c{position}" for position in range(len(COLUMNS))]
        self._tree = ttk.Treeview(frame, columns=columns, show="headings", selectmode="browse")
        for column, title in zip(columns, COLUMNS):
            self._tree.heading(column, text=title, command=lambda c=column: self._sort_by(c))
            self._tree.column(column, width=100, stretch=column == columns[-1])
        scrollbar = ttk.Scrollbar(frame, orient=tk.VERTICAL, command=self._tree.yview)
        self._tree.configure(yscrollcommand=scrollbar.set)
        self._tree.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)
        self._tree.bind("<<TreeviewSelect>>", self._show_details)

        self._details = tk.Text(pane, wrap=tk.WORD, state=tk.DISABLED)
        pane.add(frame, weight=3)
        pane.add(self._details, weight=2)

    def _build_menus(self) -> None:
        menubar = tk.Menu(self.root)

        file_menu = tk.Menu(menubar, tearoff=False)
        file_menu.add_command(label="Save packets...", underline=0, command=self.save_packets)
        file_menu.add_command(label="Clear", underline=0, command=self.clear_packets)
        file_menu.add_separator()
        file_menu.add_command(label="Exit", underline=1, command=self._close)
        menubar.add_cascade(label="File", underline=0, menu=file_menu)

        settings_menu = tk.Menu(menubar, tearoff=False)
        settings_menu.add_command(label="Parameters...", underline=0, command=self._display_settings)
        menubar.add_cascade(label="Settings", underline=0, menu=settings_menu)

        help_menu = tk.Menu(menubar, tearoff=False)
        help_menu.add_command(label="About", underline=0, command=self._show_about)
        menubar.add_cascade(label="Help", underline=0, menu=help_menu)

        self.root.config(menu=menubar)

    def refresh_interfaces(self) -> None:
        """Reload the list of capture interfaces."""
        self._interfaces = []
        self._interface_combo["values"] = ()
        self._interface_var.set("")
        try:
            names = list_interfaces()
        except CaptureError as exc:
            messagebox.showwarning("Error", str(exc), parent=self.root)
            return
        self._interfaces = names
        if not names:
            self._interface_combo["values"] = ("No interfaces found",)
            self._interface_var.set("No interfaces found")
            self._start_button.configure(state=tk.DISABLED)
        else:
            self._interface_combo["values"] = tuple(names)
            self._interface_var.set(names[0])
            self._start_button.configure(state=tk.NORMAL)

    def start_capture(self) -> None:
        """Start capturing on the selected interface with the given filter."""
        if self._thread is not None and self._thread.is_alive():
            return
        if not self._interfaces:
            messagebox.showwarning("Error", "No interfaces available.", parent=self.root)
            return
        name = self._interface_var.get()
        try:
            packet_filter = compile_filter(self._filter_var.get().strip())
        except FilterError as exc:
            messagebox.showerror("Capture error", f"Could not compile filter: {exc}", parent=self.root)
            return

        events = self._events
        session = CaptureSession(
            on_packet=lambda packet: events.put(("packet", packet, datetime.now())),
            on_http=lambda event: events.put(("http", event, datetime.now())),
            on_statistics=lambda stats: events.put(("stats", stats, None)),
            packet_filter=packet_filter,
        )
        self._session = session
        self._thread = threading.Thread(target=self._capture, args=(session, name), daemon=True)
        self._thread.start()
        self._set_capturing(True)
        self._status_var.set("Capturing packets...")

    def _capture(self, session: CaptureSession, name: str) -> None:
        try:
            session.run(open_interface(name))
        except CaptureError as exc:
            self._events.put(("error", str(exc), None))

    def stop_capture(self) -> None:
        """Stop the capture and wait for it to finish."""
        thread, session = self._thread, self._session
        if thread is not None and session is not None:
            while thread.is_alive():
                session.stop()
                thread.join(0.1)
        self._thread = None
        self._set_capturing(False)
        self._status_var.set("Ready")

    def _set_capturing(self, active: bool) -> None:
        self._start_button.configure(state=tk.DISABLED if active else tk.NORMAL)
        self._stop_button.configure(state=tk.NORMAL if active else tk.DISABLED)
        self._interface_combo.configure(state="disabled" if active else "readonly")
        self._filter_entry.configure(state=tk.DISABLED if active else tk.NORMAL)

    def save_packets(self) -> None:
        """Ask for a file name and save the table as CSV."""
        if not len(self.table):
            messagebox.showinfo("Information", "No packets to save.", parent=self.root)
            return
        path = filedialog.asksaveasfilename(
            parent=self.root,
            title="Save packets",
            initialdir=str(Path.home()),
            initialfile="packets.csv",
            defaultextension=".csv",
            filetypes=[("CSV files", "*.csv")],
        )
        if not path:
            return
        try:
            self.table.save(path)
        except OSError:
            messagebox.showwarning("Error", "Could not open the file for writing.", parent=self.root)
            return
        self._status_var.set(f"Packets saved to {path}")

    def clear_packets(self) -> None:
        """Remove every packet from the table and the details view."""
        self.table.clear()
        self._tree.delete(*self._tree.get_children())
        self._set_details("")
        self._status_var.set("Ready")

    def _show_about(self) -> None:
        messagebox.showinfo(
            "About",
            "Network Sniffer with HTTP support\n\n"
            "Version 1.0\n\n"
            "Captures and analyses network traffic,\n"
            "including UDP, TCP and HTTP packets.",
            parent=self.root,
        )

    def _display_settings(self) -> None:
        value = simpledialog.askinteger(
            "Settings",
            "TCP stream cleanup timeout (seconds):",
            initialvalue=self.settings.tcp_stream_timeout,
            minvalue=MIN_TIMEOUT,
            maxvalue=MAX_TIMEOUT,
            parent=self.root,
        )
        if value is None:
            return
        self.settings = Settings(tcp_stream_timeout=value)
        try:
            self.settings.save()
        except OSError as exc:
            messagebox.showwarning("Error", f"Could not save settings: {exc}", parent=self.root)

    def _poll(self) -> None:
        try:
            while True:
                kind, payload, stamp = self._events.get_nowait()
                self._handle_event(kind, payload, stamp)
        except queue.Empty:
            pass
        self.root.after(_POLL_MS, self._poll)

    def _handle_event(self, kind: str, payload, stamp: Optional[datetime]) -> None:
        if kind == "packet":
            self._insert_row(self.table.add_packet(payload, stamp))
        elif kind == "http":
            self._insert_row(self.table.add_http(payload, stamp))
        elif kind == "stats":
            self._stats_var.set(statistics_text(payload))
        elif kind == "error":
            messagebox.showerror("Capture error", payload, parent=self.root)
            self.stop_capture()

    def _insert_row(self, row: PacketRow) -> None:
        iid = str(row.number - 1)
        self._tree.insert("", tk.END, iid=iid, values=row.values())
        self._tree.see(iid)

    def _sort_by(self, column: str) -> None:
        reverse = self._sort_reverse.get(column, False)

        def key(iid: str):
            value = self._tree.set(iid, column)
            return (0, int(value), "") if value.isdigit() else (1, 0, value)

        for position, iid in enumerate(sorted(self._tree.get_children(), key=key, reverse=reverse)):
            self._tree.move(iid, "", position)
        self._sort_reverse[column] = not reverse

    def _show_details(self, _event=None) -> None:
        selection = self._tree.selection()
        if not selection:
            return
        self._set_details(_html_to_text(self.table.details_html(int(selection[0]))))

    def _set_details(self, text: str) -> None:
        self._details.configure(state=tk.NORMAL)
        self._details.delete("1.0", tk.END)
        self._details.insert("1.0", text)
        self._details.configure(state=tk.DISABLED)

    def _close(self) -> None:
        self.stop_capture()
        self.root.destroy()


def main(argv=None) -> int:
    """Open the sniffer window; returns the process exit status."""
    parser = argparse.ArgumentParser(prog=_APP_NAME, description="Network sniffer with HTTP support.")
    parser.parse_args(argv)
    if not has_capture_privileges():
        print(
            "Capturing packets requires superuser privileges.\n"
            "Run the program with sudo.",
            file=sys.stderr,
        )
        return 1
    root = tk.Tk()
    MainWindow(root)
    root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())