"""Packet sniffer with TCP stream reassembly, HTTP decoding and a tkinter window."""

__version__ = "1.0.0"