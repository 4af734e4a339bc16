"""Minimal bidirectional serial port terminal."""

__version__ = "0.1.0"
