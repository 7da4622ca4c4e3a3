"""Offline-first task store with a queue-based sync engine, served over MCP."""

__version__ = "0.3.0"
