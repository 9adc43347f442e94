"""Newline-delimited JSON-RPC transport over standard I/O for a message server."""

__version__ = "0.1.0"
__all__ = ["stdio"]