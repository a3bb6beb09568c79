"""Pyright WebSocket Bridge.

A relay that accepts WebSocket connections and pairs each one with its own
Pyright language server subprocess, rewriting requests in transit and
handling formatting requests locally with Ruff.
"""

__version__ = "0.1.0"
