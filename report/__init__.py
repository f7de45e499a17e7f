"""
Report module: read-only dashboard over a running guardian loop.

Usage:
    from report import start_server
    start_server(loop.snapshot, port=8787)
"""

from __future__ import annotations

from report.server import create_app, start_server

__all__ = ["create_app", "start_server"]
