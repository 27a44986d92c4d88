"""Fake HTTP feed server shared by the market adapter tests."""

from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

import pytest

# -- Fake HTTP server serving canned bodies by path --------------------------


class FakeFeedHandler(BaseHTTPRequestHandler):
    """Serve ``server.routes[path] = (status, body)``; 404 for anything else."""

    def do_GET(self) -> None:
        status, body = self.server.routes.get(self.path, (404, "not found"))
        payload = body.encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, *_args: Any) -> None:
        pass  # silence request logging


@pytest.fixture()
def feed_server():
    """Start a local HTTP server; tests register routes on ``server.routes``.

    The server's base URL is available as ``server.url``.
    """
    server = HTTPServer(("127.0.0.1", 0), FakeFeedHandler)
    server.routes = {}
    server.url = f"http://127.0.0.1:{server.server_address[1]}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
