"""Shared fixtures: a scripted stand-in for the proxy admin server."""

from __future__ import annotations

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class FakeAdmin:
    """
    Records requests and answers /ready from a script.

    ``ready_statuses`` is consumed one status per GET; once it is empty
    every further GET gets ``final_status``.
    """

    def __init__(self):
        self.ready_statuses: list[int] = []
        self.final_status = 200
        self.ready_requests = 0
        self.shutdown_requests = 0
        # Seconds to hold each /shutdown request before answering
        self.shutdown_delay = 0.0
        self.shutdown_started = threading.Event()
        self.lock = threading.Lock()
        self.server: ThreadingHTTPServer | None = None

    @property
    def port(self) -> int:
        return self.server.server_address[1]

    def next_ready_status(self) -> int:
        with self.lock:
            self.ready_requests += 1
            if self.ready_statuses:
                return self.ready_statuses.pop(0)
            return self.final_status

    def record_shutdown(self) -> None:
        with self.lock:
            self.shutdown_requests += 1


def _make_handler(admin: FakeAdmin):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            if self.path != "/ready":
                self.send_response(404)
                self.end_headers()
                return
            self.send_response(admin.next_ready_status())
            self.send_header("Content-Length", "0")
            self.end_headers()

        def do_POST(self):
            if self.path == "/shutdown":
                admin.shutdown_started.set()
                time.sleep(admin.shutdown_delay)
                admin.record_shutdown()
                self.send_response(200)
            else:
                self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def log_message(self, format, *args):
            pass

    return Handler


@pytest.fixture
def fake_admin():
    admin = FakeAdmin()
    server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(admin))
    server.daemon_threads = True
    admin.server = server
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield admin
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def clean_env(monkeypatch):
    """Make sure no ambient linkerd-await variables leak into a test."""
    for name in (
        "LINKERD_AWAIT_DISABLED",
        "LINKERD_DISABLED",
        "LINKERD_AWAIT_VERBOSE",
        "LINKERD_AWAIT_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
