"""HTTP endpoint Prometheus scrapes.

``make_app(registry, telemetry_path)`` returns a WSGI app:

    GET <telemetry_path>   registry in the Prometheus text exposition format
    GET /healthz           "ok" (process liveness only; no API call)
    anything else          404

``serve(app, host, port)`` runs it on a threading wsgiref server until
SIGINT or SIGTERM.  Each request scrapes the ecobee API synchronously.
"""

from __future__ import annotations

import signal
from collections.abc import Callable, Iterable
from socketserver import ThreadingMixIn
from threading import Thread
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from ecobee_exporter.logging import get_logger

_log = get_logger(__name__)

WsgiApp = Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True
    allow_reuse_address = True


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        return


def make_app(registry: CollectorRegistry, telemetry_path: str = "/metrics") -> WsgiApp:
    def app(environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "")
        if path == telemetry_path:
            output = generate_latest(registry)
            start_response("200 OK", [("Content-Type", CONTENT_TYPE_LATEST)])
            return [output]
        if path == "/healthz":
            start_response("200 OK", [("Content-Type", "text/plain")])
            return [b"ok"]
        start_response("404 Not Found", [("Content-Type", "text/plain")])
        return [b"not found"]

    return app


def serve(app: WsgiApp, host: str, port: int) -> None:
    """Serve *app* until interrupted."""
    httpd = make_server(host, port, app, server_class=ThreadingWSGIServer, handler_class=_QuietHandler)

    def _stop(*_: object) -> None:
        # shutdown() blocks until serve_forever returns, so it cannot run on the serving thread.
        Thread(target=httpd.shutdown, daemon=True).start()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)

    _log.info("listening", address=host or "0.0.0.0", port=httpd.server_port)
    try:
        httpd.serve_forever()
    finally:
        httpd.server_close()
        _log.info("server stopped")
