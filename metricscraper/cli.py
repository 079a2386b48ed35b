"""Command-line entry point: health endpoint plus the scrape loop."""

from __future__ import annotations

import argparse
import json
import logging
import os
import socket
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

import dns.exception

from metricscraper.config import ConfigError, file_build
from metricscraper.logutil import Level, debug_log, set_level
from metricscraper.scraper import Scraper

HEALTH_PORT = 8765

_START_TIME = time.monotonic()


def health_payload(start_time: float, now: float) -> dict[str, str]:
    """Return the health report for a process started at start_time."""
    return {
        "hostname": socket.gethostname(),
        "metrics_reported": "0",
        "uptime": f"{now - start_time:.1f}",
    }


class _HealthServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, handler, start_time: float) -> None:
        super().__init__(address, handler)
        self.start_time = start_time


class HealthHandler(BaseHTTPRequestHandler):
    """Serves GET /healthz with a small JSON status report."""

    def _reply(self, status: int, body: bytes, content_type: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _route(self) -> None:
        if urlsplit(self.path).path != "/healthz":
            self._reply(404, b"404 page not found\n", "text/plain; charset=utf-8")
            return
        if self.command != "GET":
            self._reply(405, b"", "text/plain; charset=utf-8")
            return
        payload = health_payload(self.server.start_time, time.monotonic())
        body = (json.dumps(payload, sort_keys=True, separators=(",", ":")) + "\n").encode()
        self._reply(200, body, "text/plain; charset=utf-8")

    do_GET = _route
    do_POST = _route
    do_PUT = _route
    do_DELETE = _route
    do_PATCH = _route
    do_HEAD = _route

    def log_message(self, format: str, *args) -> None:
        debug_log(format, *args)


def make_health_server(address: tuple[str, int], start_time: float) -> ThreadingHTTPServer:
    """Bind a health server to address; serving is left to the caller."""
    return _HealthServer(address, HealthHandler, start_time)


def main(argv: list[str] | None = None) -> int:
    """Load the configuration named by CONFIG_PATH and scrape forever."""
    parser = argparse.ArgumentParser(
        prog="metric-scraper",
        description="Scrape metrics and forward them to a time-series database. "
        "The configuration file is named by the CONFIG_PATH environment variable.",
    )
    parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG, format="%(asctime)s [%(levelname)s] %(message)s"
    )

    try:
        config = file_build(os.environ.get("CONFIG_PATH", ""))
        if config.debug:
            set_level(Level.DEBUG)
        scraper = Scraper.from_config(config)
        server = make_health_server(("", HEALTH_PORT), _START_TIME)
    except (ConfigError, OSError, LookupError, dns.exception.DNSException) as exc:
        print(f"metric-scraper: {exc}", file=sys.stderr)
        return 1

    threading.Thread(target=server.serve_forever, name="healthz", daemon=True).start()
    try:
        scraper.scrape()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
        server.server_close()
    return 0