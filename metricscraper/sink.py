"""Metric sinks that forward samples to a time-series database."""

from __future__ import annotations

import abc
import queue
import socket
import threading
from collections.abc import Iterator
from typing import TextIO

import dns.resolver

from metricscraper.config import Config
from metricscraper.logutil import debug_log
from metricscraper.metric import Metric
from metricscraper.opentsdb import OpentsdbFormatter

_CLOSED = object()


def resolve_srv(name: str) -> tuple[str, int]:
    """Look up an SRV record and return the preferred (target, port)."""
    answers = list(dns.resolver.resolve(name, "SRV"))
    if not answers:
        raise LookupError(f"no SRV records for {name!r}")
    best = min(answers, key=lambda record: (record.priority, -record.weight))
    return str(best.target), int(best.port)


class Sink(abc.ABC):
    """A destination that accepts metrics and ships them somewhere."""

    @abc.abstractmethod
    def put(self, metric: Metric) -> None:
        """Queue a metric for sending."""

    @abc.abstractmethod
    def close(self) -> None:
        """Signal that no more metrics will be queued."""

    @abc.abstractmethod
    def send(self) -> int:
        """Ship queued metrics until the sink is closed."""

    @abc.abstractmethod
    def add_client(self) -> None:
        """Register a producer."""

    @abc.abstractmethod
    def remove_client(self) -> None:
        """Unregister a producer."""

    @abc.abstractmethod
    def wait(self) -> None:
        """Block until all producers are gone, then close the sink."""

    @abc.abstractmethod
    def client_count(self) -> int:
        """Return the number of registered producers."""


class OpentsdbSink(Sink):
    """Sends metrics to an OpenTSDB server over its telnet-style protocol."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._clients = 0
        self._cond = threading.Condition()
        self._formatter = OpentsdbFormatter()

    @classmethod
    def from_config(cls, config: Config) -> OpentsdbSink:
        """Create a sink whose endpoint comes from the SRV record config.metric."""
        target, port = resolve_srv(config.metric)
        return cls(f"{target}:{port}")

    def put(self, metric: Metric) -> None:
        with self._lock:
            if self._closed:
                raise ValueError("sink is closed")
            self._queue.put(metric)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                raise ValueError("sink is already closed")
            self._closed = True
            self._queue.put(_CLOSED)

    def _drain(self) -> Iterator[Metric]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def write_metrics(self, stream: TextIO) -> int:
        """Write queued metrics to a text stream until closed; return the count."""
        count = 0
        for metric in self._drain():
            text = self._formatter.string_marshal(metric)
            stream.write(text)
            stream.flush()
            if metric.tags.get("container_name") == "adminserver":
                debug_log("%s %s", metric.metric, metric.tags)
                debug_log(text)
            count += 1
        return count

    def send(self) -> int:
        host, sep, port = self.endpoint.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(f"invalid endpoint {self.endpoint!r}")
        host = host.strip("[]")
        with socket.create_connection((host, int(port))) as conn:
            with conn.makefile("w", encoding="utf-8", newline="") as stream:
                return self.write_metrics(stream)

    def add_client(self) -> None:
        with self._cond:
            self._clients += 1

    def remove_client(self) -> None:
        with self._cond:
            if self._clients == 0:
                raise ValueError("negative client count")
            self._clients -= 1
            self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._clients == 0)
        self.close()

    def client_count(self) -> int:
        with self._cond:
            return self._clients