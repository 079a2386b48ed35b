"""Emitters that scrape an exposition endpoint and feed a sink."""

from __future__ import annotations

import abc
import time
import warnings
from collections.abc import Iterator

import requests

from metricscraper.cadvisor_data import DataSet
from metricscraper.config import Config
from metricscraper.logutil import debug_log, error_log
from metricscraper.metric import Metric, cadvisor_unmarshal, service_unmarshal
from metricscraper.service_data import ServiceData
from metricscraper.sink import Sink

_CADVISOR_PORT = "10255"


def _split_lines(text: str) -> Iterator[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    for line in lines:
        yield line[:-1] if line.endswith("\r") else line


def iter_sample_lines(text: str) -> Iterator[str]:
    """Yield the sample lines that follow a wanted HELP/TYPE header pair.

    Metrics whose HELP text ends in "Unix creation timestamp" are skipped.
    """
    new_metric = False
    got_type = False
    for line in _split_lines(text):
        if line.startswith("# HELP "):
            got_type = False
            if not line.endswith("Unix creation timestamp"):
                new_metric = True
        elif new_metric:
            if line.startswith("# TYPE "):
                new_metric = False
                got_type = True
        elif got_type:
            yield line


def fetch(url: str) -> str:
    """Fetch a URL without certificate checks and return the body as text."""
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message="Unverified HTTPS request")
        response = requests.get(url, verify=False)
    try:
        return response.content.decode("utf-8", errors="replace")
    finally:
        response.close()


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


class Emitter(abc.ABC):
    """Scrapes one endpoint and pushes the resulting metrics into a sink."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """A name identifying what this emitter scrapes."""

    @abc.abstractmethod
    def parse_line(self, timestamp: int, line: str) -> Metric:
        """Turn one sample line into a metric."""

    @abc.abstractmethod
    def process(self, text: str) -> int:
        """Parse an exposition body and send its metrics; return the count sent."""

    @abc.abstractmethod
    def scan(self) -> int:
        """Fetch the endpoint and process it; return the count sent."""


class CadvisorEmitter(Emitter):
    """Scrapes the cAdvisor endpoint of one cluster node."""

    def __init__(self, sink: Sink, config: Config, node_name: str) -> None:
        self.url = f"http://{node_name}:{_CADVISOR_PORT}/metrics/cadvisor"
        self.sink = sink
        self.config = config
        self.node_name = node_name
        self.data = DataSet(node_name)

    @property
    def name(self) -> str:
        return self.node_name

    def parse_line(self, timestamp: int, line: str) -> Metric:
        metric = cadvisor_unmarshal(timestamp, line)
        if not metric.tags:
            metric.tags = {}
        return metric

    def process(self, text: str) -> int:
        for line in iter_sample_lines(text):
            metric = self.parse_line(_now_millis(), line)
            metric.tags["node"] = self.node_name
            self.data.register_metric(metric)

        sent = 0
        for owner in (*self.data.nodes.values(), *self.data.containers.values()):
            for metric in owner.metrics.values():
                self.sink.put(metric)
                sent += 1
        return sent

    def scan(self) -> int:
        debug_log("Starting scan on %s", self.node_name)
        try:
            body = fetch(self.url)
        except requests.RequestException as exc:
            error_log(str(exc))
            return 0
        return self.process(body)


class ServiceEmitter(Emitter):
    """Scrapes a single service's metrics endpoint."""

    def __init__(self, sink: Sink, config: Config, url: str, ident_tag: str) -> None:
        self.url = url
        self.ident_tag = ident_tag
        self.sink = sink
        self.config = config
        self.data = ServiceData()

    @property
    def name(self) -> str:
        return self.ident_tag

    def parse_line(self, timestamp: int, line: str) -> Metric:
        return service_unmarshal(timestamp, line)

    def process(self, text: str) -> int:
        debug_log("About to scan file")
        for line in iter_sample_lines(text):
            self.data.register_metric(self.parse_line(_now_millis(), line))
        sent = 0
        for metric in self.data.metrics:
            self.sink.put(metric)
            sent += 1
        return sent

    def scan(self) -> int:
        debug_log("Starting scan")
        return self.process(fetch(self.url))