import threading
from dataclasses import dataclass
from unittest import mock

import pytest

from metricscraper.config import Config, ConfigError
from metricscraper.scraper import Scraper, build_sink, build_target, parse_duration
from metricscraper.sink import OpentsdbSink
from metricscraper.targeting import CadvisorTarget, ServiceTarget


@dataclass
class SrvRecord:
    priority: int
    weight: int
    target: str
    port: int


class FakeEmitter:
    def __init__(self, name):
        self.name = name
        self.scanned = threading.Event()

    def scan(self):
        self.scanned.set()
        return 0


class FakeTarget:
    def __init__(self, names):
        self.names = names

    def emitters(self):
        return [FakeEmitter(name) for name in self.names]


class Stop(Exception):
    pass


class CountingTarget:
    def __init__(self, limit):
        self.calls = 0
        self.limit = limit

    def emitters(self):
        self.calls += 1
        if self.calls >= self.limit:
            raise Stop()
        return [FakeEmitter(f"e{self.calls}")]


class FakeSink:
    def __init__(self):
        self.sent = threading.Event()

    def send(self):
        self.sent.set()
        return 0


def test_parse_duration_pinned_values():
    assert parse_duration("1h") == 3600.0
    assert parse_duration("0") == 0.0


def test_parse_duration_combinations_agree():
    assert parse_duration("90m") == parse_duration("1h30m")
    assert parse_duration("1500ms") == parse_duration("1.5s")
    assert parse_duration("1000us") == parse_duration("1ms")
    assert parse_duration("1µs") == parse_duration("1000ns")


def test_parse_duration_sign():
    assert parse_duration("-2m") == -parse_duration("2m")
    assert parse_duration("+2m") == parse_duration("2m")


@pytest.mark.parametrize("text", ["", "5", "1x", "abc", "-", ".s", "1h 2m"])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_build_sink_unknown_raises():
    with pytest.raises(ConfigError):
        build_sink(Config(sink="graphite"))


def test_build_sink_opentsdb_resolves_endpoint():
    records = [SrvRecord(0, 1, "tsdb.example.com.", 4242)]
    with mock.patch("dns.resolver.resolve", return_value=records):
        sink = build_sink(Config(sink="opentsdb", metric="_tsdb._tcp.example.com"))
    assert isinstance(sink, OpentsdbSink)
    assert sink.endpoint == "tsdb.example.com.:4242"


def test_build_target_kinds():
    sink = FakeSink()
    cadvisor = build_target(Config(kind="cadvisor"), sink)
    service = build_target(Config(kind="service"), sink)
    assert isinstance(cadvisor, CadvisorTarget) and cadvisor.scheme == "http"
    assert isinstance(service, ServiceTarget) and service.sink is sink


def test_build_target_unknown_raises():
    with pytest.raises(ConfigError):
        build_target(Config(kind="other"), FakeSink())


def test_from_config_wires_sink_and_target():
    records = [SrvRecord(0, 1, "tsdb.example.com.", 4242)]
    config = Config(sink="opentsdb", kind="service", metric="_tsdb._tcp.example.com")
    with mock.patch("dns.resolver.resolve", return_value=records):
        scraper = Scraper.from_config(config)
    assert scraper.target.sink is scraper.sink
    assert scraper.config is config
    assert scraper.metrics_reported == 0


def test_incr_metrics_reported():
    scraper = Scraper(Config(), FakeTarget([]), FakeSink())
    scraper.incr_metrics_reported()
    scraper.incr_metrics_reported()
    assert scraper.metrics_reported == 2


def test_scrape_once_runs_every_emitter():
    scraper = Scraper(Config(), FakeTarget(["a", "b"]), FakeSink())
    threads = scraper.scrape_once()
    for thread in threads:
        thread.join(timeout=5)
    assert sorted(scraper.emitters) == ["a", "b"]
    assert all(e.scanned.is_set() for e in scraper.emitters.values())
    assert len(threads) == 2


def test_scrape_loops_until_target_fails():
    sink = FakeSink()
    target = CountingTarget(limit=3)
    scraper = Scraper(Config(interval="1ms"), target, sink)
    with pytest.raises(Stop):
        scraper.scrape()
    assert target.calls == 3
    assert sorted(scraper.emitters) == ["e1", "e2"]
    assert sink.sent.wait(timeout=5)


def test_scrape_rejects_bad_interval():
    scraper = Scraper(Config(interval="soon"), FakeTarget([]), FakeSink())
    with pytest.raises(ValueError):
        scraper.scrape()