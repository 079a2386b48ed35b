"""The scrape loop that ties a target to a sink."""

from __future__ import annotations

import re
import threading
import time
from decimal import Decimal, InvalidOperation

from metricscraper.config import Config, ConfigError
from metricscraper.emitters import Emitter
from metricscraper.logutil import debug_log
from metricscraper.sink import OpentsdbSink, Sink
from metricscraper.targeting import CadvisorTarget, ServiceTarget, Target

_UNITS = {
    "ns": Decimal("0.000000001"),
    "us": Decimal("0.000001"),
    "µs": Decimal("0.000001"),
    "μs": Decimal("0.000001"),
    "ms": Decimal("0.001"),
    "s": Decimal(1),
    "m": Decimal(60),
    "h": Decimal(3600),
}
_COMPONENT_RE = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|h|m|s)")


def parse_duration(text: str) -> float:
    """Parse a duration such as "300ms", "1.5h" or "2h45m" into seconds."""
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise ValueError(f'time: invalid duration "{text}"')
    total = Decimal(0)
    position = 0
    while position < len(rest):
        match = _COMPONENT_RE.match(rest, position)
        if match is None:
            raise ValueError(f'time: invalid duration "{text}"')
        try:
            total += Decimal(match[1]) * _UNITS[match[2]]
        except InvalidOperation as exc:
            raise ValueError(f'time: invalid duration "{text}"') from exc
        position = match.end()
    return float(sign * total)


def build_sink(config: Config) -> Sink:
    """Create the sink named by config.sink."""
    if config.sink == "opentsdb":
        return OpentsdbSink.from_config(config)
    raise ConfigError(f"unknown sink {config.sink!r}")


def build_target(config: Config, sink: Sink) -> Target:
    """Create the target named by config.kind, feeding the given sink."""
    if config.kind == "cadvisor":
        return CadvisorTarget(config, "http", sink)
    if config.kind == "service":
        return ServiceTarget(config, "http", sink)
    raise ConfigError(f"unknown scraper kind {config.kind!r}")


class Scraper:
    """Periodically asks a target for emitters and runs each one."""

    def __init__(self, config: Config, target: Target, sink: Sink) -> None:
        self.config = config
        self.target = target
        self.sink = sink
        self.metrics_reported = 0
        self.emitters: dict[str, Emitter] = {}

    @classmethod
    def from_config(cls, config: Config) -> Scraper:
        """Build the sink and target the configuration asks for."""
        sink = build_sink(config)
        target = build_target(config, sink)
        return cls(config, target, sink)

    def incr_metrics_reported(self) -> None:
        """Count one more reported metric."""
        self.metrics_reported += 1

    def scrape_once(self) -> list[threading.Thread]:
        """Start a scan for every current emitter; return the scanning threads."""
        threads = []
        for emitter in self.target.emitters():
            self.emitters[emitter.name] = emitter
            thread = threading.Thread(
                target=emitter.scan, name=f"scan-{emitter.name}", daemon=True
            )
            thread.start()
            threads.append(thread)
        return threads

    def scrape(self) -> None:
        """Start the sink and scan all emitters once per interval, forever."""
        debug_log("Starting scrape")
        interval = parse_duration(self.config.interval)
        threading.Thread(target=self.sink.send, name="sink", daemon=True).start()
        while True:
            self.scrape_once()
            time.sleep(max(interval, 0.0))