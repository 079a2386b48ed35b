"""Metric samples and parsers for Prometheus-style exposition lines."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from metricscraper.logutil import fatal_log

_TAGGED_RE = re.compile(
    r'(?P<metric>[a-z0-9_]+)\{(?P<tags>[a-z=",-_]+)\} (?P<value>[0-9.+-e]+)'
)
_MACHINE_RE = re.compile(r"(?P<metric>machine_[a-z_]+) (?P<value>[0-9.+-e]+)")


@dataclass
class Metric:
    """A single sample: name, tags, value and a millisecond timestamp."""

    metric: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    value: float = 0.0
    time: int = 0

    def to_dict(self) -> dict:
        """Return the JSON shape of the sample, omitting empty fields."""
        result: dict = {}
        if self.metric:
            result["metric"] = self.metric
        if self.tags:
            result["tags"] = dict(self.tags)
        result["value"] = self.value
        if self.time:
            result["timestamp"] = self.time
        return result


def _parse_float(text: str) -> tuple[float, str | None]:
    """Parse a number, returning the value and an error message if any.

    A malformed number yields 0.0, an overflowing one an infinity.
    """
    error = f'strconv.ParseFloat: parsing "{text}": '
    if "_" in text:
        return 0.0, error + "invalid syntax"
    try:
        value = float(text)
    except ValueError:
        return 0.0, error + "invalid syntax"
    if math.isinf(value):
        return value, error + "value out of range"
    return value, None


def _tagged_value(text: str) -> float:
    value, error = _parse_float(text)
    if error is not None:
        raise ValueError(error)
    return value


def cadvisor_unmarshal(millis: int, line: str) -> Metric:
    """Parse a cAdvisor exposition line.

    Tags without exactly one '=' are skipped. Lines that only match the
    bare machine_* form carry no tags; other lines yield an empty metric.
    """
    metric = Metric(time=millis)
    match = _TAGGED_RE.search(line)
    if match:
        metric.metric = match["metric"]
        metric.value = _tagged_value(match["value"])
        for tag in match["tags"].split(","):
            parts = tag.split("=")
            if len(parts) == 2:
                metric.tags[parts[0]] = parts[1].strip('"')
        return metric

    match = _MACHINE_RE.search(line)
    if match:
        metric.metric = match["metric"]
        value, error = _parse_float(match["value"])
        metric.value = value
        if error is not None:
            fatal_log(error)
    return metric


def service_unmarshal(millis: int, line: str) -> Metric:
    """Parse a service exposition line of the form name{tags} value.

    Every tag must contain '='; anything else raises ValueError.
    """
    metric = Metric(time=millis)
    match = _TAGGED_RE.search(line)
    if match:
        metric.metric = match["metric"]
        metric.value = _tagged_value(match["value"])
        for tag in match["tags"].split(","):
            parts = tag.split("=")
            if len(parts) < 2:
                raise ValueError(f"tag {tag!r} has no value")
            metric.tags[parts[0]] = parts[1].strip('"')
    return metric