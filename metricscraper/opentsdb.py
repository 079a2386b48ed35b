"""Rendering of metrics in OpenTSDB's telnet and JSON forms."""

from __future__ import annotations

import json
import math
from decimal import Decimal

from metricscraper.metric import Metric


def format_tags(metric: Metric) -> str:
    """Join the metric's tags as space-separated key=value pairs."""
    return " ".join(f"{key}={value}" for key, value in metric.tags.items())


def clean_text(text: str) -> str:
    """Strip quotes and replace characters OpenTSDB rejects."""
    return (
        text.replace('"', "")
        .replace(",", " ")
        .replace(":", "_")
        .replace("@", "_")
    )


def _fixed(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:f}"


def _json_number(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"json: unsupported value: {value}")
    text = repr(float(value))
    magnitude = abs(value)
    if magnitude == 0 or 1e-6 <= magnitude < 1e21:
        text = format(Decimal(text), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text
    if len(text) >= 4 and text[-4] == "e" and text[-3] == "-" and text[-2] == "0":
        text = text[:-2] + text[-1]
    return text


def _json_string(text: str) -> str:
    encoded = json.dumps(text, ensure_ascii=False)
    for raw, escaped in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        encoded = encoded.replace(raw, escaped)
    return encoded


def _indented_json(metric: Metric) -> str:
    fields = []
    if metric.metric:
        fields.append(f' "metric": {_json_string(metric.metric)}')
    if metric.tags:
        entries = ",\n".join(
            f"  {_json_string(key)}: {_json_string(value)}"
            for key, value in sorted(metric.tags.items())
        )
        fields.append(' "tags": {\n' + entries + "\n }")
    fields.append(f' "value": {_json_number(metric.value)}')
    if metric.time:
        fields.append(f' "timestamp": {metric.time}')
    return "{\n" + ",\n".join(fields) + "\n}"


class OpentsdbFormatter:
    """Formats metrics for an OpenTSDB endpoint."""

    def string_marshal(self, metric: Metric) -> str:
        """Render a telnet-style put line, newline terminated."""
        line = (
            f"put {metric.metric} {metric.time} {_fixed(metric.value)} "
            f"{format_tags(metric)}\n"
        )
        return clean_text(line)

    def json_marshal(self, metric: Metric) -> bytes:
        """Render the metric as indented JSON, then cleaned for OpenTSDB."""
        return clean_text(_indented_json(metric)).encode("utf-8")