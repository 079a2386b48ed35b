"""Collection of samples scraped from a single service endpoint."""

from __future__ import annotations

from metricscraper.metric import Metric


class ServiceData:
    """Samples from one service, kept in the order they were scraped."""

    def __init__(self) -> None:
        self._metrics: list[Metric] = []

    @property
    def metrics(self) -> list[Metric]:
        """The registered samples, in registration order."""
        return list(self._metrics)

    def register_metric(self, metric: Metric) -> None:
        """Record a sample."""
        self._metrics.append(metric)