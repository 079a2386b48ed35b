"""Scrape Prometheus-style metrics from cAdvisor or services and forward them to OpenTSDB."""

__version__ = "0.1.0"