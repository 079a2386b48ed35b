"""Scraper configuration, built from the environment or a JSON file."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path


class ConfigError(Exception):
    """Raised when the configuration is missing or malformed."""


@dataclass
class Config:
    """Settings that drive a scraper run."""

    debug: bool = False
    kind: str = ""
    disco: str = ""
    ident: str = ""
    deployment_id: str = ""
    interval: str = ""
    orch: str = ""
    metric: str = ""
    sink: str = ""
    mode: str = ""
    optionals: dict[str, dict[str, str]] = field(default_factory=dict)


_REQUIRED_ENV = (
    ("DEPLOYMENT_ID", "deployment_id", "Must specify DEPLOYMENT_ID env var."),
    ("KIND", "kind", "Must specify scraper KIND env var."),
    ("DISCO", "disco", "Must specify target, DISCO env var."),
    ("ORCH", "orch", "Must specify orch endpoint, ORCH env var."),
    ("INTERVAL", "interval", "Must specify interval, INTERVAL env var."),
    ("SINK", "sink", "Must specify sink, SINK env var."),
)


def env_build(environ: Mapping[str, str] | None = None) -> Config:
    """Build a Config from environment variables."""
    env = os.environ if environ is None else environ
    config = Config(optionals={"deployed": {}, "development": {}})
    config.debug = env.get("DEBUG") == "true"
    for variable, attribute, message in _REQUIRED_ENV:
        value = env.get(variable, "")
        if not value:
            raise ConfigError(message)
        setattr(config, attribute, value)
    config.mode = env.get("MODE", "")
    kube_config = env.get("KUBE_CONFIG", "")
    if kube_config:
        config.optionals["development"]["kubeConfig"] = kube_config
    return config


def _required(data: dict, key: str, kind: type):
    value = data.get(key)
    if not isinstance(value, kind):
        raise ConfigError(
            f"configuration key {key!r} must be a {kind.__name__}, got {value!r}"
        )
    return value


def _optionals(raw) -> dict[str, dict[str, str]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("optionals must be an object of objects")
    result: dict[str, dict[str, str]] = {}
    for section, entries in raw.items():
        if entries is None:
            result[section] = {}
            continue
        if not isinstance(entries, dict):
            raise ConfigError(f"optionals section {section!r} must be an object")
        values: dict[str, str] = {}
        for key, value in entries.items():
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ConfigError(f"optionals value {section}.{key} must be a string")
            values[key] = value
        result[section] = values
    return result


_STRING_KEYS = (
    ("kind", "kind"),
    ("disco", "disco"),
    ("ident", "ident"),
    ("deploymentId", "deployment_id"),
    ("interval", "interval"),
    ("orch", "orch"),
    ("metric", "metric"),
    ("sink", "sink"),
    ("mode", "mode"),
)


def file_build(path: str | os.PathLike) -> Config:
    """Build a Config from the JSON object at the start of a file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(str(exc)) from exc
    try:
        data, _ = json.JSONDecoder().raw_decode(text.lstrip())
    except json.JSONDecodeError as exc:
        raise ConfigError(str(exc)) from exc
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object")

    config = Config(debug=_required(data, "debug", bool))
    for key, attribute in _STRING_KEYS:
        setattr(config, attribute, _required(data, key, str))
    config.optionals = _optionals(data.get("optionals"))
    return config