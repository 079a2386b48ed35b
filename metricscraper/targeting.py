"""Discovery of the endpoints a scraper should visit."""

from __future__ import annotations

import abc
import base64
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import requests
import yaml

from metricscraper.config import Config, ConfigError
from metricscraper.emitters import CadvisorEmitter, Emitter, ServiceEmitter
from metricscraper.sink import Sink, resolve_srv

_SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


def _new_session() -> requests.Session:
    return requests.Session()


def _materialize(encoded: str, suffix: str) -> str:
    """Write base64 data from a kubeconfig to a private file and return its path."""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except ValueError as exc:
        raise ConfigError(f"invalid base64 data in kubeconfig: {exc}") from exc
    handle, name = tempfile.mkstemp(prefix="metricscraper-", suffix=suffix)
    with os.fdopen(handle, "wb") as stream:
        stream.write(raw)
    return name


def _resolve(base: Path, value: str) -> str:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return str(path)


def _named(entries: Any, name: Any, kind: str) -> dict:
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            value = entry.get(kind) or {}
            if not isinstance(value, dict):
                raise ConfigError(f"kubeconfig {kind} {name!r} is malformed")
            return value
    raise ConfigError(f"kubeconfig has no {kind} named {name!r}")


@dataclass
class KubeConnection:
    """Where and how to reach a Kubernetes API server."""

    server: str
    token: str | None = None
    verify: bool | str = True
    cert: tuple[str, str] | str | None = None
    session: requests.Session = field(
        default_factory=_new_session, repr=False, compare=False
    )

    @classmethod
    def in_cluster(cls) -> KubeConnection:
        """Build a connection from the pod's service account."""
        host = os.environ.get("KUBERNETES_SERVICE_HOST", "")
        port = os.environ.get("KUBERNETES_SERVICE_PORT", "")
        if not host or not port:
            raise ConfigError(
                "unable to load in-cluster configuration, KUBERNETES_SERVICE_HOST"
                " and KUBERNETES_SERVICE_PORT must be defined"
            )
        try:
            token = (_SERVICE_ACCOUNT_DIR / "token").read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(str(exc)) from exc
        if ":" in host:
            host = f"[{host}]"
        ca_path = _SERVICE_ACCOUNT_DIR / "ca.crt"
        verify: bool | str = str(ca_path) if ca_path.is_file() else True
        return cls(server=f"https://{host}:{port}", token=token, verify=verify)

    @classmethod
    def from_kubeconfig(cls, path: str) -> KubeConnection:
        """Build a connection from the current context of a kubeconfig file.

        An empty path falls back to the in-cluster configuration.
        """
        if not path:
            return cls.in_cluster()
        file_path = Path(path).expanduser()
        base = file_path.parent
        try:
            data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(str(exc)) from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid kubeconfig: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("kubeconfig must be a mapping")

        context_name = data.get("current-context")
        if not context_name:
            raise ConfigError("kubeconfig has no current-context")
        context = _named(data.get("contexts"), context_name, "context")
        cluster = _named(data.get("clusters"), context.get("cluster"), "cluster")
        user_name = context.get("user")
        user = _named(data.get("users"), user_name, "user") if user_name else {}

        server = cluster.get("server")
        if not server:
            raise ConfigError("kubeconfig cluster has no server")

        verify: bool | str
        if cluster.get("insecure-skip-tls-verify"):
            verify = False
        elif cluster.get("certificate-authority-data"):
            verify = _materialize(cluster["certificate-authority-data"], ".crt")
        elif cluster.get("certificate-authority"):
            verify = _resolve(base, cluster["certificate-authority"])
        else:
            verify = True

        token = user.get("token") or None
        if token is None and user.get("tokenFile"):
            try:
                token = Path(_resolve(base, user["tokenFile"])).read_text(
                    encoding="utf-8"
                ).strip()
            except OSError as exc:
                raise ConfigError(str(exc)) from exc

        if user.get("client-certificate-data"):
            cert_path: str | None = _materialize(user["client-certificate-data"], ".crt")
        elif user.get("client-certificate"):
            cert_path = _resolve(base, user["client-certificate"])
        else:
            cert_path = None
        if user.get("client-key-data"):
            key_path: str | None = _materialize(user["client-key-data"], ".key")
        elif user.get("client-key"):
            key_path = _resolve(base, user["client-key"])
        else:
            key_path = None

        cert: tuple[str, str] | str | None
        if cert_path and key_path:
            cert = (cert_path, key_path)
        else:
            cert = cert_path

        return cls(server=str(server), token=token, verify=verify, cert=cert)

    def list_node_names(self) -> list[str]:
        """Return the names of all nodes in the cluster."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.get(
            f"{self.server.rstrip('/')}/api/v1/nodes",
            headers=headers,
            verify=self.verify,
            cert=self.cert,
        )
        response.raise_for_status()
        items = response.json().get("items") or []
        return [item["metadata"]["name"] for item in items]


class Target(abc.ABC):
    """Knows which endpoints to scrape and builds an emitter for each."""

    def __init__(self, config: Config, scheme: str, sink: Sink) -> None:
        self.config = config
        self.scheme = scheme
        self.sink = sink

    @abc.abstractmethod
    def emitters(self) -> list[Emitter]:
        """Return one emitter per endpoint currently known."""


class CadvisorTarget(Target):
    """Targets the cAdvisor endpoint of every node in the cluster."""

    def kube_connection(self) -> KubeConnection:
        """Connect in-cluster when deployed, otherwise through a kubeconfig."""
        if self.config.mode == "deployed":
            return KubeConnection.in_cluster()
        development = self.config.optionals.get("development") or {}
        return KubeConnection.from_kubeconfig(development.get("path", ""))

    def emitters(self) -> list[Emitter]:
        names = self.kube_connection().list_node_names()
        return [CadvisorEmitter(self.sink, self.config, name) for name in names]


class ServiceTarget(Target):
    """Targets a single service located through an SRV record."""

    def service_endpoint(self) -> str:
        """Return the metrics URL of the service named by config.disco."""
        target, port = resolve_srv(self.config.disco)
        return f"{self.scheme}://{target}:{port}/metrics"

    def emitters(self) -> list[Emitter]:
        return [
            ServiceEmitter(
                self.sink,
                self.config,
                self.service_endpoint(),
                "app=" + self.config.ident,
            )
        ]