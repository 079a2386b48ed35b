"""Grouping of cAdvisor samples by node, pod and container."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from metricscraper.metric import Metric

_CONTAINER_PREFIX_RE = re.compile(r"(?P<container>container)_(?P<rest>.*)")

_NODE_SCOPED_TAGS = ("id", "name", "image", "namespace", "pod_name", "container_name")


@dataclass(eq=False)
class Node:
    """A cluster node and its node-level metrics, keyed by metric name."""

    name: str
    metrics: dict[str, Metric] = field(default_factory=dict)


@dataclass(eq=False)
class Pod:
    """A pod and the containers seen running in it."""

    pod_name: str
    containers: dict[str, Container] = field(default_factory=dict, repr=False)


@dataclass(eq=False)
class Container:
    """A container, the pod it belongs to and its metrics by name."""

    container_name: str
    pod: Pod | None = field(default=None, repr=False)
    image: str = ""
    name: str = ""
    metrics: dict[str, Metric] = field(default_factory=dict)


def _rename(metric_name: str, prefix: str) -> str | None:
    match = _CONTAINER_PREFIX_RE.search(metric_name)
    if match is None:
        return None
    return prefix + match["rest"]


class DataSet:
    """Samples from one node's cAdvisor endpoint, sorted into their owners."""

    def __init__(self, node_name: str) -> None:
        self.node_name = node_name
        self._containers: dict[str, Container] = {}
        self._pods: dict[str, Pod] = {}
        self._nodes: dict[str, Node] = {}

    @property
    def containers(self) -> dict[str, Container]:
        """Containers seen so far, keyed by container name."""
        return self._containers

    @property
    def nodes(self) -> dict[str, Node]:
        """Nodes seen so far, keyed by node name."""
        return self._nodes

    @property
    def pods(self) -> dict[str, Pod]:
        """Pods seen so far, keyed by pod name."""
        return self._pods

    def register_metric(self, metric: Metric) -> None:
        """File a sample under its node, pod or container, adjusting its tags.

        Machine-level samples (tagged only with ``node``) require the node
        to be known already; otherwise KeyError is raised.
        """
        tags = metric.tags
        if len(tags) == 1 and "node" in tags:
            if metric.metric == "machine_cpu_cores":
                tags["cpu"] = "total"
                self._nodes[self.node_name].metrics[metric.metric] = metric
            elif metric.metric == "machine_memory_bytes":
                self._nodes[self.node_name].metrics[metric.metric] = metric
            return

        for key, value in list(tags.items()):
            if key not in tags:
                # Removed by an earlier fix-up during this pass.
                continue
            if key == "container_name":
                self._register_container_metric(value, metric)
            elif key == "pod_name" and value:
                self._fix_up_pod(self._get_or_create_pod(value), metric)

    def _register_container_metric(self, container_name: str, metric: Metric) -> None:
        if container_name:
            if container_name == "POD":
                renamed = _rename(metric.metric, "pod_")
                if renamed is not None:
                    metric.metric = renamed
            container = self._get_or_create_container(container_name)
            self._fix_up_container(container, metric)
            return

        tags = metric.tags
        is_root = (
            tags.get("id") == "/"
            and all(tags.get(key) == "" for key in ("name", "image", "namespace", "pod_name"))
            and bool(tags.get("node"))
        )
        if not is_root:
            return
        renamed = _rename(metric.metric, "node_")
        if renamed is None:
            return
        metric.metric = renamed
        node = self._get_or_create_node(self.node_name)
        self._fix_up_node(node, metric)

    def _fix_up_node(self, node: Node, metric: Metric) -> None:
        for key in _NODE_SCOPED_TAGS:
            metric.tags.pop(key, None)
        node.metrics[metric.metric] = metric

    def _fix_up_container(self, container: Container, metric: Metric) -> None:
        tags = metric.tags
        container.metrics[metric.metric] = metric
        if "pod_name" in tags and container.pod is None:
            pod = self._get_or_create_pod(tags["pod_name"])
            container.pod = pod
            pod.containers[container.container_name] = container
        if "image" in tags and not container.image:
            container.image = tags["image"]
        # The name is only taken while no image is known.
        if "name" in tags and not container.image:
            container.name = tags["name"]
        if tags.get("container_name") == "POD":
            del tags["container_name"]
        tags.pop("id", None)

    def _fix_up_pod(self, pod: Pod, metric: Metric) -> None:
        tags = metric.tags
        if tags.get("container_name") and "pod_name" in tags:
            pod.pod_name = tags["pod_name"]
        if tags.get("container_name") == "POD":
            del tags["container_name"]

    def _get_or_create_pod(self, name: str) -> Pod:
        return self._pods.setdefault(name, Pod(pod_name=name))

    def _get_or_create_container(self, name: str) -> Container:
        return self._containers.setdefault(name, Container(container_name=name))

    def _get_or_create_node(self, name: str) -> Node:
        return self._nodes.setdefault(name, Node(name=name))