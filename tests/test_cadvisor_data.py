import pytest

from metricscraper.cadvisor_data import DataSet
from metricscraper.metric import Metric


def _root_metric(name="container_memory_usage_bytes", node="node-a"):
    return Metric(
        metric=name,
        tags={
            "container_name": "",
            "id": "/",
            "name": "",
            "image": "",
            "namespace": "",
            "pod_name": "",
            "node": node,
        },
        value=1.0,
        time=5,
    )


def test_new_dataset_is_empty():
    ds = DataSet("node-a")
    assert ds.containers == {}
    assert ds.nodes == {}
    assert ds.pods == {}


def test_container_metric_links_pod_and_drops_id():
    ds = DataSet("node-a")
    metric = Metric(
        metric="container_cpu_usage_seconds_total",
        tags={
            "container_name": "web",
            "pod_name": "web-1",
            "image": "img",
            "name": "k8s_web",
            "id": "/docker/abc",
            "namespace": "default",
        },
        value=2.0,
    )
    ds.register_metric(metric)

    container = ds.containers["web"]
    assert container.metrics["container_cpu_usage_seconds_total"] is metric
    assert container.pod is ds.pods["web-1"]
    assert ds.pods["web-1"].containers["web"] is container
    assert container.image == "img"
    # The name is only recorded while the image is still unknown.
    assert container.name == ""
    assert "id" not in metric.tags
    assert metric.tags["container_name"] == "web"
    assert metric.metric == "container_cpu_usage_seconds_total"


def test_container_name_recorded_when_image_empty():
    ds = DataSet("node-a")
    metric = Metric(
        metric="container_fs_usage_bytes",
        tags={"container_name": "db", "image": "", "name": "k8s_db"},
    )
    ds.register_metric(metric)
    container = ds.containers["db"]
    assert container.name == "k8s_db"
    assert container.image == ""
    assert container.pod is None


def test_pod_sandbox_metric_is_renamed():
    ds = DataSet("node-a")
    metric = Metric(
        metric="container_network_receive_bytes_total",
        tags={"container_name": "POD", "pod_name": "web-1", "id": "/pause"},
    )
    ds.register_metric(metric)

    assert metric.metric == "pod_network_receive_bytes_total"
    assert "container_name" not in metric.tags
    assert "id" not in metric.tags
    assert ds.containers["POD"].metrics["pod_network_receive_bytes_total"] is metric
    assert ds.containers["POD"].pod is ds.pods["web-1"]


def test_container_keeps_first_pod():
    ds = DataSet("node-a")
    ds.register_metric(Metric(metric="container_a", tags={"container_name": "c", "pod_name": "p1"}))
    ds.register_metric(Metric(metric="container_b", tags={"container_name": "c", "pod_name": "p2"}))
    container = ds.containers["c"]
    assert container.pod is ds.pods["p1"]
    assert set(container.metrics) == {"container_a", "container_b"}
    assert set(ds.pods) == {"p1", "p2"}
    assert ds.pods["p2"].containers == {}


def test_root_metric_goes_to_node():
    ds = DataSet("node-a")
    metric = _root_metric()
    ds.register_metric(metric)

    node = ds.nodes["node-a"]
    assert node.name == "node-a"
    assert node.metrics["node_memory_usage_bytes"] is metric
    assert metric.metric == "node_memory_usage_bytes"
    assert metric.tags == {"node": "node-a"}
    assert ds.containers == {}
    assert ds.pods == {}


def test_root_metric_without_node_tag_is_ignored():
    ds = DataSet("node-a")
    metric = _root_metric(node="")
    ds.register_metric(metric)
    assert ds.nodes == {}
    assert metric.metric == "container_memory_usage_bytes"


def test_non_root_empty_container_name_is_ignored():
    ds = DataSet("node-a")
    metric = _root_metric()
    metric.tags["id"] = "/kubepods"
    ds.register_metric(metric)
    assert ds.nodes == {}
    assert ds.containers == {}


def test_machine_cpu_cores_added_to_known_node():
    ds = DataSet("node-a")
    ds.register_metric(_root_metric())
    machine = Metric(metric="machine_cpu_cores", tags={"node": "node-a"}, value=4.0)
    ds.register_metric(machine)
    assert machine.tags == {"node": "node-a", "cpu": "total"}
    assert ds.nodes["node-a"].metrics["machine_cpu_cores"] is machine


def test_machine_memory_bytes_added_without_cpu_tag():
    ds = DataSet("node-a")
    ds.register_metric(_root_metric())
    machine = Metric(metric="machine_memory_bytes", tags={"node": "node-a"}, value=8.0)
    ds.register_metric(machine)
    assert machine.tags == {"node": "node-a"}
    assert ds.nodes["node-a"].metrics["machine_memory_bytes"] is machine


def test_machine_metric_before_node_known_raises():
    ds = DataSet("node-a")
    with pytest.raises(KeyError):
        ds.register_metric(Metric(metric="machine_cpu_cores", tags={"node": "node-a"}))


def test_other_node_only_metric_is_ignored():
    ds = DataSet("node-a")
    metric = Metric(metric="machine_scrape_error", tags={"node": "node-a"})
    ds.register_metric(metric)
    assert ds.nodes == {}
    assert metric.tags == {"node": "node-a"}


def test_pod_only_metric_creates_pod():
    ds = DataSet("node-a")
    metric = Metric(metric="kube_pod_info", tags={"pod_name": "api-7", "node": "node-a"})
    ds.register_metric(metric)
    assert set(ds.pods) == {"api-7"}
    assert ds.pods["api-7"].pod_name == "api-7"
    assert ds.containers == {}