from metricscraper.metric import Metric
from metricscraper.service_data import ServiceData


def test_starts_empty():
    assert ServiceData().metrics == []


def test_register_keeps_order_and_identity():
    data = ServiceData()
    first = Metric(metric="http_requests_total", tags={"code": "200"}, value=3.0)
    second = Metric(metric="http_errors_total", tags={"code": "500"}, value=1.0)
    data.register_metric(first)
    data.register_metric(second)
    metrics = data.metrics
    assert len(metrics) == 2
    assert metrics[0] is first
    assert metrics[1] is second


def test_duplicates_are_kept():
    data = ServiceData()
    sample = Metric(metric="up", value=1.0)
    data.register_metric(sample)
    data.register_metric(sample)
    assert data.metrics == [sample, sample]


def test_returned_list_does_not_alias_storage():
    data = ServiceData()
    data.register_metric(Metric(metric="up"))
    snapshot = data.metrics
    snapshot.clear()
    assert len(data.metrics) == 1


def test_instances_are_independent():
    a = ServiceData()
    b = ServiceData()
    a.register_metric(Metric(metric="up"))
    assert b.metrics == []
    assert len(a.metrics) == 1