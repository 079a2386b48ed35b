# metricscraper

A small daemon that periodically scrapes Prometheus text-format metrics and
forwards them to an OpenTSDB server over its telnet-style `put` protocol.

It supports two kinds of targets:

- **cadvisor** — lists every node in a Kubernetes cluster through the API
  server and scrapes each node's cAdvisor endpoint
  (`http://<node>:10255/metrics/cadvisor`). Samples are sorted into node, pod
  and container data (`metricscraper.cadvisor_data.DataSet`) before the node
  and container metrics are sent.
- **service** — resolves the SRV record named by `disco` to find a single
  service and scrapes `http://<target>:<port>/metrics`.

Only samples that follow a `# HELP` / `# TYPE` header pair are used, and
metrics whose help text ends in "Unix creation timestamp" are skipped.

The OpenTSDB endpoint is found by an SRV lookup of the `metric` setting.

## Installation

```
pip install .
```

## Configuration

The `metric-scraper` command reads a JSON file whose path is given in the
`CONFIG_PATH` environment variable. Every key below except `optionals` is
required; `debug` must be a boolean and the others strings.

```json
{
  "debug": false,
  "kind": "cadvisor",
  "disco": "_metrics._tcp.myservice.example.com",
  "ident": "myservice",
  "deploymentId": "staging",
  "interval": "30s",
  "orch": "kubernetes",
  "metric": "_opentsdb._tcp.example.com",
  "sink": "opentsdb",
  "mode": "deployed",
  "optionals": {
    "deployed": {},
    "development": {"path": "/home/me/.kube/config"}
  }
}
```

- `kind` — `cadvisor` or `service`; anything else is a `ConfigError`.
- `sink` — `opentsdb` is the only sink.
- `interval` — a duration such as `30s`, `1m30s`, `500ms` or `1.5h`
  (see `metricscraper.scraper.parse_duration`).
- `mode` — `deployed` uses the pod's service-account credentials; anything
  else reads the kubeconfig named by `optionals.development.path`, falling
  back to in-cluster credentials when that path is empty.
- `debug` — `true` turns on debug logging.

`metricscraper.config.env_build()` builds the same `Config` from environment
variables (`DEPLOYMENT_ID`, `KIND`, `DISCO`, `ORCH`, `INTERVAL`, `SINK`,
`MODE`, `DEBUG`, `KUBE_CONFIG`) for library use; the command itself reads
only the file.

## Running

```
CONFIG_PATH=/etc/metric-scraper/config.json metric-scraper
```

If the configuration cannot be loaded or the sink cannot be resolved, the
command prints the error and exits with status 1.

While running, a health endpoint is served on port 8765:

```
GET /healthz
{"hostname":"worker-1","metrics_reported":"0","uptime":"12.3"}
```

Other paths answer 404 and other methods on `/healthz` answer 405.

## Using it as a library

```python
from metricscraper.config import file_build
from metricscraper.scraper import Scraper

config = file_build("config.json")
Scraper.from_config(config).scrape()
```

`Scraper.scrape_once()` starts one round of scans and returns the scanning
threads, without starting the sink.

Parsing and formatting helpers can be used on their own:

```python
from metricscraper.metric import service_unmarshal
from metricscraper.opentsdb import OpentsdbFormatter

metric = service_unmarshal(1700000000000, 'http_requests{code="200"} 42')
print(OpentsdbFormatter().string_marshal(metric), end="")
# put http_requests 1700000000000 42.000000 code=200
```

`OpentsdbSink.write_metrics(stream)` writes queued metrics to any text stream,
which is handy for inspecting output without a database.

## Limitations

- OpenTSDB is the only destination; there is no buffering or retry if the
  connection drops.
- The health report's `metrics_reported` is always `"0"`.
- Scans run once per interval whether or not the previous round finished.