# httpscaler

Core logic for an external autoscaler that scales HTTP workloads by the
number of requests waiting on them.

A fleet of interceptors each keeps a count of pending requests per host.
This package asks every interceptor behind a service for its counts, adds
them together and answers the questions an autoscaler asks:

- is this workload active (does it have any pending requests)?
- what is its metric name and target size?
- what is its current metric value?

## Installation

```
pip install httpscaler
```

To run the test suite:

```
pip install "httpscaler[test]"
pytest
```

## Modules

- `httpscaler.config`: `ScalerConfig.from_env(environ)` reads the scaler's
  settings from environment variables (the process environment when
  `environ` is omitted), fills in defaults, and raises `ConfigError` when a
  required setting is missing or a value is malformed. The required settings
  are `KEDA_HTTP_SCALER_TARGET_ADMIN_NAMESPACE`,
  `KEDA_HTTP_SCALER_TARGET_ADMIN_SERVICE`,
  `KEDA_HTTP_SCALER_TARGET_ADMIN_DEPLOYMENT` and
  `KEDA_HTTP_SCALER_TARGET_ADMIN_PORT`. `parse_duration("500ms")` reads
  duration strings such as `60m`, `1h30m` or `-2.5s` into a `timedelta`.
  `stream_interval_from_env(environ)` gives the interval for streamed
  activity checks from `KEDA_HTTP_SCALER_STREAM_INTERVAL_MS`, falling back
  to 200 ms when it is unset or not an integer.
- `httpscaler.naming`: `NamespacedName` (printed as `namespace/name`),
  `escape_string(s)`, which replaces every character other than `-`, `.`,
  digits and ASCII letters with `_` followed by its UTF-8 bytes in hex, and
  `metric_name(...)`, which gives names such as `http-default_002Fapp`.
- `httpscaler.queue_pinger`: `fetch_counts(...)` asks every interceptor
  behind a service for its per-host counts, concurrently, and returns the
  per-host totals and their sum. `QueuePinger` does a first fetch when it is
  created and keeps the results; `counts()`, `aggregate_count` and
  `last_ping_time` read them, `fetch_and_save_counts()` refreshes them, and
  `start(tick_interval, endpoint_events, stop_event)` refreshes them on a
  timer and whenever an item arrives on the `endpoint_events` queue, until
  `stop_event` is set. Failures raise `QueuePingerError`.
- `httpscaler.handlers`: `ScalerHandler` answers `ping`, `is_active`,
  `stream_is_active`, `get_metric_spec` and `get_metrics` for a
  `ScaledObjectRef`, returning lists of `MetricSpec` and `MetricValue`
  records and raising `ScalerError` on failure. When a ref's
  `scaler_metadata` holds `interceptorTargetPendingRequests`, the handler
  uses that target when the object cannot be looked up, and reports the sum
  of all counts when the object itself has none.

## Plugging in

The package does no I/O of its own; you supply the functions it calls:

- `get_endpoints(namespace, service_name)` returns the addresses of the
  interceptors behind the service.
- `get_counts(url)` returns a mapping of host to pending count served at
  `url`, which has the form `http://<address>:<admin_port>`.
- `lookup(namespace, name)` returns the object's target pending requests,
  or `None` to use the default of 100, and raises when there is no such
  object.

## Example

```python
from httpscaler.handlers import ScalerHandler, ScaledObjectRef
from httpscaler.queue_pinger import QueuePinger

def get_endpoints(namespace, service):
    return ["10.0.0.5", "10.0.0.6"]

def get_counts(url):
    return {"default/app": 3}

pinger = QueuePinger(get_endpoints, get_counts, "keda", "interceptor-admin",
                     "interceptor", "9090")
handler = ScalerHandler(pinger, lookup=lambda ns, name: None,
                        default_target_metric=100)

ref = ScaledObjectRef(namespace="default", name="app")
print(handler.is_active(ref))        # True
print(handler.get_metrics(ref))      # [MetricValue(metric_name='http-default_002Fapp', metric_value=6)]
print(handler.get_metric_spec(ref))  # [MetricSpec(metric_name='http-default_002Fapp', target_size=100)]
```

## What this package does not do

It has no command to run and no network server: it does not serve the
scaler operations over gRPC, does not serve health checks, and does not
talk to a cluster to find interceptor endpoints or scaled objects. Those
are left to the functions you pass in and to whatever program hosts
`ScalerHandler`.