# measurekit

measurekit describes what an application measures and hands those
measures to backends that format, store or forward them. It uses only
the standard library.

## Measures

`measurekit.measure` defines the data types:

- `Measure` has a `name`, a list of `fields` and a list of `tags`.
  `Measure.clone()` returns a copy whose lists are not shared with the
  original.
- `Field` has a `name`, a `value` and a `type`, a `FieldType`
  (`COUNTER`, `GAUGE` or `HISTOGRAM`; `COUNTER` when not given).
- `Tag` has a `name` and a string `value`.

`make_measures(prefix, value, *tags)` extracts measures from a dataclass
instance, or from a list or tuple of them. Mark the dataclass fields with
`typing.Annotated`:

- `metric(name, type)` marks a field whose value becomes a measure field.
  The type is `"counter"`, `"gauge"`, `"histogram"` or a `FieldType`;
  anything else gives a histogram. Values must be `bool`, `int`, `float`
  or `datetime.timedelta`, otherwise `TypeError` is raised.
- `tag(name)` marks a string field whose value becomes a tag. A tag field
  holding anything other than a string raises `TypeError`.
- A field holding a nested dataclass, or a list of them, is searched in
  turn. The name given to it with `metric(name)` is appended to the
  measure name with a dot. Tags of the enclosing dataclass pass down to
  it, and it may override them.

Each dataclass with at least one metric field yields one measure. Its
tags, together with the tags passed as arguments, come out sorted by
name.

```python
from dataclasses import dataclass
from typing import Annotated

from measurekit.measure import Tag, make_measures, metric, tag


@dataclass
class Requests:
    count: Annotated[int, metric("count", "counter")] = 0
    host: Annotated[str, tag("host")] = ""


make_measures("http", Requests(count=3, host="web-1"), Tag("env", "dev"))
# one Measure named "http" with the field count=3 (a counter)
# and the tags env=dev, host=web-1
```

## Handlers

A handler receives batches of measures through
`handle_measures(time, *measures)`. A handler that buffers data also has
a `flush()` method. `flush(handler)` from `measurekit.handler` flushes any
handler and does nothing when the handler has no `flush()`.

`measurekit.handler` provides:

- `HandlerFunc(func)` wraps a plain callable `func(time, *measures)`.
- `multi_handler(*handlers)` sends every batch to each handler given. It
  skips `None`, flattens nested `MultiHandler` objects, and returns the
  handler itself when only one is left. Flushing it flushes each handler.
- `filtered_handler(handler, filter)` passes each batch, as a list,
  through `filter` and forwards what it returns. Flushing it flushes the
  wrapped handler.
- `DiscardHandler` ignores every batch; `DISCARD` is an instance of it.

```python
from measurekit.handler import HandlerFunc, multi_handler

seen = []
handler = multi_handler(HandlerFunc(lambda time, *measures: seen.extend(measures)))
```

## I/O counters

`measurekit.iostats` provides:

- `CountReader(reader)` counts in `n` the bytes read through it.
- `CountWriter(writer)` counts in `n` the bytes written through it.
- `ReaderFunc`, `WriterFunc` and `CloserFunc` turn plain callables into
  objects with `read`, `write` and `close` methods.

## InfluxDB

`measurekit.influxdb.format_measure(time, measure)` returns the
line-protocol form of a measure, ending with a newline. `time` is a
`datetime` or a number of nanoseconds since the Unix epoch. Durations are
written in seconds, and a field with no name is written as `value`:

```
request,answer=42,hello=world count=5,rtt=0.1 1500780960123456789
```

`Client` is a handler that buffers measures in line protocol and posts
them to the server's write URL. It sends a batch when the buffer reaches
its size limit, on `flush()` and on `close()`. A failed post is logged
and retried, up to ten attempts in all, waiting for the timeout between
attempts; after `close()` it stops waiting and gives up. The client is
also a context manager that closes on exit.

```python
from measurekit.influxdb import new_client

client = new_client("localhost:8086")
client.create_db("stats")   # raises InfluxError if the server refuses
# ... client.handle_measures(time, *measures) ...
client.close()
```

`ClientConfig` holds the settings; empty values take the defaults:

| Setting       | Default          |
|---------------|------------------|
| `address`     | `localhost:8086` |
| `database`    | `stats`          |
| `buffer_size` | 2 MiB            |
| `timeout`     | 5 seconds        |
| `transport`   | `urllib.request` |

A `transport` is called with a prepared `urllib.request.Request` and the
timeout, and returns the status code and body of the response.
`make_url(address, database)` builds the write URL, adding `db` unless
the address already has it.

## OpenTelemetry

`measurekit.otlp.handler.Handler(client, flush_interval, max_metrics, buckets)`
aggregates measures as cumulative metrics:

- Counters are summed.
- Gauges keep the value they were first reported with.
- Histograms count values into buckets whose upper bounds come from
  `buckets`, a mapping from `(measure name, field name)` to bounds, and
  keep the count and sum of values.

A metric is identified by its measure name, field name and tags. At most
`max_metrics` metrics (5000 by default) are kept; the least recently
updated one is dropped when that is exceeded. `flush()` exports the
metrics not yet exported and raises `RuntimeError` when the client fails;
each metric is exported once. When `flush_interval` is positive (10
seconds by default), a background thread flushes on that interval once
the first measures arrive. `close()` stops the thread and flushes; the
handler is also a context manager.

```python
from measurekit.otlp.handler import new_handler

handler = new_handler("http://localhost:4318/v1/metrics")
# ... handler.handle_measures(time, *measures) ...
handler.close()
```

`measurekit.otlp.convert.convert_metrics(*metrics)` turns aggregated
metrics into the message types of `measurekit.otlp.proto`, whose
`ExportMetricsServiceRequest.encode()` returns the protobuf wire
encoding. `measurekit.otlp.client.HTTPClient(endpoint, timeout, transport)`
posts it with the content type `application/x-protobuf`, without
retrying, and raises `RuntimeError` on any status other than 200.

## What it does not do

There is no engine or global registry that reports measures for you, and
no ready-made instrumentation of HTTP servers, HTTP clients or network
connections: your code builds the measures and calls `handle_measures`
on a handler itself. There is no command-line program.

## Running the tests

```
pip install -e ".[test]"
pytest
```