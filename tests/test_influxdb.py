from datetime import datetime, timedelta, timezone

import pytest

from measurekit.influxdb import (
    DEFAULT_ADDRESS,
    Client,
    ClientConfig,
    InfluxError,
    format_measure,
    make_url,
    new_client,
)
from measurekit.measure import Field, Measure, Tag

TIMESTAMP_NS = 1500780960123456789


class FakeTransport:
    def __init__(self, responses=None):
        self.requests = []
        self.responses = list(responses or [])

    def __call__(self, request, timeout):
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return 204, b""


@pytest.mark.parametrize(
    "measure, expected",
    [
        (
            Measure(name="request", fields=[Field("count", 5)]),
            "request count=5 1500780960123456789",
        ),
        (
            Measure(
                name="request",
                fields=[Field("count", 5), Field("rtt", timedelta(milliseconds=100))],
                tags=[Tag("answer", "42"), Tag("hello", "world")],
            ),
            "request,answer=42,hello=world count=5,rtt=0.1 1500780960123456789",
        ),
    ],
)
def test_format_measure(measure, expected):
    assert format_measure(TIMESTAMP_NS, measure) == expected + "\n"


def test_format_measure_with_datetime():
    when = datetime(2017, 7, 23, 3, 36, 0, 123456, tzinfo=timezone.utc)
    measure = Measure(name="request", fields=[Field("count", 5)])
    assert format_measure(when, measure) == "request count=5 1500780960123456000\n"


def test_format_measure_empty_field_name_and_bools():
    measure = Measure(name="m", fields=[Field("", True), Field("b", False), Field("n", None)])
    assert format_measure(0, measure) == "m value=true,b=false,n= 0\n"


@pytest.mark.parametrize(
    "value, text",
    [(0.5, "0.5"), (5.0, "5"), (100000.0, "100000"), (1e6, "1e+06"), (123456789.0, "1.23456789e+08"), (1e-5, "1e-05"), (-2.25, "-2.25")],
)
def test_format_measure_floats(value, text):
    measure = Measure(name="m", fields=[Field("f", value)])
    assert format_measure(1, measure) == f"m f={text} 1\n"


def test_format_measure_rejects_unknown_type():
    with pytest.raises(TypeError):
        format_measure(1, Measure(name="m", fields=[Field("f", "text")]))


def test_make_url_defaults():
    assert make_url("localhost:8086", "stats") == "http://localhost:8086/write?db=stats"


def test_make_url_keeps_existing_db():
    assert make_url("https://example.com/api?db=mine", "stats") == "https://example.com/api?db=mine"


def test_new_client_uses_address():
    client = new_client("example.com:9999")
    assert client.url == "http://example.com:9999/write?db=stats"


def test_client_defaults():
    client = Client()
    assert client.url == make_url(DEFAULT_ADDRESS, "stats")
    assert client.buffer_size == 2 * 1024 * 1024
    assert client.timeout == 5.0


def test_create_db():
    transport = FakeTransport()
    client = Client(ClientConfig(database="test-db", transport=transport))
    client.create_db("test-db")
    request = transport.requests[0]
    assert request.full_url == "http://localhost:8086/query"
    assert request.get_method() == "POST"
    assert request.data == b'q=CREATE DATABASE "test-db"'


def test_create_db_error():
    transport = FakeTransport([(400, b'{"error": "bad query"}')])
    client = Client(ClientConfig(transport=transport))
    with pytest.raises(InfluxError, match="bad query"):
        client.create_db("x")


def _measure():
    return Measure(
        name="request",
        fields=[Field("count", 5), Field("rtt", timedelta(milliseconds=100))],
        tags=[Tag("answer", "42"), Tag("hello", "world")],
    )


def test_client_flush_sends_buffered_lines():
    transport = FakeTransport()
    client = Client(ClientConfig(database="test-db", transport=transport))
    for _ in range(3):
        client.handle_measures(TIMESTAMP_NS, _measure())
    assert transport.requests == []
    client.flush()
    assert len(transport.requests) == 1
    request = transport.requests[0]
    assert request.full_url == "http://localhost:8086/write?db=test-db"
    line = "request,answer=42,hello=world count=5,rtt=0.1 1500780960123456789\n"
    assert request.data == (line * 3).encode()


def test_client_sends_when_buffer_full():
    transport = FakeTransport()
    client = Client(ClientConfig(buffer_size=10, transport=transport))
    client.handle_measures(TIMESTAMP_NS, _measure())
    assert len(transport.requests) == 1


def test_client_retries_failures():
    transport = FakeTransport([OSError("down"), (500, b'{"error": "oops"}')])
    client = Client(ClientConfig(timeout=0.001, transport=transport))
    client.handle_measures(TIMESTAMP_NS, _measure())
    client.flush()
    assert len(transport.requests) == 3
    assert transport.requests[0].data == transport.requests[2].data


def test_client_close_flushes_and_stops_retrying():
    transport = FakeTransport([OSError("down"), OSError("down")])
    with Client(ClientConfig(timeout=0.001, transport=transport)) as client:
        client.handle_measures(TIMESTAMP_NS, _measure())
    assert len(transport.requests) == 1


def test_client_flush_without_data_sends_nothing():
    transport = FakeTransport()
    client = Client(ClientConfig(transport=transport))
    client.flush()
    assert transport.requests == []