"""InfluxDB line protocol formatting and an HTTP client that sends measures."""

from __future__ import annotations

import json
import logging
import math
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from measurekit.measure import Measure

__all__ = [
    "DEFAULT_ADDRESS",
    "DEFAULT_DATABASE",
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_TIMEOUT",
    "format_measure",
    "InfluxError",
    "ClientConfig",
    "Client",
    "make_url",
    "new_client",
]

DEFAULT_ADDRESS = "localhost:8086"
DEFAULT_DATABASE = "stats"
DEFAULT_BUFFER_SIZE = 2 * 1024 * 1024
DEFAULT_TIMEOUT = 5.0

_MAX_ATTEMPTS = 10
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

logger = logging.getLogger(__name__)

Transport = Callable[[urllib.request.Request, float], "tuple[int, bytes]"]


def _format_float(value: float) -> str:
    """Shortest representation, using an exponent like printf's %g does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    sign = "-" if math.copysign(1.0, value) < 0 else ""
    if value == 0:
        return sign + "0"

    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped
    nd = len(digits)
    dp = nd + exponent
    exp = dp - 1

    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if nd > 1 else "")
        exp_sign = "-" if exp < 0 else "+"
        return f"{sign}{mantissa}e{exp_sign}{abs(exp):02d}"
    if dp <= 0:
        return f"{sign}0.{'0' * -dp}{digits}"
    if dp >= nd:
        return f"{sign}{digits}{'0' * (dp - nd)}"
    return f"{sign}{digits[:dp]}.{digits[dp:]}"


def _format_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, timedelta):
        return _format_float(value.total_seconds())
    raise TypeError(f"unsupported field value type: {type(value).__name__}")


def _unix_nanos(time: datetime | int) -> int:
    if isinstance(time, int):
        return time
    if time.tzinfo is None:
        time = time.astimezone()
    delta = time - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 10**9 + delta.microseconds * 1000


def format_measure(time: datetime | int, measure: Measure) -> str:
    """Return the line protocol representation of ``measure``, newline included.

    ``time`` is a datetime or a count of nanoseconds since the Unix epoch.
    """
    parts = [measure.name]
    parts.extend(f",{t.name}={t.value}" for t in measure.tags)
    for index, field in enumerate(measure.fields):
        parts.append(" " if index == 0 else ",")
        parts.append(f"{field.name or 'value'}={_format_value(field.value)}")
    parts.append(f" {_unix_nanos(time)}\n")
    return "".join(parts)


class InfluxError(Exception):
    """An error reported by the InfluxDB server."""


@dataclass
class ClientConfig:
    """Configuration of an InfluxDB client; empty values take the defaults.

    ``transport`` is called with a prepared request and a timeout in seconds
    and returns the status code and body of the response.
    """

    address: str = ""
    database: str = ""
    buffer_size: int = 0
    timeout: float = 0.0
    transport: Optional[Transport] = None


def _default_transport(request: urllib.request.Request, timeout: float) -> tuple[int, bytes]:
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read()


def _check_response(status: int, body: bytes) -> None:
    if status < 300:
        return
    info = json.loads(body)
    message = info.get("error", "") if isinstance(info, dict) else ""
    raise InfluxError(message)


def make_url(address: str, database: str) -> str:
    """Build the write URL for ``address``, adding ``db`` unless already present."""
    if "://" not in address:
        address = "http://" + address
    parts = urlsplit(address)
    scheme = parts.scheme or "http"
    path = parts.path or "/write"
    query = parts.query
    pairs = parse_qsl(query, keep_blank_values=True)
    if not any(key == "db" for key, _ in pairs):
        pairs.append(("db", database))
        query = urlencode(sorted(pairs, key=lambda kv: kv[0]))
    return urlunsplit((scheme, parts.netloc, path, query, parts.fragment))


class Client:
    """Buffers measures in line protocol and posts them to an InfluxDB server."""

    def __init__(self, config: ClientConfig | None = None) -> None:
        config = config or ClientConfig()
        self.url = make_url(config.address or DEFAULT_ADDRESS, config.database or DEFAULT_DATABASE)
        self.buffer_size = config.buffer_size or DEFAULT_BUFFER_SIZE
        self.timeout = config.timeout or DEFAULT_TIMEOUT
        self.transport: Transport = config.transport or _default_transport
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._pending: list[bytes] = []
        self._pending_size = 0

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def create_db(self, db: str) -> None:
        """Create the database ``db`` on the server; raises on failure."""
        parts = urlsplit(self.url)
        pairs = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "db"]
        url = urlunsplit((parts.scheme, parts.netloc, "/query", urlencode(sorted(pairs)), parts.fragment))
        body = f"q=CREATE DATABASE {json.dumps(db)}".encode()
        request = urllib.request.Request(
            url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        status, response = self.transport(request, self.timeout)
        _check_response(status, response)

    def handle_measures(self, time: datetime | int, *measures: Measure) -> None:
        chunk = "".join(format_measure(time, m) for m in measures).encode()
        if not chunk:
            return
        batches: list[bytes] = []
        with self._lock:
            if self._pending and self._pending_size + len(chunk) > self.buffer_size:
                batches.append(self._take())
            self._pending.append(chunk)
            self._pending_size += len(chunk)
            if self._pending_size >= self.buffer_size:
                batches.append(self._take())
        for batch in batches:
            self._send(batch)

    def flush(self) -> None:
        with self._lock:
            batch = self._take()
        if batch:
            self._send(batch)

    def close(self) -> None:
        """Stop retrying failed sends and flush what is buffered."""
        self._done.set()
        self.flush()

    def _take(self) -> bytes:
        batch = b"".join(self._pending)
        self._pending = []
        self._pending_size = 0
        return batch

    def _send(self, data: bytes) -> None:
        for attempt in range(_MAX_ATTEMPTS):
            if attempt and self._done.wait(self.timeout):
                logger.warning("giving up sending %d bytes: client closed", len(data))
                return
            request = urllib.request.Request(self.url, data=data, method="POST")
            try:
                status, body = self.transport(request, self.timeout)
            except OSError as exc:
                logger.warning("%s", exc)
                continue
            try:
                _check_response(status, body)
            except (InfluxError, ValueError) as exc:
                logger.warning("POST %s: %d: %s", self.url, status, exc)
                continue
            return


def new_client(address: str) -> Client:
    """Create a client sending to the server at ``address`` with default settings."""
    return Client(ClientConfig(address=address))