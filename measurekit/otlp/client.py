"""Clients that export metrics requests to an OpenTelemetry collector."""

from __future__ import annotations

import urllib.error
import urllib.request
from typing import Callable, Optional, Protocol, runtime_checkable

from measurekit.otlp.proto import ExportMetricsServiceRequest

__all__ = ["Client", "HTTPClient", "new_request"]

Transport = Callable[[urllib.request.Request, Optional[float]], "tuple[int, bytes]"]


@runtime_checkable
class Client(Protocol):
    """Something that delivers export requests; raises on failure."""

    def handle(self, request: ExportMetricsServiceRequest) -> None: ...


def _default_transport(
    request: urllib.request.Request, timeout: Optional[float]
) -> tuple[int, bytes]:
    try:
        if timeout is None:
            response = urllib.request.urlopen(request)
        else:
            response = urllib.request.urlopen(request, timeout=timeout)
        with response:
            return response.status, response.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read()


def new_request(endpoint: str, data: bytes) -> urllib.request.Request:
    """Build the POST request carrying encoded metrics to ``endpoint``."""
    return urllib.request.Request(
        endpoint,
        data=data,
        method="POST",
        headers={
            "Content-Type": "application/x-protobuf",
            "User-Agent": "measurekit",
        },
    )


class HTTPClient:
    """Exports metrics to a collector over HTTP, without retrying failures.

    ``transport`` is called with the prepared request and the timeout and
    returns the status code and body of the response.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: Optional[float] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.transport: Transport = transport or _default_transport

    def handle(self, request: ExportMetricsServiceRequest) -> None:
        data = request.encode()
        try:
            http_request = new_request(self.endpoint, data)
        except ValueError as exc:
            raise ValueError(f"failed to create HTTP request: {exc}") from exc

        status, body = self.transport(http_request, self.timeout)
        if status != 200:
            raise RuntimeError(
                f"failed to send data to collector, code: {status}, "
                f"error: {body.decode(errors='replace')}"
            )