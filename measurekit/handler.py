"""Handlers that receive measures produced by a program."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Protocol, runtime_checkable

from measurekit.measure import Measure

__all__ = [
    "Handler",
    "Flusher",
    "flush",
    "HandlerFunc",
    "MultiHandler",
    "multi_handler",
    "FilteredHandler",
    "filtered_handler",
    "DiscardHandler",
    "DISCARD",
]


@runtime_checkable
class Handler(Protocol):
    """Something that receives lists of measures taken at a given time.

    Implementations must treat the measures as read-only and must not keep
    references to them after returning.
    """

    def handle_measures(self, time: datetime, *measures: Measure) -> None: ...


@runtime_checkable
class Flusher(Protocol):
    """A handler that buffers data and can be asked to flush it."""

    def flush(self) -> None: ...


def flush(handler: object) -> None:
    """Flush ``handler`` if it supports flushing."""
    if isinstance(handler, Flusher):
        handler.flush()


class HandlerFunc:
    """Adapts a plain callable ``f(time, *measures)`` to the handler interface."""

    def __init__(self, func: Callable[..., None]) -> None:
        self.func = func

    def handle_measures(self, time: datetime, *measures: Measure) -> None:
        self.func(time, *measures)


class MultiHandler:
    """Dispatches measures to every one of a list of handlers."""

    def __init__(self, handlers: Iterable[Handler] = ()) -> None:
        self.handlers = list(handlers)

    def handle_measures(self, time: datetime, *measures: Measure) -> None:
        for handler in self.handlers:
            handler.handle_measures(time, *measures)

    def flush(self) -> None:
        for handler in self.handlers:
            flush(handler)


def multi_handler(*handlers: Handler | None) -> Handler:
    """Combine handlers into one, dropping ``None`` and flattening nested multi-handlers.

    A single remaining handler is returned as is.
    """
    combined: list[Handler] = []
    for handler in handlers:
        if handler is None:
            continue
        if isinstance(handler, MultiHandler):
            combined.extend(handler.handlers)
        else:
            combined.append(handler)
    if len(combined) == 1:
        return combined[0]
    return MultiHandler(combined)


class FilteredHandler:
    """Passes measures through a filter before forwarding them to a handler."""

    def __init__(
        self,
        handler: Handler,
        filter: Callable[[list[Measure]], list[Measure]],
    ) -> None:
        self.handler = handler
        self.filter = filter

    def handle_measures(self, time: datetime, *measures: Measure) -> None:
        self.handler.handle_measures(time, *self.filter(list(measures)))

    def flush(self) -> None:
        flush(self.handler)


def filtered_handler(
    handler: Handler, filter: Callable[[list[Measure]], list[Measure]]
) -> FilteredHandler:
    """Build a handler that applies ``filter`` to measures before forwarding them."""
    return FilteredHandler(handler, filter)


class DiscardHandler:
    """A handler that ignores every measure it receives."""

    def handle_measures(self, time: datetime, *measures: Measure) -> None:
        return None


DISCARD = DiscardHandler()