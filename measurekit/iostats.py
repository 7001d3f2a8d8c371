"""File-like wrappers that count bytes, and adapters from plain callables."""

from __future__ import annotations

from typing import Any, BinaryIO, Callable

__all__ = [
    "CountReader",
    "CountWriter",
    "ReaderFunc",
    "WriterFunc",
    "CloserFunc",
]


class CountReader:
    """Wraps a binary reader and counts how many bytes are read through it."""

    def __init__(self, reader: BinaryIO) -> None:
        self.reader = reader
        self.n = 0

    def read(self, size: int = -1) -> bytes:
        data = self.reader.read(size)
        if data:
            self.n += len(data)
        return data


class CountWriter:
    """Wraps a binary writer and counts how many bytes are written through it."""

    def __init__(self, writer: BinaryIO) -> None:
        self.writer = writer
        self.n = 0

    def write(self, data: bytes) -> int:
        written = self.writer.write(data)
        if written is None:
            written = len(data)
        if written > 0:
            self.n += written
        return written


class ReaderFunc:
    """Turns a callable ``f(size) -> bytes`` into a reader."""

    def __init__(self, func: Callable[[int], bytes]) -> None:
        self.func = func

    def read(self, size: int = -1) -> bytes:
        return self.func(size)


class WriterFunc:
    """Turns a callable ``f(data) -> int`` into a writer."""

    def __init__(self, func: Callable[[bytes], int]) -> None:
        self.func = func

    def write(self, data: bytes) -> int:
        return self.func(data)


class CloserFunc:
    """Turns a callable ``f()`` into an object with a ``close`` method."""

    def __init__(self, func: Callable[[], Any]) -> None:
        self.func = func

    def close(self) -> Any:
        return self.func()