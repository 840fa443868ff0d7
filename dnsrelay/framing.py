"""Length-prefixed DNS message framing used over stream transports."""

from __future__ import annotations

from typing import BinaryIO

MAX_MSG_SIZE = 65535


class MessageTooLargeError(ValueError):
    """A DNS message is larger than 64 KiB."""

    def __init__(self, message: str = "dns message is too large") -> None:
        super().__init__(message)


def add_prefix(data: bytes) -> bytes:
    """Return data preceded by its two-byte big-endian length."""
    if len(data) > MAX_MSG_SIZE:
        raise MessageTooLargeError()

    return len(data).to_bytes(2, "big") + bytes(data)


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise EOFError(f"reading {what}: unexpected end of stream")
        chunks.append(chunk)
        remaining -= len(chunk)

    return b"".join(chunks)


def read_prefixed(stream: BinaryIO) -> bytes:
    """Read one length-prefixed DNS message from stream.

    Raises EOFError if the stream ends early.
    """
    length = int.from_bytes(_read_exact(stream, 2, "len"), "big")
    if length > MAX_MSG_SIZE:
        raise MessageTooLargeError()

    return _read_exact(stream, length, "msg")


def write_prefixed(data: bytes, stream: BinaryIO) -> None:
    """Write data to stream preceded by its two-byte length."""
    stream.write(add_prefix(data))