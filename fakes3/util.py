"""Small helpers for request handling."""

from __future__ import annotations

import re
from typing import BinaryIO

from .errors import ErrorCode, S3Error

_INT = re.compile(r"[+-]?[0-9]+")


def parse_clamped_int(value: str, default: int, minimum: int, maximum: int) -> int:
    """Parse ``value`` as an integer clamped to [minimum, maximum].

    An empty value yields ``default`` (also clamped); an unparsable one
    raises ``InvalidArgument``.
    """
    if value == "":
        result = default
    elif _INT.fullmatch(value):
        result = int(value)
    else:
        raise S3Error(ErrorCode.INVALID_ARGUMENT)
    if result < minimum:
        return minimum
    if result > maximum:
        return maximum
    return result


def read_all(stream: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes from ``stream`` and nothing more.

    Raises ``IncompleteBody`` if the stream is shorter or longer than
    ``size``, and ``EOFError`` if it yields nothing when bytes were expected.
    """
    if size < 0:
        raise ValueError("size must not be negative")
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    data = b"".join(chunks)
    if remaining > 0:
        if not data:
            raise EOFError("unexpected end of stream")
        raise S3Error(ErrorCode.INCOMPLETE_BODY)
    if stream.read():
        raise S3Error(ErrorCode.INCOMPLETE_BODY)
    return data