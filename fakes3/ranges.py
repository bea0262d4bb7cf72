"""Byte ranges requested through the Range header."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import ErrorCode, S3Error

RANGE_NO_END = -1

_INT = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class ObjectRange:
    """A resolved, satisfiable byte range of an object."""

    start: int
    length: int

    def headers(self, size: int) -> dict[str, str]:
        """Response headers describing this range within an object of ``size`` bytes."""
        return {
            "Content-Range": f"bytes {self.start}-{self.start + self.length - 1}/{size}",
            "Content-Length": str(self.length),
        }


@dataclass(frozen=True)
class ObjectRangeRequest:
    """A byte range as requested, before the object size is known."""

    start: int = 0
    end: int = 0
    from_end: bool = False

    def resolve(self, size: int) -> ObjectRange:
        """Resolve against an object of ``size`` bytes; raises ``InvalidRange``."""
        if not self.from_end:
            start = self.start
            if self.end == RANGE_NO_END:
                length = size - start
            else:
                length = self.end - start + 1
        else:
            # The end counts back from the end of the object.
            start = size - self.end
            length = size - start

        if start < 0 or length < 0 or start >= size:
            raise S3Error(ErrorCode.INVALID_RANGE)
        return ObjectRange(start=start, length=min(length, size - start))


def _parse_int(text: str) -> int:
    if not _INT.fullmatch(text):
        raise S3Error(ErrorCode.INVALID_RANGE)
    return int(text)


def parse_range_header(value: str) -> ObjectRangeRequest | None:
    """Parse a single byte range from a Range header; ``None`` if empty.

    Multiple ranges raise ``NotImplemented``; malformed ones ``InvalidRange``.
    """
    if value == "":
        return None
    marker = "bytes="
    if not value.startswith(marker):
        raise S3Error(ErrorCode.INVALID_RANGE)

    ranges = value[len(marker):].split(",")
    if len(ranges) > 1:
        raise S3Error(ErrorCode.NOT_IMPLEMENTED, "multiple ranges not supported")

    spec = ranges[0].strip()
    if not spec or "-" not in spec:
        raise S3Error(ErrorCode.INVALID_RANGE)

    start_text, _, end_text = spec.partition("-")
    start_text, end_text = start_text.strip(), end_text.strip()

    if start_text == "":
        return ObjectRangeRequest(end=_parse_int(end_text), from_end=True)

    start = _parse_int(start_text)
    if start < 0:
        raise S3Error(ErrorCode.INVALID_RANGE)
    if end_text == "":
        return ObjectRangeRequest(start=start, end=RANGE_NO_END)
    end = _parse_int(end_text)
    if start > end:
        raise S3Error(ErrorCode.INVALID_RANGE)
    return ObjectRangeRequest(start=start, end=end)