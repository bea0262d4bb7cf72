"""Prefix and delimiter matching for bucket listings."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class CommonPrefix:
    """An entry in the common-prefixes part of a listing."""

    prefix: str


@dataclass(frozen=True)
class PrefixMatch:
    """The outcome of matching a key against a :class:`Prefix`."""

    key: str
    # Whether the key belongs in the common prefixes rather than the contents.
    common_prefix: bool = False
    # The longest matched part of the key.
    matched_part: str = ""

    def as_common_prefix(self) -> CommonPrefix:
        return CommonPrefix(prefix=self.matched_part)


def _split(value: str, sep: str) -> list[str]:
    if sep == "":
        return list(value)
    return value.split(sep)


@dataclass(frozen=True)
class Prefix:
    """A listing filter; ``None`` means the part was not given."""

    prefix: str | None = None
    delimiter: str | None = None

    @property
    def has_prefix(self) -> bool:
        return self.prefix is not None

    @property
    def has_delimiter(self) -> bool:
        return self.delimiter is not None

    def file_prefix(self) -> tuple[str, str] | None:
        """Split the prefix into its directory path and remaining part.

        Returns ``None`` unless the delimiter is ``"/"``. Examples::

            foo/bar/  -> ("foo/bar", "")
            foo/bar/b -> ("foo/bar", "b")
            foo/bar   -> ("foo", "bar")
        """
        if self.delimiter != "/":
            return None
        if self.prefix is None:
            return "", ""
        path, sep, remaining = self.prefix.rpartition("/")
        if not sep:
            return "", self.prefix
        return path, remaining

    def match(self, key: str) -> PrefixMatch | None:
        """Match ``key`` the way S3 does; ``None`` if it does not match."""
        if self.prefix is None and self.delimiter is None:
            return PrefixMatch(key=key, matched_part=key)

        prefix = self.prefix or ""
        if self.delimiter is None:
            if key.startswith(prefix):
                return PrefixMatch(key=key, matched_part=prefix)
            return None

        delim = self.delimiter
        key_parts = _split(key.lstrip(delim), delim)
        pre_parts = _split(prefix.lstrip(delim), delim)
        if not pre_parts or len(key_parts) < len(pre_parts):
            return None

        *whole, last = pre_parts
        if key_parts[: len(whole)] != whole:
            return None
        if not key_parts[len(whole)].startswith(last):
            return None

        out = delim.join(key_parts[: len(pre_parts)])
        # A key matching the prefix only up to a delimiter gets it appended.
        if len(key_parts) != len(pre_parts):
            out += delim
        return PrefixMatch(key=key, common_prefix=out != key, matched_part=out)

    def __str__(self) -> str:
        text = f"prefix:{json.dumps(self.prefix or '', ensure_ascii=False)}"
        if self.delimiter is not None:
            text += f", delim:{json.dumps(self.delimiter, ensure_ascii=False)}"
        return text


def _first(query: Mapping[str, str | Sequence[str]], name: str) -> str | None:
    if name not in query:
        return None
    value = query[name]
    if isinstance(value, str):
        return value
    return value[0] if value else ""


def prefix_from_query(query: Mapping[str, str | Sequence[str]]) -> Prefix:
    """Build a Prefix from ``prefix`` and ``delimiter`` query parameters.

    Empty parameters count as absent.
    """
    return Prefix(
        prefix=_first(query, "prefix") or None,
        delimiter=_first(query, "delimiter") or None,
    )


def new_prefix(prefix: str | None, delimiter: str | None) -> Prefix:
    """Build a Prefix from optional prefix and delimiter strings."""
    return Prefix(prefix=prefix, delimiter=delimiter)


def new_folder_prefix(prefix: str) -> Prefix:
    """Build a Prefix that lists ``prefix`` as a "/"-delimited folder."""
    return Prefix(prefix=prefix, delimiter="/")