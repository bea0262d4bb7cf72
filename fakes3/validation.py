"""Validation of bucket names and ETags."""

from __future__ import annotations

import ipaddress
import re

from .errors import ErrorCode, S3Error

# Matches both a whole bucket name and each of its period-separated labels.
_BUCKET_NAME = re.compile(r"[a-z0-9][a-z0-9.-]+[a-z0-9]")

_ETAG = re.compile(r'"[a-z0-9]+"')


def _is_ip_address(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True


def validate_bucket_name(name: str) -> str:
    """Check ``name`` against the S3 bucket naming rules and return it.

    Raises ``InvalidBucketName`` when a rule is broken.
    """
    size = len(name.encode("utf-8"))
    if size < 3 or size > 63:
        raise S3Error(
            ErrorCode.INVALID_BUCKET_NAME,
            "bucket name must be >= 3 characters and <= 63",
        )
    if not _BUCKET_NAME.fullmatch(name):
        raise S3Error(
            ErrorCode.INVALID_BUCKET_NAME,
            "bucket must start and end with 'a-z, 0-9', and contain only 'a-z, 0-9, -' in between",
        )
    if _is_ip_address(name):
        raise S3Error(
            ErrorCode.INVALID_BUCKET_NAME,
            "bucket names must not be formatted as an IP address",
        )
    for label in name.split("."):
        if not _BUCKET_NAME.fullmatch(label):
            raise S3Error(
                ErrorCode.INVALID_BUCKET_NAME,
                "label must start and end with 'a-z, 0-9', and contain only 'a-z, 0-9, -' in between",
            )
    return name


def valid_etag(value: str) -> bool:
    """Report whether ``value`` is a quoted lower-case alphanumeric ETag."""
    return _ETAG.fullmatch(value) is not None