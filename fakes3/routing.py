"""Dispatch of S3 requests to the operation they ask for.

URLs break down into two path segments, ``/<bucket>/<object>``. Most of the
core operations are chosen by HTTP method; outside the core, query
subresources such as ``?uploads`` or ``?versioning`` take precedence.
"""

from __future__ import annotations

import base64
import enum
import itertools
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .errors import ErrorCode, S3Error

Query = Mapping[str, "str | Sequence[str]"]


class Operation(enum.Enum):
    """The operations a request can be routed to."""

    LIST_BUCKETS = "ListBuckets"
    NOT_FOUND = "NotFound"

    GET_OBJECT = "GetObject"
    HEAD_OBJECT = "HeadObject"
    CREATE_OBJECT = "CreateObject"
    DELETE_OBJECT = "DeleteObject"
    DELETE_OBJECT_VERSION = "DeleteObjectVersion"

    GET_BUCKET_LOCATION = "GetBucketLocation"
    LIST_BUCKET = "ListBucket"
    CREATE_BUCKET = "CreateBucket"
    DELETE_BUCKET = "DeleteBucket"
    HEAD_BUCKET = "HeadBucket"
    DELETE_MULTI = "DeleteMulti"
    CREATE_OBJECT_BROWSER_UPLOAD = "CreateObjectBrowserUpload"

    GET_BUCKET_VERSIONING = "GetBucketVersioning"
    PUT_BUCKET_VERSIONING = "PutBucketVersioning"
    LIST_BUCKET_VERSIONS = "ListBucketVersions"

    LIST_MULTIPART_UPLOADS = "ListMultipartUploads"
    INITIATE_MULTIPART_UPLOAD = "InitiateMultipartUpload"
    LIST_MULTIPART_UPLOAD_PARTS = "ListMultipartUploadParts"
    PUT_MULTIPART_UPLOAD_PART = "PutMultipartUploadPart"
    ABORT_MULTIPART_UPLOAD = "AbortMultipartUpload"
    COMPLETE_MULTIPART_UPLOAD = "CompleteMultipartUpload"


@dataclass(frozen=True)
class Route:
    """Where a request goes, with the path and query parts it needs."""

    operation: Operation
    bucket: str = ""
    key: str = ""
    upload_id: str | None = None
    version_id: str | None = None


class RequestIDs:
    """A thread-safe source of sequential request IDs."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        """Return the next ID as 16 upper-case hex digits."""
        with self._lock:
            value = next(self._counter)
        return f"{value:016X}"


def request_id_headers(request_id: str) -> dict[str, str]:
    """Response headers identifying a request the way S3 does."""
    # x-amz-id-2 is 48 bytes of random-looking data.
    id2 = base64.b64encode((request_id * 4).encode("ascii")).decode("ascii")
    return {
        "x-amz-id-2": id2,
        "x-amz-request-id": request_id,
        "Server": "AmazonS3",
    }


def _values(query: Query, name: str) -> list[str]:
    if name not in query:
        return []
    value = query[name]
    if isinstance(value, str):
        return [value]
    return list(value)


def _first(query: Query, name: str) -> str:
    values = _values(query, name)
    return values[0] if values else ""


def version_from_query(values: Sequence[str] | None) -> str | None:
    """Return the requested version ID, or ``None`` if there is none.

    The string ``"null"`` (sent by some clients) counts as no version.
    """
    if values and values[0] not in ("", "null"):
        return values[0]
    return None


def _route_object(method: str, bucket: str, key: str) -> Route:
    operations = {
        "GET": Operation.GET_OBJECT,
        "HEAD": Operation.HEAD_OBJECT,
        "PUT": Operation.CREATE_OBJECT,
        "DELETE": Operation.DELETE_OBJECT,
    }
    return Route(_pick(operations, method), bucket, key)


def _route_bucket(method: str, bucket: str, query: Query) -> Route:
    if method == "GET":
        op = Operation.GET_BUCKET_LOCATION if "location" in query else Operation.LIST_BUCKET
    elif method == "POST":
        op = Operation.DELETE_MULTI if "delete" in query else Operation.CREATE_OBJECT_BROWSER_UPLOAD
    else:
        op = _pick(
            {
                "PUT": Operation.CREATE_BUCKET,
                "DELETE": Operation.DELETE_BUCKET,
                "HEAD": Operation.HEAD_BUCKET,
            },
            method,
        )
    return Route(op, bucket)


def _pick(operations: Mapping[str, Operation], method: str) -> Operation:
    try:
        return operations[method]
    except KeyError:
        raise S3Error(ErrorCode.METHOD_NOT_ALLOWED) from None


def resolve_route(method: str, path: str, query: Query) -> Route:
    """Choose the operation for a request.

    Raises ``MethodNotAllowed`` when the resource does not support
    ``method``. A non-GET request at the root resolves to ``NOT_FOUND``.
    """
    method = method.upper()
    bucket, _, key = path.strip("/").partition("/")

    upload_id = _first(query, "uploadId")
    if upload_id:
        op = _pick(
            {
                "GET": Operation.LIST_MULTIPART_UPLOAD_PARTS,
                "PUT": Operation.PUT_MULTIPART_UPLOAD_PART,
                "DELETE": Operation.ABORT_MULTIPART_UPLOAD,
                "POST": Operation.COMPLETE_MULTIPART_UPLOAD,
            },
            method,
        )
        return Route(op, bucket, key, upload_id=upload_id)

    if "uploads" in query:
        op = _pick(
            {"GET": Operation.LIST_MULTIPART_UPLOADS, "POST": Operation.INITIATE_MULTIPART_UPLOAD},
            method,
        )
        return Route(op, bucket, key)

    if "versioning" in query:
        op = _pick(
            {"GET": Operation.GET_BUCKET_VERSIONING, "PUT": Operation.PUT_BUCKET_VERSIONING},
            method,
        )
        return Route(op, bucket)

    if "versions" in query:
        return Route(_pick({"GET": Operation.LIST_BUCKET_VERSIONS}, method), bucket)

    version_id = version_from_query(_values(query, "versionId"))
    if version_id is not None:
        op = _pick(
            {
                "GET": Operation.GET_OBJECT,
                "HEAD": Operation.HEAD_OBJECT,
                "DELETE": Operation.DELETE_OBJECT_VERSION,
            },
            method,
        )
        return Route(op, bucket, key, version_id=version_id)

    if bucket and key:
        return _route_object(method, bucket, key)
    if bucket:
        return _route_bucket(method, bucket, query)
    if method == "GET":
        return Route(Operation.LIST_BUCKETS)
    return Route(Operation.NOT_FOUND)