"""In-memory management of multipart uploads.

Uploads and their parts live in memory only; a completed upload is handed
to the storage backend as a single object.

Listings are sorted by object key and, within one key, by initiation
order. The sorting applies across the whole paginated result.
"""

from __future__ import annotations

import hashlib
import io
import itertools
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Protocol

from sortedcontainers import SortedDict

from .errors import ErrorCode, S3Error
from .prefix import CommonPrefix, Prefix
from .timesource import TimeSource, default_time_source

MAX_UPLOAD_PART_NUMBER = 10000
STORAGE_CLASS = "STANDARD"


class _Storage(Protocol):
    def put_object(
        self, bucket: str, key: str, meta: dict[str, str], stream: BinaryIO, size: int
    ) -> Any: ...


@dataclass(frozen=True)
class UploadListMarker:
    """Where a page of ListMultipartUploads starts.

    ``key`` is the key-marker; ``upload_id`` the upload-id-marker, which is
    only used together with ``key``.
    """

    key: str
    upload_id: str = ""


def upload_list_marker_from_query(
    query: Mapping[str, str | Sequence[str]],
) -> UploadListMarker | None:
    """Collect ``key-marker`` and ``upload-id-marker``; ``None`` without a key marker."""

    def first(name: str) -> str:
        value = query.get(name, "")
        if isinstance(value, str):
            return value
        return value[0] if value else ""

    key = first("key-marker")
    if not key:
        return None
    return UploadListMarker(key=key, upload_id=first("upload-id-marker"))


@dataclass(frozen=True)
class CompletedPart:
    """A part named in a complete-multipart-upload request."""

    part_number: int
    etag: str


@dataclass(frozen=True)
class CompleteMultipartUploadRequest:
    """The parts that make up the finished object, in order."""

    parts: tuple[CompletedPart, ...] = ()

    def __init__(self, parts: Iterable[CompletedPart] = ()) -> None:
        object.__setattr__(self, "parts", tuple(parts))

    def parts_are_sorted(self) -> bool:
        """Report whether part numbers never decrease."""
        return all(a.part_number <= b.part_number for a, b in zip(self.parts, self.parts[1:]))


@dataclass(frozen=True)
class ListMultipartUploadPartItem:
    etag: str
    size: int
    part_number: int
    last_modified: datetime


@dataclass
class ListMultipartUploadPartsResult:
    bucket: str
    key: str
    upload_id: str
    max_parts: int
    part_number_marker: int
    storage_class: str = STORAGE_CLASS
    is_truncated: bool = False
    next_part_number_marker: int = 0
    parts: list[ListMultipartUploadPartItem] = field(default_factory=list)


@dataclass(frozen=True)
class ListMultipartUploadItem:
    key: str
    upload_id: str
    initiated: datetime
    storage_class: str = STORAGE_CLASS


@dataclass
class ListMultipartUploadsResult:
    bucket: str
    max_uploads: int
    delimiter: str = ""
    prefix: str = ""
    key_marker: str = ""
    upload_id_marker: str = ""
    next_key_marker: str = ""
    next_upload_id_marker: str = ""
    is_truncated: bool = False
    common_prefixes: list[CommonPrefix] = field(default_factory=list)
    uploads: list[ListMultipartUploadItem] = field(default_factory=list)


@dataclass
class _Part:
    number: int
    etag: str
    body: bytes
    last_modified: datetime


@dataclass
class _Upload:
    id: str
    bucket: str
    key: str
    meta: dict[str, str]
    initiated: datetime
    parts: dict[int, _Part] = field(default_factory=dict)

    @property
    def parts_len(self) -> int:
        # Size the parts would occupy if stored by index from zero.
        return max(self.parts) + 1 if self.parts else 0


class _BucketUploads:
    def __init__(self) -> None:
        self.uploads: dict[str, _Upload] = {}
        # Object key -> uploads for that key, in initiation order.
        self.by_key: SortedDict = SortedDict()

    def add(self, upload: _Upload) -> None:
        self.uploads[upload.id] = upload
        self.by_key.setdefault(upload.key, []).append(upload)

    def remove(self, upload_id: str) -> None:
        upload = self.uploads.pop(upload_id)
        siblings = self.by_key.get(upload.key)
        if siblings is None:
            return
        remaining = [u for u in siblings if u.id != upload_id]
        if remaining:
            self.by_key[upload.key] = remaining
        else:
            del self.by_key[upload.key]


def _md5_etag(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'


class Uploader:
    """Keeps multipart uploads and assembles them into objects."""

    def __init__(self, storage: _Storage, time_source: TimeSource | None = None) -> None:
        self._storage = storage
        self._time = time_source if time_source is not None else default_time_source()
        self._ids = itertools.count(1)
        self._buckets: dict[str, _BucketUploads] = {}
        self._lock = threading.Lock()

    def create_multipart_upload(
        self, bucket: str, key: str, meta: Mapping[str, str] | None = None
    ) -> str:
        """Start an upload and return its ID."""
        with self._lock:
            upload = _Upload(
                id=str(next(self._ids)),
                bucket=bucket,
                key=key,
                meta=dict(meta or {}),
                initiated=self._time.now(),
            )
            self._buckets.setdefault(bucket, _BucketUploads()).add(upload)
            return upload.id

    def _get(self, bucket: str, key: str, upload_id: str) -> _Upload:
        uploads = self._buckets.get(bucket)
        upload = uploads.uploads.get(upload_id) if uploads is not None else None
        if upload is None or upload.bucket != bucket or upload.key != key:
            raise S3Error(ErrorCode.NO_SUCH_UPLOAD)
        return upload

    def list_parts(
        self, bucket: str, key: str, upload_id: str, marker: int, limit: int
    ) -> ListMultipartUploadPartsResult:
        """List the uploaded parts, starting at part number ``marker``."""
        with self._lock:
            upload = self._get(bucket, key, upload_id)
            result = ListMultipartUploadPartsResult(
                bucket=bucket,
                key=key,
                upload_id=upload_id,
                max_parts=limit,
                part_number_marker=marker,
            )
            numbers = sorted(n for n in upload.parts if n >= marker)
            for count, number in enumerate(numbers):
                if count >= limit:
                    result.is_truncated = True
                    result.next_part_number_marker = number
                    break
                part = upload.parts[number]
                result.parts.append(
                    ListMultipartUploadPartItem(
                        etag=part.etag,
                        size=len(part.body),
                        part_number=number,
                        last_modified=part.last_modified,
                    )
                )
            return result

    def list_multipart_uploads(
        self,
        bucket: str,
        marker: UploadListMarker | None,
        prefix: Prefix | None,
        limit: int,
    ) -> ListMultipartUploadsResult:
        """List the uploads in ``bucket``, sorted by key then initiation."""
        prefix = prefix if prefix is not None else Prefix()
        with self._lock:
            bucket_uploads = self._buckets.get(bucket)
            if bucket_uploads is None:
                raise S3Error(ErrorCode.NO_SUCH_UPLOAD)

            result = ListMultipartUploadsResult(
                bucket=bucket,
                max_uploads=limit,
                delimiter=prefix.delimiter or "",
                prefix=prefix.prefix or "",
            )

            index = bucket_uploads.by_key
            first_found = True
            start: str | None = None
            if marker is not None:
                start = marker.key
                first_found = marker.upload_id == ""
                result.key_marker = marker.key
                result.upload_id_marker = marker.upload_id

            entries = iter([(k, list(index[k])) for k in index.irange(minimum=start)])
            seen_prefixes: set[str] = set()
            truncated = False
            count = 0
            done = False

            for key, uploads in entries:
                match = prefix.match(key)
                if match is None:
                    continue
                if not first_found:
                    assert marker is not None
                    found = next(
                        (i for i, u in enumerate(uploads) if u.id == marker.upload_id), None
                    )
                    if found is None:
                        continue
                    first_found = True
                    uploads = uploads[found:]

                if match.common_prefix:
                    if match.matched_part not in seen_prefixes:
                        seen_prefixes.add(match.matched_part)
                        result.common_prefixes.append(match.as_common_prefix())
                    continue

                for idx, upload in enumerate(uploads):
                    result.uploads.append(
                        ListMultipartUploadItem(
                            key=key, upload_id=upload.id, initiated=upload.initiated
                        )
                    )
                    count += 1
                    if count >= limit:
                        if idx != len(uploads) - 1:
                            truncated = True
                            result.next_upload_id_marker = uploads[idx + 1].id
                            result.next_key_marker = key
                        done = True
                        break
                if done:
                    break

            # Not truncated inside a key's uploads; look for further keys.
            if not truncated:
                for key, uploads in entries:
                    match = prefix.match(key)
                    if match is not None and not match.common_prefix:
                        truncated = True
                        result.next_upload_id_marker = uploads[0].id
                        result.next_key_marker = key
                        break

            result.is_truncated = truncated
            return result

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Discard an upload and its parts."""
        with self._lock:
            self._get(bucket, key, upload_id)
            self._buckets[bucket].remove(upload_id)

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        content_length: int,
        stream: BinaryIO,
    ) -> str:
        """Store one part and return its quoted ETag."""
        if part_number > MAX_UPLOAD_PART_NUMBER:
            raise S3Error(ErrorCode.INVALID_PART)
        body = stream.read()
        if len(body) != content_length:
            raise S3Error(ErrorCode.INCOMPLETE_BODY)
        with self._lock:
            upload = self._get(bucket, key, upload_id)
            etag = _md5_etag(body)
            upload.parts[part_number] = _Part(
                number=part_number,
                etag=etag,
                body=body,
                last_modified=self._time.now(),
            )
            return etag

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        request: CompleteMultipartUploadRequest,
    ) -> tuple[str | None, str]:
        """Assemble the named parts into an object; return (version ID, ETag)."""
        with self._lock:
            upload = self._get(bucket, key, upload_id)

            if len(request.parts) > upload.parts_len:
                raise S3Error(ErrorCode.INVALID_PART)
            if not request.parts_are_sorted():
                raise S3Error(ErrorCode.INVALID_PART_ORDER)

            chosen: list[_Part] = []
            for wanted in request.parts:
                part = upload.parts.get(wanted.part_number)
                if part is None:
                    raise S3Error(
                        ErrorCode.INVALID_PART,
                        f"unexpected part number {wanted.part_number} in complete request",
                    )
                if wanted.etag.strip('"') != part.etag.strip('"'):
                    raise S3Error(
                        ErrorCode.INVALID_PART,
                        f"unexpected part etag for number {wanted.part_number} in complete request",
                    )
                chosen.append(part)

            digest = hashlib.md5()
            for part in chosen:
                try:
                    digest.update(bytes.fromhex(part.etag.strip('"')))
                except ValueError as exc:
                    raise S3Error(
                        ErrorCode.INTERNAL,
                        f"invalid etag for number {part.number} is stored: {exc}",
                    ) from exc
            etag = f'"{digest.hexdigest()}-{len(request.parts)}"'

            body = b"".join(part.body for part in chosen)
            stored = self._storage.put_object(
                bucket, key, upload.meta, io.BytesIO(body), len(body)
            )
            self._buckets[bucket].remove(upload_id)
            return getattr(stored, "version_id", None), etag