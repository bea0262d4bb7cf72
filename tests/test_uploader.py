import io
import re
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from fakes3.errors import ErrorCode, S3Error
from fakes3.prefix import Prefix
from fakes3.timesource import FixedTimeSource
from fakes3.uploader import (
    CompletedPart,
    CompleteMultipartUploadRequest,
    Uploader,
    UploadListMarker,
    upload_list_marker_from_query,
)

BUCKET = "mybucket"
START = datetime(2018, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

MD5_ABC = '"900150983cd24fb0d6963f7d28e17f72"'


class MemoryStorage:
    def __init__(self):
        self.objects = {}

    def put_object(self, bucket, key, meta, stream, size):
        data = stream.read()
        assert len(data) == size
        self.objects[(bucket, key)] = (dict(meta), data)
        return SimpleNamespace(version_id="v1")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def uploader(storage):
    return Uploader(storage, FixedTimeSource(START))


def listing(up, marker=None, prefix=None, limit=1000):
    rs = up.list_multipart_uploads(BUCKET, marker, prefix, limit)
    uploads = [f"{u.key}/{u.upload_id}" for u in rs.uploads]
    prefixes = [p.prefix for p in rs.common_prefixes]
    return rs, prefixes, uploads


def put(up, key, upload_id, number, body):
    return up.upload_part(BUCKET, key, upload_id, number, len(body), io.BytesIO(body))


def test_abort_multipart_upload(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "obj", None)
    assert upload_id == "1"
    _, _, uploads = listing(uploader)
    assert uploads == ["obj/1"]

    uploader.abort_multipart_upload(BUCKET, "obj", "1")
    with pytest.raises(S3Error) as exc:
        uploader.list_parts(BUCKET, "obj", "1", 0, 1000)
    assert exc.value.code == ErrorCode.NO_SUCH_UPLOAD
    _, _, uploads = listing(uploader)
    assert uploads == []


def test_list_uploads_same_object_key(uploader):
    for _ in range(3):
        uploader.create_multipart_upload(BUCKET, "obj", None)

    assert listing(uploader)[2] == ["obj/1", "obj/2", "obj/3"]
    assert listing(uploader, limit=1)[2] == ["obj/1"]
    assert listing(uploader, limit=2)[2] == ["obj/1", "obj/2"]
    marker = UploadListMarker("obj", "2")
    assert listing(uploader, marker=marker, limit=1)[2] == ["obj/2"]
    rs, _, uploads = listing(uploader, marker=marker, limit=2)
    assert uploads == ["obj/2", "obj/3"]
    assert rs.key_marker == "obj"
    assert rs.upload_id_marker == "2"


def test_list_uploads_truncation_markers(uploader):
    for _ in range(3):
        uploader.create_multipart_upload(BUCKET, "obj", None)
    rs, _, _ = listing(uploader, limit=1)
    assert rs.is_truncated
    assert rs.next_key_marker == "obj"
    assert rs.next_upload_id_marker == "2"
    rs, _, _ = listing(uploader, limit=3)
    assert not rs.is_truncated


def test_list_uploads_different_object_keys(uploader):
    for key in ("foo", "bar", "baz"):
        uploader.create_multipart_upload(BUCKET, key, None)

    assert listing(uploader)[2] == ["bar/2", "baz/3", "foo/1"]
    assert listing(uploader, limit=1)[2] == ["bar/2"]
    assert listing(uploader, limit=2)[2] == ["bar/2", "baz/3"]
    marker = UploadListMarker("baz", "3")
    assert listing(uploader, marker=marker, limit=1)[2] == ["baz/3"]
    assert listing(uploader, marker=marker, limit=2)[2] == ["baz/3", "foo/1"]

    rs, _, _ = listing(uploader, limit=1)
    assert rs.is_truncated
    assert (rs.next_key_marker, rs.next_upload_id_marker) == ("baz", "3")


def test_list_uploads_prefix(uploader):
    for key in ("foo/bar", "foo/bar", "foo/baz", "foo/nested/yep", "food/bar", "food/baz", "yep/qux"):
        uploader.create_multipart_upload(BUCKET, key, None)

    rs, prefixes, uploads = listing(uploader, prefix=Prefix("/", "/"))
    assert prefixes == ["foo/", "food/", "yep/"]
    assert uploads == []
    assert (rs.prefix, rs.delimiter) == ("/", "/")

    _, prefixes, uploads = listing(uploader, prefix=Prefix("fo", "/"))
    assert prefixes == ["foo/", "food/"]
    assert uploads == []

    _, prefixes, uploads = listing(uploader)
    assert prefixes == []
    assert uploads == [
        "foo/bar/1", "foo/bar/2", "foo/baz/3", "foo/nested/yep/4",
        "food/bar/5", "food/baz/6", "yep/qux/7",
    ]

    rs, _, uploads = listing(uploader, limit=3)
    assert uploads == ["foo/bar/1", "foo/bar/2", "foo/baz/3"]
    assert rs.is_truncated
    assert (rs.next_key_marker, rs.next_upload_id_marker) == ("foo/nested/yep", "4")

    _, prefixes, uploads = listing(uploader, prefix=Prefix("foo/", "/"))
    assert prefixes == ["foo/nested/"]
    assert uploads == ["foo/bar/1", "foo/bar/2", "foo/baz/3"]


def test_list_uploads_unknown_bucket(uploader):
    with pytest.raises(S3Error) as exc:
        uploader.list_multipart_uploads("nope", None, None, 1000)
    assert exc.value.code == ErrorCode.NO_SUCH_UPLOAD


def test_list_parts_and_complete(uploader, storage):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", {"x": "y"})
    parts = [
        CompletedPart(1, put(uploader, "foo", upload_id, 1, b"abc")),
        CompletedPart(2, put(uploader, "foo", upload_id, 2, b"def")),
        CompletedPart(3, put(uploader, "foo", upload_id, 3, b"ghi")),
    ]
    assert parts[0].etag == MD5_ABC

    rs = uploader.list_parts(BUCKET, "foo", upload_id, 0, 1000)
    assert [(p.part_number, p.etag) for p in rs.parts] == [(p.part_number, p.etag) for p in parts]
    assert [p.size for p in rs.parts] == [3, 3, 3]
    assert rs.parts[0].last_modified == START
    assert not rs.is_truncated
    assert (rs.bucket, rs.key, rs.upload_id) == (BUCKET, "foo", upload_id)

    version, etag = uploader.complete_multipart_upload(
        BUCKET, "foo", upload_id, CompleteMultipartUploadRequest(parts)
    )
    assert version == "v1"
    assert re.fullmatch(r'"[0-9a-f]{32}-3"', etag)
    assert storage.objects[(BUCKET, "foo")] == ({"x": "y"}, b"abcdefghi")

    with pytest.raises(S3Error) as exc:
        uploader.list_parts(BUCKET, "foo", upload_id, 0, 1000)
    assert exc.value.code == ErrorCode.NO_SUCH_UPLOAD


def test_complete_etag_depends_on_parts(storage):
    etags = []
    for body in (b"abc", b"abd"):
        up = Uploader(storage, FixedTimeSource(START))
        upload_id = up.create_multipart_upload(BUCKET, "k", None)
        part = CompletedPart(1, put(up, "k", upload_id, 1, body))
        etags.append(up.complete_multipart_upload(
            BUCKET, "k", upload_id, CompleteMultipartUploadRequest([part]))[1])
    assert etags[0] != etags[1]
    assert all(e.endswith('-1"') for e in etags)


def test_list_parts_pagination(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    for number in (1, 2, 3):
        put(uploader, "foo", upload_id, number, b"x")
    rs = uploader.list_parts(BUCKET, "foo", upload_id, 0, 2)
    assert [p.part_number for p in rs.parts] == [1, 2]
    assert rs.is_truncated
    assert rs.next_part_number_marker == 3
    rs = uploader.list_parts(BUCKET, "foo", upload_id, 3, 2)
    assert [p.part_number for p in rs.parts] == [3]
    assert not rs.is_truncated


def test_upload_part_errors(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    with pytest.raises(S3Error) as exc:
        uploader.upload_part(BUCKET, "foo", upload_id, 10001, 1, io.BytesIO(b"a"))
    assert exc.value.code == ErrorCode.INVALID_PART
    with pytest.raises(S3Error) as exc:
        uploader.upload_part(BUCKET, "foo", upload_id, 1, 5, io.BytesIO(b"abc"))
    assert exc.value.code == ErrorCode.INCOMPLETE_BODY
    with pytest.raises(S3Error) as exc:
        uploader.upload_part(BUCKET, "other", upload_id, 1, 3, io.BytesIO(b"abc"))
    assert exc.value.code == ErrorCode.NO_SUCH_UPLOAD


def test_complete_errors(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    e1 = put(uploader, "foo", upload_id, 1, b"abc")
    e2 = put(uploader, "foo", upload_id, 2, b"def")

    def complete(parts):
        with pytest.raises(S3Error) as exc:
            uploader.complete_multipart_upload(
                BUCKET, "foo", upload_id, CompleteMultipartUploadRequest(parts))
        return exc.value.code

    assert complete([CompletedPart(2, e2), CompletedPart(1, e1)]) == ErrorCode.INVALID_PART_ORDER
    assert complete([CompletedPart(1, e2)]) == ErrorCode.INVALID_PART
    assert complete([CompletedPart(5, e1)]) == ErrorCode.INVALID_PART
    assert complete([CompletedPart(1, e1)] * 4) == ErrorCode.INVALID_PART
    # The failed attempts leave the upload in place.
    rs = uploader.list_parts(BUCKET, "foo", upload_id, 0, 1000)
    assert [p.part_number for p in rs.parts] == [1, 2]


def test_parts_are_sorted():
    assert CompleteMultipartUploadRequest(
        [CompletedPart(1, "a"), CompletedPart(1, "b"), CompletedPart(3, "c")]
    ).parts_are_sorted()
    assert not CompleteMultipartUploadRequest(
        [CompletedPart(2, "a"), CompletedPart(1, "b")]
    ).parts_are_sorted()


def test_upload_list_marker_from_query():
    assert upload_list_marker_from_query({}) is None
    assert upload_list_marker_from_query({"upload-id-marker": "3"}) is None
    assert upload_list_marker_from_query(
        {"key-marker": ["obj"], "upload-id-marker": ["2"]}
    ) == UploadListMarker("obj", "2")
    assert upload_list_marker_from_query({"key-marker": "obj"}) == UploadListMarker("obj", "")