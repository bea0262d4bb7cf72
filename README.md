# fakes3

This package contains the protocol logic for an S3 look-alike that runs inside
your test suite in place of the real service. It decides which operation a
request is for and matches keys against prefixes and delimiters. It also
resolves byte ranges, checks bucket names and manages multipart uploads in
memory.

## Installation

```
pip install fakes3
```

With the test dependencies:

```
pip install "fakes3[test]"
```

## Modules

- `fakes3.routing`
  - `resolve_route(method, path, query)` returns a `Route` with an `Operation`
    and the request's `bucket`, `key`, `upload_id` and `version_id`.
  - Query subresources (`uploadId`, `uploads`, `versioning`, `versions`,
    `versionId`) are checked before the plain bucket/object routes.
  - A method the resource does not support raises `S3Error` with
    `ErrorCode.METHOD_NOT_ALLOWED`.
  - A non-GET request at the root resolves to `Operation.NOT_FOUND`.
  - `version_from_query` treats `"null"` and `""` as "no version".
  - `RequestIDs().next_id()` produces sequential 16-digit upper-case hex IDs.
  - `request_id_headers(request_id)` builds the `x-amz-id-2`,
    `x-amz-request-id` and `Server` headers.
- `fakes3.prefix`
  - `Prefix(prefix, delimiter)` matches keys as S3 listings do.
  - `Prefix.match(key)` returns a `PrefixMatch`, or `None` when the key does
    not match. Its `common_prefix` flag says whether the key belongs in the
    common prefixes rather than the contents.
  - `Prefix.file_prefix()` splits a `/`-delimited prefix into its directory
    and remaining part. It returns `None` for any other delimiter.
  - Helpers: `prefix_from_query` (empty parameters count as absent),
    `new_prefix` and `new_folder_prefix`.
- `fakes3.ranges`
  - `parse_range_header(value)` parses a single `bytes=` range into an
    `ObjectRangeRequest`, or returns `None` for an empty header.
  - Multiple ranges raise `NotImplemented`. Malformed ranges raise
    `InvalidRange`.
  - `ObjectRangeRequest.resolve(size)` returns a concrete `ObjectRange`,
    clamped to the object size.
  - `ObjectRange.headers(size)` gives `Content-Range` and `Content-Length`.
- `fakes3.validation`
  - `validate_bucket_name(name)` applies the S3 naming rules and returns the
    name. The rules are: 3 to 63 characters, lower-case letters, digits, `-`
    and `.`, every label starting and ending with a letter or digit, and not
    an IP address. A broken rule raises `InvalidBucketName`.
  - `valid_etag(value)` checks for a quoted lower-case alphanumeric ETag.
- `fakes3.uploader`
  - `Uploader` manages multipart uploads in memory. It supports
    `create_multipart_upload`, `upload_part`, `list_parts`,
    `list_multipart_uploads`, `abort_multipart_upload` and
    `complete_multipart_upload`.
  - Upload IDs are sequential (`"1"`, `"2"`, ...).
  - Listings are sorted by key, then by initiation order. They honour a
    `Prefix`, an `UploadListMarker` and a limit, and report truncation and
    the next markers.
  - `upload_list_marker_from_query` reads `key-marker` and
    `upload-id-marker`.
- `fakes3.timesource`
  - `default_time_source()` gives the wall-clock time in the GMT zone.
  - `FixedTimeSource(at)` stands still until you call `advance(by)`.
- `fakes3.util`
  - `parse_clamped_int(value, default, minimum, maximum)` is for parameters
    such as `max-keys`. An unparsable value raises `InvalidArgument`.
  - `read_all(stream, size)` reads exactly `size` bytes. A stream that is too
    short or too long raises `IncompleteBody`. An empty stream when bytes
    were expected raises `EOFError`.
- `fakes3.errors`
  - `S3Error(code, message)` carries an `ErrorCode` and exposes the HTTP
    `status` that goes with it.
  - `has_error_code(err, code)` checks the code. `None` counts as
    `ErrorCode.NONE`.

## Examples

Routing a request:

```python
from fakes3.routing import Operation, resolve_route

route = resolve_route("GET", "/mybucket/some/key", {})
assert route.operation is Operation.GET_OBJECT
assert (route.bucket, route.key) == ("mybucket", "some/key")
```

Folder-style prefix matching:

```python
from fakes3.prefix import new_folder_prefix

match = new_folder_prefix("foo/").match("foo/nested/yep")
assert match.common_prefix
assert match.as_common_prefix().prefix == "foo/nested/"
```

Byte ranges:

```python
from fakes3.ranges import parse_range_header

rng = parse_range_header("bytes=0-4").resolve(10)
assert (rng.start, rng.length) == (0, 5)
assert rng.headers(10) == {"Content-Range": "bytes 0-4/10", "Content-Length": "5"}
```

Bucket names:

```python
from fakes3.errors import ErrorCode, S3Error
from fakes3.validation import validate_bucket_name

try:
    validate_bucket_name("NUP")
except S3Error as err:
    assert err.code is ErrorCode.INVALID_BUCKET_NAME
```

A multipart upload. The storage you pass must have a
`put_object(bucket, key, meta, stream, size)` method. If its return value has
a `version_id` attribute, that value is reported as the version. Otherwise the
version is `None`.

```python
import io
from datetime import datetime, timezone

from fakes3.timesource import FixedTimeSource
from fakes3.uploader import CompletedPart, CompleteMultipartUploadRequest, Uploader


class MemoryStorage:
    def __init__(self):
        self.objects = {}

    def put_object(self, bucket, key, meta, stream, size):
        self.objects[bucket, key] = stream.read(size)


storage = MemoryStorage()
uploader = Uploader(storage, FixedTimeSource(datetime(2018, 1, 1, tzinfo=timezone.utc)))
upload_id = uploader.create_multipart_upload("mybucket", "obj", {})
etag = uploader.upload_part("mybucket", "obj", upload_id, 1, 3, io.BytesIO(b"abc"))
version, final_etag = uploader.complete_multipart_upload(
    "mybucket", "obj", upload_id,
    CompleteMultipartUploadRequest([CompletedPart(part_number=1, etag=etag)]),
)
assert storage.objects["mybucket", "obj"] == b"abc"
assert final_etag.endswith('-1"')
```

## What this package does not do

- There is no HTTP server. You wire `resolve_route` and the other pieces into
  the web framework you already use.
- There is no storage backend for buckets and objects. Multipart uploads are
  held in memory and handed to the storage you supply on completion. They do
  not survive a restart.
- There is no command-line program.

## Running the tests

```
pytest
```