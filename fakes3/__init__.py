"""Protocol logic for a fake S3 service: routing, prefix matching, byte ranges, bucket validation and in-memory multipart uploads."""

__version__ = "0.1.0"