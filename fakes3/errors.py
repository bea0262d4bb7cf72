"""S3 error codes and the exception that carries them."""

from __future__ import annotations

import enum


class ErrorCode(str, enum.Enum):
    """S3 error codes as they appear on the wire."""

    NONE = ""
    INCOMPLETE_BODY = "IncompleteBody"
    INTERNAL = "InternalError"
    INVALID_ARGUMENT = "InvalidArgument"
    INVALID_BUCKET_NAME = "InvalidBucketName"
    INVALID_PART = "InvalidPart"
    INVALID_PART_ORDER = "InvalidPartOrder"
    INVALID_RANGE = "InvalidRange"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    NO_SUCH_BUCKET = "NoSuchBucket"
    NO_SUCH_KEY = "NoSuchKey"
    NO_SUCH_UPLOAD = "NoSuchUpload"
    NOT_IMPLEMENTED = "NotImplemented"

    @property
    def status(self) -> int:
        """HTTP status code that accompanies this error."""
        return _STATUS.get(self, 400)


_STATUS = {
    ErrorCode.NONE: 200,
    ErrorCode.INTERNAL: 500,
    ErrorCode.INVALID_RANGE: 416,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.NO_SUCH_BUCKET: 404,
    ErrorCode.NO_SUCH_KEY: 404,
    ErrorCode.NO_SUCH_UPLOAD: 404,
    ErrorCode.NOT_IMPLEMENTED: 501,
}


class S3Error(Exception):
    """An error reported to S3 clients, identified by its code."""

    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        self.code = ErrorCode(code)
        self.message = message if message is not None else self.code.value
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return self.code.status

    def __repr__(self) -> str:
        return f"S3Error({self.code.value!r}, {self.message!r})"


def has_error_code(err: BaseException | None, code: ErrorCode) -> bool:
    """Report whether ``err`` carries ``code``; no error counts as ``ErrorCode.NONE``."""
    if err is None:
        return code == ErrorCode.NONE
    return isinstance(err, S3Error) and err.code == code