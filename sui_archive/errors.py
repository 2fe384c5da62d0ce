"""
Error taxonomy for the archiver.

Every failure the archiver can hit is fatal for the current run. Errors carry
the package id or address they concern (when there is one) and chain the
underlying cause so the operator can act on them.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Failure categories."""
    TRANSPORT = "transport"
    RESPONSE_PARSE = "response_parse"
    SERVER = "server"
    PROVENANCE_UNAVAILABLE = "provenance_unavailable"
    DECODE = "decode"
    FILESYSTEM = "filesystem"
    SUBPROCESS = "subprocess"


class ArchiveError(Exception):
    """Base class for all archiver errors."""

    kind: ErrorKind = ErrorKind.FILESYSTEM

    def __init__(self, message: str, package_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.package_id = package_id

    def __str__(self) -> str:
        if self.package_id:
            return f"{self.message} (package: {self.package_id})"
        return self.message


class TransportError(ArchiveError):
    """The request never produced a response (connection, timeout, HTTP status)."""
    kind = ErrorKind.TRANSPORT


class ResponseParseError(ArchiveError):
    """A payload could not be parsed into the expected shape."""
    kind = ErrorKind.RESPONSE_PARSE


class ServerError(ArchiveError):
    """The endpoint answered with application-level errors."""
    kind = ErrorKind.SERVER


class ProvenanceUnavailableError(ArchiveError):
    """The creating transaction could not be resolved, even through the fallback lookups."""
    kind = ErrorKind.PROVENANCE_UNAVAILABLE

    def __init__(self, address: str):
        super().__init__(
            "Previous transaction not available because of pruned node", package_id=address
        )


class DecodeError(ArchiveError):
    """Malformed base64 or binary package/module payload."""
    kind = ErrorKind.DECODE


class FilesystemError(ArchiveError):
    """Creating, reading or writing archive files failed."""
    kind = ErrorKind.FILESYSTEM


class DecompilerError(ArchiveError):
    """The external decompiler could not be run or exited with an error."""
    kind = ErrorKind.SUBPROCESS
