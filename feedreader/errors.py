"""
Error taxonomy for the feed reader.

Every domain failure is a FeedReaderError subclass carrying the header used in
the one-line stderr message and the exit code reported for the run.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes, one per error kind."""

    SUCCESS = 0
    USAGE = 1
    FILE = 2
    URL = 3
    CONNECTION = 4
    COMMUNICATION = 5
    PATH = 6
    VERIFICATION = 7
    HTTP = 8
    FEED = 9
    INTERNAL = 10


class FeedReaderError(Exception):
    """Base class of all classified feed reader errors."""

    header = "Internal error"
    exit_code = ExitCode.INTERNAL


class UsageError(FeedReaderError):
    """Bad command line invocation."""

    header = "Usage error"
    exit_code = ExitCode.USAGE


class FileError(FeedReaderError):
    """Local file could not be opened or read."""

    header = "Error while opening file"
    exit_code = ExitCode.FILE


class URLError(FeedReaderError):
    """Malformed or unsupported URL."""

    header = "Invalid URL"
    exit_code = ExitCode.URL


class ConnectError(FeedReaderError):
    """TCP connect or TLS handshake failure."""

    header = "Connection error"
    exit_code = ExitCode.CONNECTION


class CommunicationError(FeedReaderError):
    """Send or receive failed on a live connection."""

    header = "Communication error"
    exit_code = ExitCode.COMMUNICATION


class PathError(FeedReaderError):
    """Certificate file or directory cannot be used."""

    header = "Path error"
    exit_code = ExitCode.PATH


class VerificationError(FeedReaderError):
    """Peer certificate chain could not be verified."""

    header = "Verification error"
    exit_code = ExitCode.VERIFICATION


class HttpError(FeedReaderError):
    """Bad status, malformed headers, unsupported MIME or too many redirects."""

    header = "HTTP error"
    exit_code = ExitCode.HTTP


class FeedError(FeedReaderError):
    """Malformed feed document or unsupported feed format."""

    header = "Feed source error"
    exit_code = ExitCode.FEED


class InternalError(FeedReaderError):
    """Invariant violation or other unexpected failure."""
