"""
HTTP response parsing and response policy.

The raw response stays in the ResponseBuffer it was read into; the parsed
response only records Span ranges pointing into it. check_response decides
whether the document can be used, has to be fetched from a redirect target or
is an error.
"""

import logging
import re
from typing import Dict, Optional

from feedreader.buffer import ResponseBuffer, Span
from feedreader.errors import HttpError, InternalError
from feedreader.models import Decision, DocType
from feedreader.url import ParsedURL, resolve_location
from feedreader.url_queue import URLQueueEntry

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5

CRLF = b"\r\n"
HEADER_END = CRLF + CRLF

_VERSION = re.compile(rb"[^ \t]+")
_STATUS = re.compile(rb"[ \t]+([0-9]{3})(?![0-9])")
_PHRASE = re.compile(rb"[ \t]+([^\r\n]+)")
_HEADER = re.compile(rb"(location|content-type|content-length):[ \t]*", re.IGNORECASE)

_MIME_TYPES = [
    (re.compile(r"application/rss\+xml", re.IGNORECASE), DocType.RSS),
    (re.compile(r"application/atom\+xml", re.IGNORECASE), DocType.ATOM),
    (re.compile(r"(?:text|application)/xml", re.IGNORECASE), DocType.XML),
    (re.compile(r"[a-z0-9!#$&^_.-]+/[a-z0-9!#$&^_.+-]+\+xml", re.IGNORECASE), DocType.XML),
]


def doc_type_from_mime(content_type: Optional[str]) -> DocType:
    """Maps a Content-Type value (parameters are ignored) to a DocType."""
    if not content_type:
        return DocType.UNKNOWN

    media_type = content_type.split(";", 1)[0].strip()
    for pattern, doc_type in _MIME_TYPES:
        if pattern.fullmatch(media_type):
            return doc_type
    return DocType.UNKNOWN


class HttpResponse:
    """
    Parsed HTTP response.

    Fields are kept as Span ranges into `buffer`; the accessors decode them on
    demand. The object owns none of the bytes and must not be used once the
    buffer has been cleared for another request.
    """

    FIELDS = ("version", "status", "phrase", "location", "content_type", "content_length")

    def __init__(self, buffer: ResponseBuffer, body_start: int = 0):
        self.buffer = buffer
        self.body_start = body_start
        self.spans: Dict[str, Span] = {}
        self.doc_type = DocType.UNKNOWN

    def get(self, field: str) -> Optional[str]:
        """Decoded value of a field, or None when it was not present."""
        span = self.spans.get(field)
        if span is None:
            return None
        return self.buffer.gettext(span)

    @property
    def version(self) -> Optional[str]:
        return self.get("version")

    @property
    def status(self) -> Optional[str]:
        return self.get("status")

    @property
    def phrase(self) -> Optional[str]:
        return self.get("phrase")

    @property
    def location(self) -> Optional[str]:
        return self.get("location")

    @property
    def content_type(self) -> Optional[str]:
        return self.get("content_type")

    @property
    def content_length(self) -> Optional[str]:
        return self.get("content_length")

    @property
    def status_code(self) -> int:
        status = self.status
        if status is None:
            raise InternalError("HTTP response has no status code")
        return int(status)

    @property
    def body(self) -> bytes:
        """The document that follows the header block."""
        return self.buffer.tail(self.body_start)


def _parse_status_line(response: HttpResponse, start: int, end: int, url: str) -> None:
    buffer = response.buffer

    match = buffer.match(_VERSION, start, end)
    if not match:
        raise HttpError(f"Unable to find HTTP version in response from '{url}'!")
    response.spans["version"] = Span.of_match(match)

    match = buffer.match(_STATUS, match.end(), end)
    if not match:
        raise HttpError(f"Unable to find status code in response from '{url}'!")
    response.spans["status"] = Span.of_match(match, 1)

    match = buffer.match(_PHRASE, match.end(), end)
    if not match:
        raise HttpError(f"Unable to find status phrase in response from '{url}'!")
    response.spans["phrase"] = Span.of_match(match, 1)


def _parse_header_line(response: HttpResponse, start: int, end: int) -> None:
    match = response.buffer.match(_HEADER, start, end)
    if not match:
        return

    field = match.group(1).decode("ascii").lower().replace("-", "_")
    response.spans[field] = Span(match.end(), end - match.end())


def parse_response(buffer: ResponseBuffer, url: str) -> HttpResponse:
    """
    Splits a raw response into headers and body and parses the headers.

    Only the status line, Location, Content-Type and Content-Length are
    recorded; other headers are skipped. Raises HttpError when the header
    block or the status line is malformed.
    """
    boundary = buffer.find(HEADER_END)
    if boundary < 0:
        raise HttpError(f"Headers of HTTP response from '{url}' were not found!")

    response = HttpResponse(buffer, boundary + len(HEADER_END))

    line_no = 0
    line_start = 0
    while line_start < boundary:
        line_end = buffer.find(CRLF, line_start, boundary)
        if line_end < 0:
            line_end = boundary

        if line_no == 0:
            _parse_status_line(response, line_start, line_end, url)
        else:
            _parse_header_line(response, line_start, line_end)

        line_no += 1
        line_start = line_end + len(CRLF)

    if line_no == 0:
        raise HttpError(f"Invalid headers of HTTP response from '{url}' (missing initial header)!")

    response.doc_type = doc_type_from_mime(response.content_type)

    logger.debug(
        "HTTP header positions for '%s': %s, body at %d",
        url,
        {field: tuple(span) for field, span in response.spans.items()},
        response.body_start,
    )
    return response


def http_redirect(response: HttpResponse, entry: URLQueueEntry, url: ParsedURL) -> URLQueueEntry:
    """Splices the redirect target after `entry`, respecting the hop limit."""
    if entry.depth >= MAX_REDIRECTS:
        raise HttpError(f"Maximum number of redirections ({MAX_REDIRECTS}) was exceeded!")

    location = response.location
    if not location or not location.strip():
        raise HttpError("Unable to redirect, because Location header was not found!")

    target = entry.splice(resolve_location(location, url))
    logger.info("Redirecting '%s' to '%s' (hop %d)", entry.url, target.url, target.depth)
    return target


def _check_mime(response: HttpResponse, url: str) -> None:
    if response.content_type is None:
        raise HttpError(f"Missing Content-Type of document from '{url}'!")
    if response.doc_type == DocType.UNKNOWN:
        raise HttpError(f"Unsupported MIME type '{response.content_type}' of document from '{url}'!")


def _check_length(response: HttpResponse, url: str) -> None:
    declared = response.content_length
    if declared is None or not declared.strip().isdigit():
        return

    received = response.buffer.length - response.body_start
    if int(declared) > received:
        logger.warning(
            "Document from '%s' is shorter than announced (%d of %s bytes)!",
            url,
            received,
            declared.strip(),
        )


def check_response(
    response: HttpResponse, entry: URLQueueEntry, url: ParsedURL, check_mime: bool = False
) -> Decision:
    """
    Applies the response policy to a parsed response.

    2xx proceeds, 3xx splices the redirect target after `entry` and returns
    Decision.REDIRECT, anything else raises HttpError.
    """
    status_code = response.status_code
    phrase = response.phrase

    if status_code // 100 == 2:
        if check_mime:
            _check_mime(response, entry.url)
        _check_length(response, entry.url)
        return Decision.PROCEED

    if status_code // 100 == 3:
        logger.warning("Got %s (code %d) from '%s'! Redirecting...", phrase, status_code, entry.url)
        http_redirect(response, entry, url)
        return Decision.REDIRECT

    raise HttpError(f"Got {phrase} (code {status_code}) from '{entry.url}'! Expected OK (200)")
