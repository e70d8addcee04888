"""
URL parsing for the feed reader.

URLs are tokenized by matching one pattern per component (scheme, userinfo,
host, port, path, query, fragment) anchored at the position where the
previous component ended. The grammar follows RFC3986 but is permissive: the
scheme may be missing (a default is used) and a userinfo part is ignored.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from requests.utils import requote_uri

from feedreader.errors import URLError
from feedreader.models import SourceType

logger = logging.getLogger(__name__)

DEFAULT_URL_SCHEME = "https://"
SCHEME_SEPARATOR = "://"
DEFAULT_PORTS = {"http": "80", "https": "443"}

# Based on RFC3986
HEXDIG = "[0-9a-f]"
H16 = f"{HEXDIG}{{1,4}}"
DEC_OCTET = "(?:25[0-5]|2[0-4][0-9]|1[0-9]{2}|[1-9][0-9]|[0-9])"
IPV4_ADDRESS = rf"{DEC_OCTET}\.{DEC_OCTET}\.{DEC_OCTET}\.{DEC_OCTET}"
LS32 = f"(?:{H16}:{H16}|{IPV4_ADDRESS})"
IPV6_ADDRESS = (
    "(?:"
    + "|".join(
        [
            f"(?:{H16}:){{6}}{LS32}",
            f"::(?:{H16}:){{5}}{LS32}",
            f"(?:{H16})?::(?:{H16}:){{4}}{LS32}",
            f"(?:(?:{H16}:){{0,1}}{H16})?::(?:{H16}:){{3}}{LS32}",
            f"(?:(?:{H16}:){{0,2}}{H16})?::(?:{H16}:){{2}}{LS32}",
            f"(?:(?:{H16}:){{0,3}}{H16})?::{H16}:{LS32}",
            f"(?:(?:{H16}:){{0,4}}{H16})?::{LS32}",
            f"(?:(?:{H16}:){{0,5}}{H16})?::{H16}",
            f"(?:(?:{H16}:){{0,6}}{H16})?::",
        ]
    )
    + ")"
)

UNRESERVED = "[a-z0-9._~-]"
SUB_DELIMS = "[!$&'()*+,;=]"
PCT_ENCODED = f"%{HEXDIG}{HEXDIG}"
REG_NAME_CHAR = f"(?:{UNRESERVED}|{SUB_DELIMS}|{PCT_ENCODED})"
PCHAR = f"(?:{UNRESERVED}|{SUB_DELIMS}|[:@]|{PCT_ENCODED})"

PATH_ABS = f"(?:/{PCHAR}*)+"
PATH_NOSCHEME = f"(?:{UNRESERVED}|{SUB_DELIMS}|@|{PCT_ENCODED})+(?:/{PCHAR}*)*"
PATH_ROOTLESS = f"{PCHAR}+(?:/{PCHAR}*)*"
QUERY = rf"\?(?:{PCHAR}|[/?])*"
FRAGMENT = rf"#(?:{PCHAR}|[/?])*"

SCHEME = "[a-z][a-z0-9+.-]*://"
USERINFO = f"(?:{UNRESERVED}|{SUB_DELIMS}|:|{PCT_ENCODED})+@"
HOST = rf"(?:{IPV4_ADDRESS}(?!{REG_NAME_CHAR})|\[{IPV6_ADDRESS}\]|{REG_NAME_CHAR}+)"
PORT = ":[0-9]*"
# End of part based on RFC3986

URL_COMPONENTS = ("scheme", "userinfo", "host", "port", "path", "query", "fragment")

_URL_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    (name, re.compile(pattern, re.IGNORECASE))
    for name, pattern in zip(
        URL_COMPONENTS, (SCHEME, USERINFO, HOST, PORT, PATH_ABS, QUERY, FRAGMENT)
    )
]

_SCHEME_PATTERN = re.compile(SCHEME, re.IGNORECASE)

_PATH_ONLY_PATTERNS = [
    re.compile(f"(?:{path})(?:{QUERY})?(?:{FRAGMENT})?", re.IGNORECASE)
    for path in (PATH_ABS, PATH_NOSCHEME, PATH_ROOTLESS)
]


def get_source_type(scheme: Optional[str]) -> SourceType:
    """Classifies a scheme token such as 'https://'."""
    token = (scheme or DEFAULT_URL_SCHEME).lower()
    if token == "file://":
        return SourceType.FILE
    if token == "https://":
        return SourceType.HTTPS
    if token == "http://":
        return SourceType.HTTP
    return SourceType.UNKNOWN


def percent_encode(text: str) -> str:
    """
    Percent-encodes characters that may not appear in a request line.

    Raw UTF-8 is encoded byte by byte, so every byte of a multi-byte code
    point is escaped. Valid existing escapes are kept as they are. Square
    brackets are only allowed around an IPv6 host, so they are escaped too.
    """
    return requote_uri(text).replace("[", "%5B").replace("]", "%5D")


@dataclass
class ParsedURL:
    """Components of a URL, as matched and then normalized."""

    scheme: Optional[str] = None
    userinfo: Optional[str] = None
    host: Optional[str] = None
    port: Optional[str] = None
    path: Optional[str] = None
    query: Optional[str] = None
    fragment: Optional[str] = None
    source_type: SourceType = SourceType.UNKNOWN

    def components(self) -> Tuple[Optional[str], ...]:
        """The seven components in grammar order."""
        return tuple(getattr(self, name) for name in URL_COMPONENTS)

    def normalize(self, default_scheme: str = DEFAULT_URL_SCHEME) -> "ParsedURL":
        """Fills in missing parts. Applying it twice changes nothing."""
        if not self.scheme:
            self.scheme = default_scheme
        self.scheme = self.scheme.lower()

        if self.source_type == SourceType.FILE:
            return self

        if self.port and self.port.startswith(":"):
            self.port = self.port[1:]
        if not self.port or not (self.port.isascii() and self.port.isdigit()):
            self.port = DEFAULT_PORTS.get(self.scheme_name, "80")

        if not self.path:
            self.path = "/"

        return self

    @property
    def scheme_name(self) -> str:
        """Scheme without the '://' separator."""
        scheme = self.scheme or DEFAULT_URL_SCHEME
        if scheme.endswith(SCHEME_SEPARATOR):
            return scheme[: -len(SCHEME_SEPARATOR)].lower()
        return scheme.lower()

    @property
    def hostname(self) -> str:
        """Host usable for DNS lookup and SNI (IPv6 brackets removed)."""
        host = self.host or ""
        if host.startswith("[") and host.endswith("]"):
            return host[1:-1]
        return host

    @property
    def port_number(self) -> int:
        if not self.port:
            raise URLError(f"URL '{self.geturl()}' has no port")
        return int(self.port)

    def has_default_port(self) -> bool:
        return self.port == DEFAULT_PORTS.get(self.scheme_name)

    def authority(self) -> str:
        """host[:port], the port only when it is not the scheme default."""
        host = self.host or ""
        if self.port and not self.has_default_port():
            return f"{host}:{self.port}"
        return host

    def request_target(self) -> str:
        """path[?query][#fragment] as sent on the request line."""
        return (self.path or "/") + (self.query or "") + (self.fragment or "")

    def geturl(self) -> str:
        """Reassembles the URL; the userinfo part is dropped."""
        return f"{self.scheme or ''}{self.authority()}{self.request_target()}"


def _resolve(parsed: ParsedURL, raw: str, is_invalid: bool, default_scheme: str):
    """Checks the raw match results and classifies the source."""
    if parsed.scheme is None:
        logger.warning(
            "Valid scheme part of URL '%s' was not found! It will be set to default ('%s')!",
            raw,
            default_scheme,
        )
        parsed.source_type = get_source_type(default_scheme)
        if parsed.source_type == SourceType.UNKNOWN:
            raise URLError(f"Unsupported default scheme '{default_scheme}'!")
    else:
        parsed.source_type = get_source_type(parsed.scheme)
        if parsed.source_type == SourceType.UNKNOWN:
            raise URLError(f"Unsupported scheme '{parsed.scheme}' of URL '{raw}'!")

    if parsed.source_type == SourceType.FILE:
        if parsed.path is None or is_invalid:
            raise URLError(f"Bad format of URL '{raw}'!")
        return

    if parsed.host is None or is_invalid:
        raise URLError(f"Bad format of URL '{raw}'!")

    if parsed.userinfo is not None:
        logger.warning(
            "Deprecated userinfo part '%s' was found in URL '%s'! It will be ignored!",
            parsed.userinfo,
            raw,
        )


def parse_url(raw: str, default_scheme: str = DEFAULT_URL_SCHEME) -> ParsedURL:
    """
    Parses and normalizes a URL.

    Each component pattern must match exactly where the previous one ended and
    the whole input must be consumed. Raises URLError for invalid or
    unsupported URLs.
    """
    parsed = ParsedURL()
    text = raw
    cursor = 0

    for name, pattern in _URL_PATTERNS:
        if name == "path":
            # The authority is matched raw, everything after it is re-quoted
            text = text[:cursor] + percent_encode(text[cursor:])

        match = pattern.match(text, cursor)
        if match:
            setattr(parsed, name, match.group(0))
            cursor = match.end()

    logger.debug("Parsed URL parts of '%s': %s", raw, parsed.components())

    _resolve(parsed, raw, cursor != len(text), default_scheme)
    parsed.normalize(default_scheme)

    logger.debug("Normalized URL parts of '%s': %s", raw, parsed.components())
    return parsed


def is_path_only(text: str) -> bool:
    """True when `text` is a reference made of a path (plus query/fragment)."""
    if not text or text.startswith("//") or _SCHEME_PATTERN.match(text):
        return False
    return any(pattern.fullmatch(text) for pattern in _PATH_ONLY_PATTERNS)


def remove_dot_segments(path: str) -> str:
    """Removes '.' and '..' segments from an absolute path (RFC3986 5.2.4)."""
    segments = path.split("/")
    resolved: List[str] = []
    for segment in segments:
        if segment == "..":
            if len(resolved) > 1:
                resolved.pop()
        elif segment != ".":
            resolved.append(segment)

    if segments[-1] in (".", ".."):
        resolved.append("")

    result = "/".join(resolved)
    if not result.startswith("/"):
        result = "/" + result
    return result


def _split_suffix(reference: str) -> Tuple[str, str]:
    """Splits a reference into its path and its ?query#fragment suffix."""
    positions = [pos for pos in (reference.find("?"), reference.find("#")) if pos >= 0]
    if not positions:
        return reference, ""
    cut = min(positions)
    return reference[:cut], reference[cut:]


def resolve_location(location: str, base: ParsedURL) -> str:
    """
    Builds the URL a redirect points to.

    A Location with a scheme replaces the whole URL. A network-path reference
    ('//host/...') keeps only the scheme of `base`. A path starting with '/'
    replaces path, query and fragment of `base`; a relative path replaces the
    last segment of the base path. A query or fragment alone replaces only
    that part. Dot segments are removed from the result.
    """
    location = location.strip()
    if not location:
        raise URLError("Empty Location of redirect!")

    if location.startswith("//"):
        location = f"{base.scheme}{location[2:]}"

    if _SCHEME_PATTERN.match(location):
        target = parse_url(location, base.scheme or DEFAULT_URL_SCHEME)
        target.path = remove_dot_segments(target.path or "/")
        return target.geturl()

    encoded = percent_encode(location)
    prefix = f"{base.scheme}{base.authority()}{base.path or '/'}"
    if encoded.startswith("?"):
        return f"{prefix}{encoded}"
    if encoded.startswith("#"):
        return f"{prefix}{base.query or ''}{encoded}"

    if not is_path_only(encoded):
        raise URLError(f"Unable to resolve redirect target '{location}'!")

    if not encoded.startswith("/"):
        base_path = base.path or "/"
        encoded = base_path[: base_path.rfind("/") + 1] + encoded

    path, suffix = _split_suffix(encoded)
    return f"{base.scheme}{base.authority()}{remove_dot_segments(path)}{suffix}"
