"""
Data models for the feed reader.
"""

from enum import Enum
from typing import List, Optional, TypedDict


class SourceType(Enum):
    """Where a document is loaded from, derived from the URL scheme."""

    UNKNOWN = "unknown"
    FILE = "file"
    HTTP = "http"
    HTTPS = "https"


class DocType(Enum):
    """Declared document type, derived from the Content-Type header."""

    UNKNOWN = "unknown"
    RSS = "rss"
    ATOM = "atom"
    XML = "xml"


class EntryState(Enum):
    """Lifecycle of one queue entry."""

    PENDING = "pending"
    URL_PARSED = "url_parsed"
    LOADED = "loaded"
    RESPONSE_PARSED = "response_parsed"
    SUCCEEDED = "succeeded"
    REDIRECTED = "redirected"
    FAILED = "failed"


class Decision(Enum):
    """Outcome of checking an HTTP response."""

    PROCEED = "proceed"
    REDIRECT = "redirect"


class FeedEntry(TypedDict):
    """Type definition for one item of a feed."""

    title: Optional[str]
    author: Optional[str]
    link: Optional[str]
    updated: Optional[str]


class FeedDocument(TypedDict):
    """Type definition for a parsed feed document."""

    title: Optional[str]
    entries: List[FeedEntry]
