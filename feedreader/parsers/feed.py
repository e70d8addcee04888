"""
RSS 2.0 / Atom feed parser implementation.

This module provides the XMLFeedParser class which turns a downloaded
document into a FeedDocument using feedparser.
"""

import io
import logging
import re
from typing import Any, List, Optional

import feedparser  # type: ignore

from feedreader.errors import FeedError
from feedreader.models import DocType, FeedDocument, FeedEntry

logger = logging.getLogger(__name__)

RSS_VERSIONS = {"rss20"}
ATOM_VERSIONS = {"atom10", "atom03"}


class XMLFeedParser:
    """Parses RSS 2.0 and Atom documents."""

    def _clean_text(self, value: Optional[str], is_html: bool = False) -> Optional[str]:
        """Removes HTML tags (for HTML content) and collapses whitespace."""
        if value is None:
            return None
        if is_html:
            value = re.sub(re.compile("<.*?>"), "", value)
        return " ".join(value.split())

    def _field(self, item: Any, name: str) -> Optional[str]:
        detail = item.get(f"{name}_detail") or {}
        return self._clean_text(item.get(name), detail.get("type") == "text/html")

    def _entry(self, item: Any) -> FeedEntry:
        return FeedEntry(
            title=self._field(item, "title"),
            author=item.get("author"),
            link=item.get("link"),
            # RSS only has pubDate, which feedparser stores as 'published'
            updated=item["updated"] if "updated" in item else item.get("published"),
        )

    def _check_version(self, version: str, doc_type: DocType, source: str) -> None:
        if not version:
            raise FeedError(f"Unexpected root element of XML from '{source}'! Expected feed/rss")

        if version.startswith("rss") and version not in RSS_VERSIONS:
            raise FeedError(f"Unsupported version of RSS ('{version}') in '{source}'! Supported is 2.0")
        if version not in RSS_VERSIONS | ATOM_VERSIONS:
            raise FeedError(f"Unsupported feed format '{version}' of '{source}'!")

        if doc_type == DocType.RSS and version not in RSS_VERSIONS:
            logger.warning("Document from '%s' was declared as RSS but it is Atom!", source)
        elif doc_type == DocType.ATOM and version not in ATOM_VERSIONS:
            logger.warning("Document from '%s' was declared as Atom but it is RSS!", source)

    def parse(self, body: bytes, doc_type: DocType, source: str) -> FeedDocument:
        """Parses a single feed document."""
        feed = feedparser.parse(io.BytesIO(body))
        version = feed.get("version", "")

        if feed.get("bozo") and not version:
            raise FeedError(f"Unable to parse XML document from '{source}'! ({feed.get('bozo_exception')})")
        self._check_version(version, doc_type, source)
        if feed.get("bozo"):
            logger.warning("Feed from '%s' may be malformed: %s", source, feed.get("bozo_exception"))

        entries: List[FeedEntry] = [self._entry(item) for item in feed.entries]
        logger.debug("Parsed %d entries (%s) from '%s'", len(entries), version, source)

        return FeedDocument(title=self._field(feed.feed, "title"), entries=entries)
