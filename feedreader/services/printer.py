"""
Printer service module for rendering feed documents.

This module provides the FeedPrinter class which handles:
- Rendering the header line of a feed source
- Rendering entries with the optional author, URL and update time fields
- Writing the result to standard output
"""

import sys
from typing import List, Optional, TextIO

from feedreader.config import Settings
from feedreader.models import FeedDocument, FeedEntry

UNKNOWN_SOURCE = "unknown"
MISSING_TITLE = "(no title)"


class FeedPrinter:
    """Service for rendering parsed feeds as plain text."""

    def __init__(self, settings: Settings, stream: Optional[TextIO] = None):
        self.settings = settings
        self.stream = stream

    def _render_entry(self, entry: FeedEntry) -> List[str]:
        """Renders one entry of a feed."""
        lines = [entry.get("title") or MISSING_TITLE]

        if entry.get("author") and self.settings.show_author:
            lines.append(f"Author: {entry['author']}")
        if entry.get("link") and self.settings.show_url:
            lines.append(f"URL: {entry['link']}")
        if entry.get("updated") and self.settings.show_time:
            lines.append(f"Updated: {entry['updated']}")

        if self.settings.show_details:
            lines.append("")
        return lines

    def render(self, document: FeedDocument) -> str:
        """Renders the text for one feed document."""
        lines = [f"*** {document.get('title') or UNKNOWN_SOURCE} ***"]
        for entry in document["entries"]:
            lines.extend(self._render_entry(entry))

        # Documents read from a feedfile are separated by a blank line
        if self.settings.feedfile:
            lines.append("")
        return "\n".join(lines) + "\n"

    def print_document(self, document: FeedDocument) -> None:
        """Writes a rendered document to the output stream."""
        stream = self.stream or sys.stdout
        stream.write(self.render(document))
        stream.flush()
