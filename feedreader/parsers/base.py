"""
Base classes and interfaces for feed parsers.

This module defines the contract that all feed parsers must follow.
"""

from typing import Protocol

from feedreader.models import DocType, FeedDocument


class FeedParser(Protocol):
    """
    Protocol for feed parsers.

    Classes implementing this protocol receive the raw document bytes and the
    declared document type and turn them into a FeedDocument.
    """

    def parse(self, body: bytes, doc_type: DocType, source: str) -> FeedDocument:
        """Parses a feed document; raises FeedError when it is not a usable feed."""
