"""
Queue of URLs to be processed.

The queue is a singly linked list. Redirect targets are spliced in right after
the entry that produced them, so they are visited before any later URL.
"""

import logging
from typing import Iterator, List, Optional

from feedreader.errors import ExitCode, FileError
from feedreader.models import EntryState

logger = logging.getLogger(__name__)

COMMENT_SIGN = "#"


class URLQueueEntry:
    """One URL awaiting processing."""

    def __init__(self, url: str, depth: int = 0):
        self.url = url
        self.depth = depth
        self.result = ExitCode.SUCCESS
        self.state = EntryState.PENDING
        self.next: Optional["URLQueueEntry"] = None

    def __repr__(self) -> str:
        return f"URLQueueEntry({self.url!r}, depth={self.depth}, state={self.state.name})"

    def splice(self, url: str) -> "URLQueueEntry":
        """Inserts a redirect target directly after this entry."""
        entry = URLQueueEntry(url, self.depth + 1)
        entry.next = self.next
        self.next = entry
        return entry


class URLQueue:
    """Linked list of URLQueueEntry objects, iterated in list order."""

    def __init__(self, urls: Optional[List[str]] = None):
        self.head: Optional[URLQueueEntry] = None
        self._tail: Optional[URLQueueEntry] = None
        for url in urls or []:
            self.append(url)

    def append(self, url: str) -> URLQueueEntry:
        """Adds a user-given URL (depth 0) to the end of the queue."""
        entry = URLQueueEntry(url)
        if self._tail is None:
            self.head = self._tail = entry
            return entry

        # Redirects may have been spliced after the remembered tail
        while self._tail.next is not None:
            self._tail = self._tail.next
        self._tail.next = entry
        self._tail = entry
        return entry

    def __iter__(self) -> Iterator[URLQueueEntry]:
        # Follows the links live, so entries spliced after the current one are visited
        entry = self.head
        while entry is not None:
            yield entry
            entry = entry.next

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def urls(self) -> List[str]:
        return [entry.url for entry in self]

    def get_return_code(self) -> int:
        """Returns the first non-success result in list order."""
        for entry in self:
            if entry.result != ExitCode.SUCCESS:
                return int(entry.result)
        return int(ExitCode.SUCCESS)


def parse_feedfile_lines(lines) -> List[str]:
    """Extracts URLs, skipping blank lines and '#' comments."""
    urls = []
    for line in lines:
        url = line.strip()
        if not url or url.startswith(COMMENT_SIGN):
            continue
        urls.append(url)
    return urls


def parse_feedfile(path: str) -> URLQueue:
    """Reads a feedfile (one URL per line) into a queue."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            urls = parse_feedfile_lines(f)
    except OSError as e:
        raise FileError(f"{e.strerror} (path '{path}')") from e
    except UnicodeDecodeError as e:
        raise FileError(f"Feedfile is not valid UTF-8 (path '{path}')") from e

    logger.debug("Found %d URL(s) in feedfile '%s'", len(urls), path)
    return URLQueue(urls)
