"""
Growable byte buffer and ranges into it.

The response of one request is read into a single ResponseBuffer. Parsed
fields are kept as Span objects (offset and length) and resolved against the
buffer on access, so growing the buffer never invalidates them.
"""

import re
from typing import Callable, NamedTuple, Optional

INIT_BUFFER_SIZE = 16384


class Span(NamedTuple):
    """A (offset, length) range into a ResponseBuffer."""

    start: int
    length: int

    @property
    def end(self) -> int:
        """Offset one past the last byte of the range."""
        return self.start + self.length

    @classmethod
    def of_match(cls, match: "re.Match[bytes]", group: int = 0) -> "Span":
        """Range covered by a match (or one of its groups)."""
        return cls(match.start(group), match.end(group) - match.start(group))


class ResponseBuffer:
    """
    Byte arena with explicit capacity.

    The capacity is always strictly greater than the content length and
    doubles (zero-filled) whenever a read would leave no free room.
    """

    def __init__(self, capacity: int = INIT_BUFFER_SIZE):
        if capacity < 2:
            raise ValueError("capacity must be at least 2 bytes")
        self._data = bytearray(capacity)
        self.length = 0

    def __len__(self) -> int:
        return self.length

    @property
    def capacity(self) -> int:
        """Number of bytes currently allocated."""
        return len(self._data)

    @property
    def free(self) -> int:
        """Bytes that can be written before the buffer has to grow."""
        return self.capacity - self.length - 1

    def grow(self) -> None:
        """Doubles the capacity, zero-filling the new region."""
        self._data.extend(bytes(self.capacity))

    def clear(self) -> None:
        """Erases the content so the buffer can be reused for the next URL."""
        self._data[: self.length] = bytes(self.length)
        self.length = 0

    def read_from(self, readinto: Callable[[memoryview], int]) -> int:
        """
        Lets `readinto` fill the free region and commits what it wrote.

        The buffer is doubled first when it is full. Returns the number of
        bytes written (0 means end of data).
        """
        if self.free <= 0:
            self.grow()

        view = memoryview(self._data)[self.length : self.capacity - 1]
        try:
            count = readinto(view)
        finally:
            view.release()

        count = count or 0
        self.length += count
        return count

    def find(self, sub: bytes, start: int = 0, end: int = -1) -> int:
        """Offset of the first `sub` within the content, or -1."""
        if end < 0:
            end = self.length
        return self._data.find(sub, start, end)

    def match(self, pattern: "re.Pattern[bytes]", start: int, end: int) -> Optional["re.Match[bytes]"]:
        """Matches a bytes pattern in place, anchored at `start` and ending by `end`."""
        return pattern.match(self._data, start, min(end, self.length))

    def getbytes(self, span: Span) -> bytes:
        """Copies the bytes a span refers to."""
        if span.end > self.length:
            raise IndexError(f"span {span} exceeds buffer content ({self.length})")
        return bytes(self._data[span.start : span.end])

    def gettext(self, span: Span) -> str:
        """Decodes a span as ISO-8859-1 (the header charset)."""
        return self.getbytes(span).decode("iso-8859-1")

    def tail(self, start: int) -> bytes:
        """Copies the content from `start` to the end."""
        return bytes(self._data[start : self.length])

    def content(self) -> bytes:
        """Copies the whole content."""
        return self.tail(0)
