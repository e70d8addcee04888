"""Unit tests for the URL queue and feedfile parsing."""

import os
import tempfile
import unittest

from feedreader.errors import ExitCode, FileError
from feedreader.models import EntryState
from feedreader.url_queue import URLQueue, parse_feedfile, parse_feedfile_lines


class TestURLQueue(unittest.TestCase):
    def test_append_and_iterate(self):
        queue = URLQueue(["http://a", "http://b"])
        self.assertEqual(queue.urls(), ["http://a", "http://b"])
        self.assertEqual(len(queue), 2)
        self.assertEqual(queue.head.state, EntryState.PENDING)

    def test_empty_queue(self):
        queue = URLQueue()
        self.assertIsNone(queue.head)
        self.assertEqual(len(queue), 0)
        self.assertEqual(queue.get_return_code(), 0)

    def test_splice_is_visited_next(self):
        queue = URLQueue(["http://a", "http://b"])
        visited = []
        for entry in queue:
            visited.append(entry.url)
            if entry.url == "http://a":
                entry.splice("http://a2")
        self.assertEqual(visited, ["http://a", "http://a2", "http://b"])

    def test_append_after_splice(self):
        queue = URLQueue(["http://a"])
        queue.head.splice("http://a2")
        queue.append("http://b")
        self.assertEqual(queue.urls(), ["http://a", "http://a2", "http://b"])
        self.assertEqual(queue.head.next.depth, 1)
        self.assertEqual(queue.head.next.next.depth, 0)

    def test_return_code_is_first_failure(self):
        queue = URLQueue(["http://a", "http://b", "http://c"])
        entries = list(queue)
        entries[1].result = ExitCode.HTTP
        entries[2].result = ExitCode.FEED
        self.assertEqual(queue.get_return_code(), 8)


class TestFeedfile(unittest.TestCase):
    def test_parse_lines(self):
        lines = "  # comment\n\nhttp://a\n   http://b  \n".splitlines(True)
        self.assertEqual(parse_feedfile_lines(lines), ["http://a", "http://b"])

    def test_parse_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False, encoding="utf-8") as f:
            f.write("# feeds\nhttps://example.com/rss\n\n  file:///tmp/feed.xml\n")
            path = f.name
        try:
            queue = parse_feedfile(path)
        finally:
            os.remove(path)
        self.assertEqual(queue.urls(), ["https://example.com/rss", "file:///tmp/feed.xml"])

    def test_missing_file(self):
        with self.assertRaises(FileError) as ctx:
            parse_feedfile("/nonexistent/feeds.txt")
        self.assertIn("/nonexistent/feeds.txt", str(ctx.exception))
        self.assertEqual(ctx.exception.exit_code, ExitCode.FILE)


if __name__ == "__main__":
    unittest.main()
