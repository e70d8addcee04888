"""Unit tests for the transport service."""

import os
import socket
import ssl
import tempfile
import threading
import time
import unittest
from unittest.mock import MagicMock, patch

from feedreader.buffer import ResponseBuffer
from feedreader.config import Settings
from feedreader.errors import (
    CommunicationError,
    ConnectError,
    FileError,
    PathError,
    VerificationError,
)
from feedreader.services.transport import TransportService, build_request
from feedreader.url import parse_url


class OneShotServer:
    """Accepts a single connection, records the request and sends a canned reply."""

    def __init__(self, reply: bytes, hold: float = 0.0):
        self.reply = reply
        self.hold = hold
        self.request = b""
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self) -> "OneShotServer":
        self.thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.thread.join(timeout=5)
        self.sock.close()

    def _serve(self) -> None:
        conn, _ = self.sock.accept()
        with conn:
            while b"\r\n\r\n" not in self.request:
                chunk = conn.recv(1024)
                if not chunk:
                    break
                self.request += chunk
            conn.sendall(self.reply)
            # Keeps the connection open without sending anything more
            time.sleep(self.hold)


class TestBuildRequest(unittest.TestCase):
    def test_request_lines(self):
        url = parse_url("http://example.com:8080/feed?x=1#top")
        request = build_request(url, "feedreader/1.0")
        self.assertEqual(
            request,
            b"GET /feed?x=1#top HTTP/1.1\r\n"
            b"Host: example.com\r\n"
            b"Connection: close\r\n"
            b"User-Agent: feedreader/1.0\r\n\r\n",
        )


class TestLoadHttp(unittest.TestCase):
    def test_load(self):
        reply = b"HTTP/1.1 200 OK\r\nContent-Type: text/xml\r\n\r\n" + b"<rss/>" * 5000
        with OneShotServer(reply) as server:
            url = parse_url(f"http://127.0.0.1:{server.port}/feed.xml")
            with TransportService(Settings(timeout=2)) as transport:
                buffer = transport.load(url, ResponseBuffer(128))

        self.assertEqual(buffer.content(), reply)
        self.assertTrue(server.request.startswith(b"GET /feed.xml HTTP/1.1\r\n"))
        self.assertIn(b"Host: 127.0.0.1\r\n", server.request)

    def test_partial_response_on_timeout(self):
        reply = b"HTTP/1.1 200 OK\r\n\r\n<rss>"
        with OneShotServer(reply, hold=1.0) as server:
            url = parse_url(f"http://127.0.0.1:{server.port}/")
            with self.assertLogs("feedreader.services.transport", level="WARNING"):
                buffer = TransportService(Settings(timeout=0.2)).load(url, ResponseBuffer())
        self.assertEqual(buffer.content(), reply)

    def test_no_response(self):
        with OneShotServer(b"", hold=1.0) as server:
            url = parse_url(f"http://127.0.0.1:{server.port}/")
            with self.assertRaises(CommunicationError):
                TransportService(Settings(timeout=0.2)).load(url, ResponseBuffer())

    def test_empty_response(self):
        with OneShotServer(b"") as server:
            url = parse_url(f"http://127.0.0.1:{server.port}/")
            with self.assertRaises(CommunicationError):
                TransportService(Settings(timeout=2)).load(url, ResponseBuffer())

    def test_connection_refused(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        sock.close()

        url = parse_url(f"http://127.0.0.1:{port}/")
        with self.assertRaises(ConnectError):
            TransportService(Settings(timeout=1)).load(url, ResponseBuffer())


class TestLoadFile(unittest.TestCase):
    def test_load_file(self):
        content = b"<?xml version='1.0'?><rss version='2.0'></rss>" * 1000
        with tempfile.NamedTemporaryFile(suffix=".xml", delete=False) as f:
            f.write(content)
            path = f.name
        try:
            url = parse_url(f"file://{path}")
            buffer = TransportService(Settings()).load(url, ResponseBuffer(64))
        finally:
            os.remove(path)
        self.assertEqual(buffer.content(), content)

    def test_missing_file(self):
        url = parse_url("file:///nonexistent/feed.xml")
        with self.assertRaises(FileError):
            TransportService(Settings()).load(url, ResponseBuffer())


class TestLoadHttps(unittest.TestCase):
    def setUp(self):
        self.url = parse_url("https://example.com/feed")

    def test_bad_certfile(self):
        transport = TransportService(Settings(certfile="/nonexistent/ca.pem"))
        with self.assertRaises(PathError):
            transport.load(self.url, ResponseBuffer())

    def test_bad_certaddr(self):
        with tempfile.NamedTemporaryFile() as f:
            transport = TransportService(Settings(certaddr=f.name))
            with self.assertRaises(PathError):
                transport.load(self.url, ResponseBuffer())

    def test_context_is_cached(self):
        transport = TransportService(Settings())
        with patch("ssl.create_default_context") as mock_create:
            self.assertIs(transport._get_tls_context(), transport._get_tls_context())
        mock_create.assert_called_once_with()

    def test_verification_failure(self):
        error = ssl.SSLCertVerificationError("certificate verify failed")
        error.verify_message = "certificate has expired"
        context = MagicMock()
        context.wrap_socket.side_effect = error
        raw_sock = MagicMock()

        transport = TransportService(Settings())
        with patch.object(transport, "_get_tls_context", return_value=context), patch.object(
            transport, "_connect", return_value=raw_sock
        ):
            with self.assertRaises(VerificationError) as ctx:
                transport.load(self.url, ResponseBuffer())

        self.assertIn("certificate has expired", str(ctx.exception))
        context.wrap_socket.assert_called_once_with(raw_sock, server_hostname="example.com")
        raw_sock.close.assert_called_once()

    def test_handshake_failure(self):
        context = MagicMock()
        context.wrap_socket.side_effect = ssl.SSLError("handshake failure")
        raw_sock = MagicMock()

        transport = TransportService(Settings())
        with patch.object(transport, "_get_tls_context", return_value=context), patch.object(
            transport, "_connect", return_value=raw_sock
        ):
            with self.assertRaises(ConnectError):
                transport.load(self.url, ResponseBuffer())

    def test_missing_peer_certificate(self):
        tls_sock = MagicMock()
        tls_sock.getpeercert.return_value = {}
        context = MagicMock()
        context.wrap_socket.return_value = tls_sock

        transport = TransportService(Settings())
        with patch.object(transport, "_get_tls_context", return_value=context), patch.object(
            transport, "_connect", return_value=MagicMock()
        ):
            with self.assertRaises(VerificationError):
                transport.load(self.url, ResponseBuffer())
        tls_sock.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
