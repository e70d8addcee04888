"""
Transport service for loading feed documents.

This module provides the TransportService class which reads a document from
the local filesystem, or fetches it over plain TCP (HTTP) or TLS (HTTPS) with
a single GET request. Sockets run in non-blocking mode; every send and
receive that cannot proceed waits for readiness with a bounded timeout.
"""

import logging
import os
import selectors
import socket
import ssl
from typing import Optional
from urllib.parse import unquote

from feedreader.buffer import ResponseBuffer
from feedreader.config import Settings
from feedreader.errors import (
    CommunicationError,
    ConnectError,
    FileError,
    PathError,
    URLError,
    VerificationError,
)
from feedreader.models import SourceType
from feedreader.url import ParsedURL

logger = logging.getLogger(__name__)

HTTP_VERSION = "HTTP/1.1"

_RETRYABLE = (BlockingIOError, InterruptedError, ssl.SSLWantReadError, ssl.SSLWantWriteError)


def build_request(url: ParsedURL, user_agent: str) -> bytes:
    """Builds the GET request for a normalized URL."""
    lines = [
        f"GET {url.request_target()} {HTTP_VERSION}",
        f"Host: {url.host}",
        "Connection: close",
        f"User-Agent: {user_agent}",
        "",
        "",
    ]
    return "\r\n".join(lines).encode("iso-8859-1")


class TransportService:
    """
    Loads documents for parsed URLs into a ResponseBuffer.

    Use it as a context manager: the TLS context is created on the first HTTPS
    load, shared by the following ones and released on exit.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._tls_context: Optional[ssl.SSLContext] = None

    def __enter__(self) -> "TransportService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Releases the TLS context."""
        self._tls_context = None

    def load(self, url: ParsedURL, buffer: ResponseBuffer) -> ResponseBuffer:
        """Loads the document `url` points to into `buffer`."""
        if url.source_type == SourceType.FILE:
            return self.load_file(url, buffer)
        if url.source_type == SourceType.HTTPS:
            return self.load_https(url, buffer)
        if url.source_type == SourceType.HTTP:
            return self.load_http(url, buffer)
        raise URLError(f"Unsupported type of source ('{url.geturl()}')!")

    def load_file(self, url: ParsedURL, buffer: ResponseBuffer) -> ResponseBuffer:
        """Reads a local file, doubling the buffer whenever it fills up."""
        path = unquote(url.path or "")
        try:
            with open(path, "rb") as src:
                while buffer.read_from(src.readinto):
                    pass
        except OSError as e:
            raise FileError(f"Unable to open file on path '{path}'! ({e.strerror})") from e

        logger.debug("Read %d bytes from '%s'", buffer.length, path)
        return buffer

    def load_http(self, url: ParsedURL, buffer: ResponseBuffer) -> ResponseBuffer:
        sock = self._connect(url)
        try:
            self._exchange(sock, url, buffer)
        finally:
            sock.close()
        return buffer

    def load_https(self, url: ParsedURL, buffer: ResponseBuffer) -> ResponseBuffer:
        context = self._get_tls_context()
        raw_sock = self._connect(url)
        try:
            # server_hostname sets SNI, needed for name-based virtual hosts
            sock = context.wrap_socket(raw_sock, server_hostname=url.hostname)
        except ssl.SSLCertVerificationError as e:
            raw_sock.close()
            raise VerificationError(
                f"Unable to verify certificate of '{url.geturl()}'! ({e.verify_message})"
            ) from e
        except (ssl.SSLError, OSError) as e:
            raw_sock.close()
            raise ConnectError(f"Cannot connect to the '{url.geturl()}'! ({e})") from e

        try:
            if not sock.getpeercert():
                raise VerificationError(f"No certificate was presented by '{url.geturl()}'!")
            self._exchange(sock, url, buffer)
        finally:
            sock.close()
        return buffer

    def _get_tls_context(self) -> ssl.SSLContext:
        if self._tls_context is None:
            self._tls_context = self._create_tls_context()
        return self._tls_context

    def _create_tls_context(self) -> ssl.SSLContext:
        """Trust roots: system defaults, or the configured file and/or directory."""
        certfile = self.settings.certfile
        certaddr = self.settings.certaddr

        if not certfile and not certaddr:
            return ssl.create_default_context()

        if certfile and not os.path.isfile(certfile):
            raise PathError(f"Unable to set paths to certificate files! '{certfile}' is not a file!")
        if certaddr and not os.path.isdir(certaddr):
            raise PathError(
                f"Unable to set paths to certificate files! '{certaddr}' is not a directory!"
            )

        try:
            return ssl.create_default_context(cafile=certfile, capath=certaddr)
        except (ssl.SSLError, OSError) as e:
            raise PathError(f"Unable to set paths to certificate files! Please check given paths! ({e})") from e

    def _connect(self, url: ParsedURL) -> socket.socket:
        try:
            return socket.create_connection(
                (url.hostname, url.port_number), timeout=self.settings.timeout
            )
        except OSError as e:
            raise ConnectError(f"Cannot connect to the '{url.geturl()}'! ({e})") from e

    def _exchange(self, sock: socket.socket, url: ParsedURL, buffer: ResponseBuffer) -> None:
        request = build_request(url, self.settings.user_agent)
        logger.debug("Request:\n%s", request.decode("iso-8859-1"))

        sock.setblocking(False)
        with selectors.DefaultSelector() as selector:
            selector.register(sock, selectors.EVENT_WRITE)
            self._send_request(sock, selector, request, url)
            self._receive_response(sock, selector, buffer, url)

        logger.debug("Received %d bytes from '%s'", buffer.length, url.geturl())

    def _wait(
        self, sock: socket.socket, selector: selectors.BaseSelector, error: Exception, events: int
    ) -> bool:
        """Waits until the socket is ready for what the interrupted call needs."""
        # TLS may need the opposite direction (e.g. a read during a write)
        if isinstance(error, ssl.SSLWantReadError):
            events = selectors.EVENT_READ
        elif isinstance(error, ssl.SSLWantWriteError):
            events = selectors.EVENT_WRITE
        selector.modify(sock, events)
        return bool(selector.select(self.settings.timeout))

    def _send_request(
        self, sock: socket.socket, selector: selectors.BaseSelector, request: bytes, url: ParsedURL
    ) -> None:
        sent = 0
        while sent < len(request):
            try:
                sent += sock.send(request[sent:])
            except _RETRYABLE as e:
                if not self._wait(sock, selector, e, selectors.EVENT_WRITE):
                    raise CommunicationError(f"Unable to send request to the '{url.geturl()}'!") from e
            except OSError as e:
                raise CommunicationError(
                    f"Unable to send request to the '{url.geturl()}'! ({e})"
                ) from e

    def _receive_response(
        self, sock: socket.socket, selector: selectors.BaseSelector, buffer: ResponseBuffer, url: ParsedURL
    ) -> None:
        while True:
            try:
                if not buffer.read_from(sock.recv_into):
                    break
            except _RETRYABLE as e:
                if self._wait(sock, selector, e, selectors.EVENT_READ):
                    continue
                if buffer.length == 0:
                    raise CommunicationError(
                        f"Unable to get response from the '{url.geturl()}'!"
                    ) from e
                logger.warning(
                    "Response from '%s' timed out, using %d bytes received so far!",
                    url.geturl(),
                    buffer.length,
                )
                break
            except ssl.SSLZeroReturnError:
                break
            except OSError as e:
                raise CommunicationError(
                    f"Unable to get response from the '{url.geturl()}'! ({e})"
                ) from e

        if buffer.length == 0:
            raise CommunicationError(f"Empty response from the '{url.geturl()}'!")
