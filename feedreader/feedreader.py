"""
Feed Reader
This script downloads RSS 2.0 and Atom feeds over HTTP, HTTPS or from local
files, follows redirects and prints the title of each feed and its entries.
"""

import logging
import sys
from typing import List, Optional

from feedreader.buffer import ResponseBuffer
from feedreader.cli import configure_logging, parse_args
from feedreader.config import Settings, build_settings
from feedreader.errors import ExitCode, FeedReaderError, InternalError
from feedreader.models import Decision, DocType, EntryState, SourceType
from feedreader.parsers.base import FeedParser
from feedreader.parsers.feed import XMLFeedParser
from feedreader.services.printer import FeedPrinter
from feedreader.services.response import check_response, parse_response
from feedreader.services.transport import TransportService
from feedreader.url import parse_url
from feedreader.url_queue import URLQueue, URLQueueEntry, parse_feedfile

logger = logging.getLogger(__name__)


def create_url_queue(settings: Settings) -> URLQueue:
    """Builds the queue from the single URL or from the feedfile."""
    if settings.feedfile:
        return parse_feedfile(settings.feedfile)
    return URLQueue([settings.url] if settings.url else [])


def process_entry(
    entry: URLQueueEntry,
    buffer: ResponseBuffer,
    transport: TransportService,
    settings: Settings,
    parser: FeedParser,
    printer: FeedPrinter,
) -> None:
    """Loads, checks, parses and prints the document of one queue entry."""
    url = parse_url(entry.url, settings.default_scheme)
    entry.state = EntryState.URL_PARSED

    buffer.clear()
    transport.load(url, buffer)
    entry.state = EntryState.LOADED

    if url.source_type == SourceType.FILE:
        body = buffer.content()
        doc_type = DocType.XML
    else:
        response = parse_response(buffer, entry.url)
        entry.state = EntryState.RESPONSE_PARSED
        if check_response(response, entry, url, settings.check_mime) == Decision.REDIRECT:
            entry.state = EntryState.REDIRECTED
            return
        body = response.body
        doc_type = response.doc_type

    document = parser.parse(body, doc_type, entry.url)
    printer.print_document(document)
    entry.state = EntryState.SUCCEEDED


def do_feedread(
    queue: URLQueue,
    settings: Settings,
    parser: Optional[FeedParser] = None,
    printer: Optional[FeedPrinter] = None,
) -> URLQueue:
    """
    Processes every entry of the queue in list order.

    Redirect targets spliced after an entry are processed right after it.
    Errors are logged and recorded on their entry; in feedfile mode the
    remaining entries are still processed.
    """
    parser = parser or XMLFeedParser()
    printer = printer or FeedPrinter(settings)
    buffer = ResponseBuffer()

    with TransportService(settings) as transport:
        for entry in queue:
            logger.debug("Processing '%s' (depth %d)", entry.url, entry.depth)
            try:
                process_entry(entry, buffer, transport, settings, parser, printer)
            except FeedReaderError as e:
                logger.error("%s: %s", e.header, e)
                entry.result = e.exit_code
                entry.state = EntryState.FAILED
                if not settings.feedfile:
                    break

    return queue


def get_return_code(queue: URLQueue) -> int:
    """Returns the exit code of the run: the first failure in queue order."""
    return queue.get_return_code()


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution entry point."""
    configure_logging()

    try:
        cli_values = parse_args(argv)
        configure_logging(bool(cli_values.get("verbose")))

        settings = build_settings(cli_values, config_path=cli_values.get("config"))
        if settings.verbose:
            configure_logging(True)

        queue = create_url_queue(settings)
        if len(queue) == 0:
            logger.warning("No URL to process was found!")
            return int(ExitCode.SUCCESS)

        do_feedread(queue, settings)
        return get_return_code(queue)
    except FeedReaderError as e:
        logger.error("%s: %s", e.header, e)
        return int(e.exit_code)
    except Exception as e:  # pylint: disable=broad-exception-caught
        error = InternalError(str(e) or type(e).__name__)
        logger.error("%s: %s", error.header, error)
        logger.debug("Traceback of the internal error", exc_info=True)
        return int(error.exit_code)


if __name__ == "__main__":
    sys.exit(main())
