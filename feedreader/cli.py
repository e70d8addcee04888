"""Command line parsing and logging setup for the feed reader."""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from feedreader.errors import UsageError

PROGNAME = "feedreader"

DESCRIPTION = """\
Reads RSS 2.0 and Atom feeds from http(s):// or file:// sources and prints
the title of the feed and of each of its entries.
"""


class FeedReaderArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad invocations as UsageError."""

    def error(self, message: str):  # type: ignore[override]
        self.print_usage(sys.stdout)
        raise UsageError(message)


class LogFormatter(logging.Formatter):
    """Renders `feedreader: <message>`, with a prefix for warnings."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno == logging.WARNING:
            message = f"Warning: {message}"
        return f"{PROGNAME}: {message}"


def configure_logging(verbose: bool = False, stream=None) -> logging.Handler:
    """Installs the single stderr handler of the `feedreader` logger."""
    root = logging.getLogger(PROGNAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(LogFormatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False
    return handler


def build_parser() -> FeedReaderArgumentParser:
    parser = FeedReaderArgumentParser(
        prog=PROGNAME,
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", nargs="?", default=None, help="URL of the feed source")
    parser.add_argument(
        "-f",
        "--feedfile",
        default=None,
        help="File with one URL per line ('#' starts a comment)",
    )
    parser.add_argument("-c", "--certfile", default=None, help="File with trusted CA certificates")
    parser.add_argument(
        "-C", "--certaddr", default=None, help="Directory with trusted CA certificates"
    )

    output = parser.add_argument_group("entry details")
    output.add_argument(
        "-T", dest="show_time", action="store_true", default=None, help="Show the time of the last update"
    )
    output.add_argument(
        "-a", dest="show_author", action="store_true", default=None, help="Show the author"
    )
    output.add_argument(
        "-u", dest="show_url", action="store_true", default=None, help="Show the associated URL"
    )

    parser.add_argument(
        "--check-mime",
        action="store_true",
        default=None,
        help="Reject HTTP documents whose Content-Type is not an XML feed type",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the server on each send/receive (default: 5)",
    )
    parser.add_argument("--config", default=None, help="JSON config file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=None, help="Enable verbose logging"
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Parses the command line into a dict of options.

    Options that were not given are None. Exactly one of the URL and
    the feedfile must be given.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if (args.url is None) == (args.feedfile is None):
        parser.error("Either URL or feedfile (-f) must be given, but not both!")

    return vars(args)
