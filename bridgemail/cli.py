"""Command line entry point: ``bridgemail send`` and ``bridgemail reply``."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from rich.console import Console

from bridgemail import __version__
from bridgemail.core.models import FetchedMessage, SendOptions
from bridgemail.core.services.fetch import MessageFetchService
from bridgemail.core.services.send import EmailSendService
from bridgemail.utils.config import Settings, resolve_settings
from bridgemail.utils.console import (
    get_console,
    get_error_console,
    print_error,
    print_info,
    print_status,
    print_success,
)
from bridgemail.utils.errors import (
    MailerError,
    MessageNotFoundError,
    MissingRequiredFieldError,
    format_error_message,
)
from bridgemail.utils.logging import get_logger, init_logging

logger = get_logger(__name__)

EPILOG = """\
Input: plain text or HTML on stdin. HTML passes through, plain text is
escaped and line breaks become <br>. For markdown, pipe through pandoc:
  cat msg.md | pandoc -f markdown -t html | bridgemail send ...
"""


## Argument Parsing


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("to", help="Recipient address")
    parser.add_argument("subject", help="Subject line")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug output"
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Credentials file (default: ~/.config/bridgemail/.env)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bridgemail",
        description="Send HTML email through a local SMTP/IMAP bridge",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="<send|reply>")
    subparsers.required = True

    send_parser = subparsers.add_parser("send", help="Send a new email", epilog=EPILOG)
    _add_common_arguments(send_parser)

    reply_parser = subparsers.add_parser(
        "reply", help="Send a reply with threading", epilog=EPILOG
    )
    _add_common_arguments(reply_parser)
    reply_parser.add_argument(
        "--quote-message-id",
        metavar="ID",
        help="Message-ID to reply to (fetches and quotes it)",
    )
    reply_parser.add_argument(
        "--in-reply-to",
        metavar="ID",
        help="Message-ID for threading only (no quote)",
    )
    reply_parser.add_argument(
        "--references", metavar="IDS", help="Full references chain"
    )

    return parser


## Command Execution


async def fetch_quoted_message(settings: Settings, message_id: str) -> FetchedMessage:
    """Fetch the message to quote.

    Raises:
        MessageNotFoundError: If the inbox has no message with that id
    """
    service = MessageFetchService(settings.imap, settings.verify_tls)
    fetched = await service.fetch_message_by_id(message_id)

    if fetched is None:
        raise MessageNotFoundError(
            f"Could not find message with ID {message_id}",
            details={"message_id": message_id},
        )
    return fetched


async def run_command(
    args: argparse.Namespace,
    body: str,
    settings: Settings,
    console: Optional[Console] = None,
) -> int:
    """Run a parsed send/reply command. Raises MailerError on failure."""
    quote_id = getattr(args, "quote_message_id", None)
    in_reply_to = getattr(args, "in_reply_to", None)
    references = getattr(args, "references", None)
    quoted_message: Optional[FetchedMessage] = None

    # Fail on missing credentials before any network activity
    settings.smtp.require_credentials()
    if quote_id:
        settings.imap.require_credentials()

    logger.debug(f"Command: {args.command}")
    logger.debug(f"To: {args.to}")
    logger.debug(f"Subject: {args.subject}")
    logger.debug(f"Body length: {len(body)}")

    if quote_id:
        print_status(f"Fetching message {quote_id}...", console)
        quoted_message = await fetch_quoted_message(settings, quote_id)
        in_reply_to = quote_id
        references = quoted_message.references

    options = SendOptions(
        to=args.to,
        subject=args.subject,
        body=body,
        in_reply_to=in_reply_to,
        references=references,
        quoted_message=quoted_message,
    )

    result = await EmailSendService(settings.smtp, settings.verify_tls).send(options)

    print_success(f"Sent to {result.to}: {result.subject}", console)
    print_info(f"Message-ID: {result.message_id}", console)
    return 0


def read_body(stream: TextIO) -> str:
    """Read the message body from a stream, rejecting blank input."""
    body = stream.read()
    if not body.strip():
        raise MissingRequiredFieldError("No email body provided via stdin")
    return body.strip()


def main(argv: Optional[Sequence[str]] = None, stdin: Optional[TextIO] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code: 0 on success, 1 on any error, 130 when interrupted
    """
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code == 0 else 1

    verbose = args.verbose

    try:
        settings = resolve_settings(env_file=args.env_file)
        init_logging(
            "DEBUG" if verbose else settings.log_level,
            log_to_file=settings.log_to_file,
            console=get_error_console(),
        )

        body = read_body(stdin or sys.stdin)
        return asyncio.run(run_command(args, body, settings, get_console()))

    except KeyboardInterrupt:
        print_error("Interrupted by user")
        return 130

    except MailerError as e:
        logger.debug("Command failed", extra={"error": e.to_dict()})
        print_error(f"Error: {format_error_message(e)}")
        if verbose:
            get_error_console().print_exception()
        return 1

    except Exception as e:
        print_error(f"Failed: {e}")
        if verbose:
            get_error_console().print_exception()
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())
