# =============================================================================
# mailsync Command Line
# =============================================================================
# A small developer front-end over the public operations, handy for poking
# at a real account without the desktop shell:
#
#   mailsync --email me@gmail.com --provider gmail folders
#   mailsync ... messages --folder-path INBOX --since 2024-03-01
#   mailsync ... mark-read --folder-path INBOX --uid 42 [--unread]
#   mailsync ... move --folder-path INBOX --uid 42 --to Archive
#   mailsync ... delete --folder-path INBOX --uid 42
#
# The access token is taken from --token, then $MAILSYNC_ACCESS_TOKEN, then
# the system keyring (service "mailsync:<provider>", user = email). Results
# are printed as JSON on stdout; logs go to stderr.
# =============================================================================

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import keyring

from mailsync import __app_name__, __version__, operations
from mailsync.config import Config, ConfigError, print_paths
from mailsync.core import folder_id
from mailsync.imap.errors import IMAPError

logger = logging.getLogger(__name__)

# Environment variable checked for the access token
TOKEN_ENV_VAR = "MAILSYNC_ACCESS_TOKEN"


class TokenNotFoundError(Exception):
    """Raised when no access token is available from any source."""
    pass


def keyring_service(provider: str) -> str:
    """
    Returns the service name used for keyring token storage.

    Tokens can be managed with the keyring CLI:
        keyring set mailsync:gmail user@gmail.com
    """
    return f"{__app_name__}:{provider.lower()}"


def resolve_token(args: argparse.Namespace) -> str:
    """
    Find the access token for this invocation.

    Raises:
        TokenNotFoundError: If no source provides one.
    """
    if args.token:
        return args.token

    token = os.environ.get(TOKEN_ENV_VAR)
    if token:
        return token

    # Retrieve token from system keyring
    token = keyring.get_password(keyring_service(args.provider), args.email)
    if not token:
        raise TokenNotFoundError(
            f"No access token for {args.email}. Pass --token, set ${TOKEN_ENV_VAR}, "
            f"or run: keyring set {keyring_service(args.provider)} {args.email}"
        )
    return token


# =============================================================================
# CLI Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="mailsync: IMAP folder and message sync for Gmail and Outlook",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    # Options shared by every subcommand
    account = argparse.ArgumentParser(add_help=False)
    account.add_argument("--email", required=True, help="Account email address")
    account.add_argument("--provider", required=True, help="Provider: gmail or outlook")
    account.add_argument("--account", help="Local account id (default: the email)")
    account.add_argument("--token", help=f"OAuth2 access token (default: ${TOKEN_ENV_VAR} or keyring)")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("folders", parents=[account], help="List folders")

    messages = subparsers.add_parser("messages", parents=[account], help="Sync messages of a folder")
    messages.add_argument("--folder-path", required=True, help="Server path of the folder")
    messages.add_argument("--folder-id", help="Local folder id (default: derived from the path)")
    messages.add_argument(
        "--since",
        type=datetime.fromisoformat,
        help="Only messages since this ISO date/time",
    )

    mark_read = subparsers.add_parser("mark-read", parents=[account], help="Mark a message read")
    mark_read.add_argument("--folder-path", required=True)
    mark_read.add_argument("--uid", required=True, type=int)
    mark_read.add_argument("--unread", action="store_true", help="Mark unread instead")

    move = subparsers.add_parser("move", parents=[account], help="Move a message")
    move.add_argument("--folder-path", required=True)
    move.add_argument("--uid", required=True, type=int)
    move.add_argument("--to", required=True, dest="target", help="Target folder path")

    delete = subparsers.add_parser("delete", parents=[account], help="Delete a message")
    delete.add_argument("--folder-path", required=True)
    delete.add_argument("--uid", required=True, type=int)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    return build_parser().parse_args(argv)


async def run_command(args: argparse.Namespace, config: Config, token: str):
    """Run one subcommand and return its JSON-serializable result."""
    account_id = args.account or args.email
    common = dict(email=args.email, provider=args.provider, access_token=token, config=config)

    if args.command == "folders":
        folders = await operations.list_folders(account_id, **common)
        return [folder.to_dict() for folder in folders]

    if args.command == "messages":
        messages = await operations.sync_messages(
            account_id,
            args.folder_id or folder_id(account_id, args.folder_path),
            args.folder_path,
            since=args.since,
            **common,
        )
        return [message.to_dict() for message in messages]

    if args.command == "mark-read":
        await operations.set_read_state(account_id, args.folder_path, args.uid, not args.unread, **common)
    elif args.command == "move":
        await operations.move_message(account_id, args.folder_path, args.uid, args.target, **common)
    elif args.command == "delete":
        await operations.delete_message(account_id, args.folder_path, args.uid, **common)

    return {"ok": True}


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for mailsync.

    This function:
        1. Parses command-line arguments
        2. Handles special commands (--paths, --version)
        3. Loads configuration and sets up logging
        4. Runs the requested operation and prints its JSON result

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle --paths flag
    if args.paths:
        print_paths()
        return 0

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.debug else config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        token = resolve_token(args)
        result = asyncio.run(run_command(args, config, token))
    except (TokenNotFoundError, IMAPError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
