# =============================================================================
# Public Operations
# =============================================================================
# The entry points the application shell calls. Each one:
#
#   1. Opens a fresh, authenticated session (provider + email + token)
#   2. Runs exactly one folder, sync or mutation step on it
#   3. Logs out, whether the step succeeded or raised
#
# Sessions are never shared between calls, so concurrent calls are
# independent. Errors are the mailsync.imap.errors hierarchy.
# =============================================================================

import logging
from datetime import datetime

from mailsync.config import Config
from mailsync.core import Folder, Message
from mailsync.imap import folders, mutations, sync
from mailsync.imap.client import IMAPSession, open_session

logger = logging.getLogger(__name__)


async def _session(
    email: str,
    provider: str,
    access_token: str,
    config: Config | None,
) -> IMAPSession:
    config = config or Config()
    return await open_session(
        provider,
        email,
        access_token,
        timeout=config.connection.timeout_seconds,
    )


async def list_folders(
    account_id: str,
    email: str,
    provider: str,
    access_token: str,
    *,
    config: Config | None = None,
) -> list[Folder]:
    """
    List the account's folders.

    A failed LIST still returns the provider's baseline folders; only
    connection and authentication failures raise.
    """
    session = await _session(email, provider, access_token, config)
    async with session:
        return await folders.list_folders(session, account_id)


async def sync_messages(
    account_id: str,
    folder_id: str,
    folder_path: str,
    email: str,
    provider: str,
    access_token: str,
    since: datetime | None = None,
    *,
    config: Config | None = None,
) -> list[Message]:
    """
    Fetch the messages of one folder, optionally only those since a date.

    Batches or messages that fail are skipped and logged; the rest are
    returned in ascending UID order.
    """
    config = config or Config()
    session = await _session(email, provider, access_token, config)
    async with session:
        result = await sync.sync_messages(
            session,
            account_id,
            folder_id,
            folder_path,
            since,
            batch_size=config.sync.batch_size,
        )
    return result.messages


async def set_read_state(
    account_id: str,
    folder_path: str,
    uid: int,
    read: bool,
    email: str,
    provider: str,
    access_token: str,
    *,
    config: Config | None = None,
) -> None:
    """Mark one message read or unread."""
    logger.debug(f"set_read_state {account_id} {folder_path} UID {uid} read={read}")
    session = await _session(email, provider, access_token, config)
    async with session:
        await mutations.set_read_state(session, folder_path, uid, read)


async def move_message(
    account_id: str,
    folder_path: str,
    uid: int,
    target_folder_path: str,
    email: str,
    provider: str,
    access_token: str,
    *,
    config: Config | None = None,
) -> None:
    """
    Move one message to another folder.

    The message gets a new UID in the target folder; sync that folder to
    learn it.
    """
    logger.debug(f"move_message {account_id} {folder_path} UID {uid} -> {target_folder_path}")
    session = await _session(email, provider, access_token, config)
    async with session:
        await mutations.move_message(session, folder_path, uid, target_folder_path)


async def delete_message(
    account_id: str,
    folder_path: str,
    uid: int,
    email: str,
    provider: str,
    access_token: str,
    *,
    config: Config | None = None,
) -> None:
    """Permanently delete one message."""
    logger.debug(f"delete_message {account_id} {folder_path} UID {uid}")
    session = await _session(email, provider, access_token, config)
    async with session:
        await mutations.delete_message(session, folder_path, uid)
