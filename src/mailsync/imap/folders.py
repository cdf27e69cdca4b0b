# =============================================================================
# Folder Synchronizer
# =============================================================================
# Turns a LIST response into Folder records.
#
# Listing is best-effort: if the server refuses LIST, the caller still gets
# the provider's baseline folders (INBOX, Sent, Drafts, Archive) so the
# shell always has something to display. Connection and authentication
# failures happen earlier, in open_session(), and are not covered by this
# fallback.
# =============================================================================

import logging
from datetime import datetime, timezone

from mailsync.core import Folder, FolderType
from mailsync.imap.client import IMAPSession, MailboxEntry
from mailsync.imap.errors import IMAPError
from mailsync.imap.providers import ProviderProfile

logger = logging.getLogger(__name__)

# SPECIAL-USE attributes (RFC 6154) mapped to folder types
_SPECIAL_USE = {
    "\\SENT": FolderType.SENT,
    "\\DRAFTS": FolderType.DRAFTS,
    "\\TRASH": FolderType.TRASH,
    "\\JUNK": FolderType.JUNK,
    "\\ARCHIVE": FolderType.ARCHIVE,
    "\\ALL": FolderType.ARCHIVE,
}


def detect_folder_type(name: str, attributes: list[str]) -> FolderType:
    """
    Detect folder type from SPECIAL-USE attributes or folder name.

    Attributes win over the name; Folder.detect_type() covers servers
    that do not advertise SPECIAL-USE.
    """
    if name.upper() == "INBOX":
        return FolderType.INBOX

    for attribute in attributes:
        folder_type = _SPECIAL_USE.get(attribute.upper())
        if folder_type is not None:
            return folder_type

    return Folder.detect_type(name)


def baseline_folders(
    account_id: str,
    profile: ProviderProfile,
    synced_at: datetime | None = None,
) -> list[Folder]:
    """
    The fixed folder set returned when LIST is unavailable.

    Names are the generic labels; paths are the provider's real mailboxes.
    """
    synced_at = synced_at or datetime.now(timezone.utc)
    layout = [
        ("INBOX", profile.inbox_path, FolderType.INBOX),
        ("Sent", profile.sent_path, FolderType.SENT),
        ("Drafts", profile.drafts_path, FolderType.DRAFTS),
        ("Archive", profile.archive_path, FolderType.ARCHIVE),
    ]
    return [
        Folder.from_path(
            account_id,
            name,
            path,
            last_synced_at=synced_at,
            folder_type=folder_type,
        )
        for name, path, folder_type in layout
    ]


def folder_from_entry(account_id: str, entry: MailboxEntry, synced_at: datetime) -> Folder:
    """Build a Folder from one LIST entry."""
    return Folder.from_path(
        account_id,
        entry.name,
        last_synced_at=synced_at,
        folder_type=detect_folder_type(entry.name, entry.attributes),
        delimiter=entry.delimiter or "/",
    )


async def list_folders(session: IMAPSession, account_id: str) -> list[Folder]:
    """
    List the account's folders, guaranteeing an INBOX.

    Args:
        session: An authenticated session.
        account_id: Account the folders belong to.

    Returns:
        One Folder per mailbox, with INBOX first if it had to be added.
        Never empty.
    """
    synced_at = datetime.now(timezone.utc)

    try:
        entries = await session.list_mailboxes()
    except IMAPError as e:
        logger.warning(f"LIST failed, using baseline folders: {e}")
        return baseline_folders(account_id, session.profile, synced_at)

    folders = [folder_from_entry(account_id, entry, synced_at) for entry in entries]

    if not any(folder.is_inbox for folder in folders):
        logger.debug("Server did not list INBOX, adding it")
        folders.insert(0, Folder.from_path(
            account_id,
            "INBOX",
            session.profile.inbox_path,
            last_synced_at=synced_at,
            folder_type=FolderType.INBOX,
        ))

    logger.info(f"Listed {len(folders)} folders for {account_id}")
    return folders
