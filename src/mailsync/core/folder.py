# =============================================================================
# Folder Model
# =============================================================================
# Represents a mailbox folder (IMAP "mailbox"). The server addresses a
# folder by its path ("INBOX", "[Gmail]/Sent Mail", "Work/Projects"); the
# application addresses it by a local id derived from the account and name.
#
# The id must not change between syncs, otherwise every message cached
# under a folder would be orphaned on the next refresh. That is why the id
# is a pure function of (account_id, name) and nothing else.
# =============================================================================

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any


class FolderType(Enum):
    """
    Standard folder types that have special meaning in email clients.

    These map to IMAP SPECIAL-USE attributes (RFC 6154) when available,
    or are inferred from common naming conventions.
    """
    INBOX = auto()      # Primary incoming mail
    SENT = auto()       # Sent messages
    DRAFTS = auto()     # Unsent drafts
    TRASH = auto()      # Deleted messages (before permanent deletion)
    JUNK = auto()       # Spam/junk mail
    ARCHIVE = auto()    # Archived messages / All Mail
    OTHER = auto()      # User-created or unrecognized folders


def folder_id(account_id: str, name: str) -> str:
    """
    Derive the local folder identifier.

    Path separators and spaces in the name are replaced with "-", so the
    result is safe to use as a key in URLs and storage paths.

    Example:
        >>> folder_id("acc1", "[Gmail]/Sent Mail")
        'acc1-[Gmail]-Sent-Mail'
    """
    sanitized = name.replace("/", "-").replace(" ", "-")
    return f"{account_id}-{sanitized}"


def epoch_millis(value: datetime | None) -> int | None:
    """Convert a datetime to epoch milliseconds (the shell's wire format)."""
    if value is None:
        return None
    return int(value.timestamp() * 1000)


@dataclass
class Folder:
    """
    Represents a mailbox folder in an email account.

    Attributes:
        id: Local identifier, see folder_id().
        account_id: The account this folder belongs to.
        name: Display name as reported by the server.
        path: Server-addressable mailbox name used for SELECT/COPY. Usually
              equal to name, but baseline folders use provider-specific
              paths (e.g. name "Sent", path "[Gmail]/Sent Mail").
        unread_count: Unread messages. Not derivable from LIST, left at 0.
        total_count: Total messages. Not derivable from LIST, left at 0.
        last_synced_at: When this record was produced from the server.
        folder_type: Semantic type (inbox, sent, ...).
        delimiter: Hierarchy delimiter reported by the server.
    """

    id: str
    account_id: str
    name: str
    path: str

    # Message counts (populated by a later enrichment pass, if ever)
    unread_count: int = 0
    total_count: int = 0

    last_synced_at: datetime | None = None

    folder_type: FolderType = FolderType.OTHER
    delimiter: str = "/"

    @classmethod
    def from_path(
        cls,
        account_id: str,
        name: str,
        path: str | None = None,
        **kwargs: Any,
    ) -> "Folder":
        """Build a Folder whose id is derived from account_id and name."""
        return cls(
            id=folder_id(account_id, name),
            account_id=account_id,
            name=name,
            path=path if path is not None else name,
            **kwargs,
        )

    @property
    def is_inbox(self) -> bool:
        """IMAP defines INBOX case-insensitively."""
        return self.name.upper() == "INBOX" or self.path.upper() == "INBOX"

    @classmethod
    def detect_type(cls, folder_name: str) -> FolderType:
        """
        Attempt to detect the folder type from its name.

        Used when the server does not advertise SPECIAL-USE attributes.

        Args:
            folder_name: The IMAP folder name to classify.

        Returns:
            The detected FolderType, or OTHER if unrecognized.
        """
        name_lower = folder_name.lower()

        if name_lower == "inbox":
            return FolderType.INBOX
        elif name_lower in ("sent", "sent mail", "sent items", "[gmail]/sent mail"):
            return FolderType.SENT
        elif name_lower in ("drafts", "draft", "[gmail]/drafts"):
            return FolderType.DRAFTS
        elif name_lower in ("trash", "deleted", "deleted items", "[gmail]/trash"):
            return FolderType.TRASH
        elif name_lower in ("junk", "spam", "junk email", "[gmail]/spam"):
            return FolderType.JUNK
        elif name_lower in ("archive", "all mail", "[gmail]/all mail"):
            return FolderType.ARCHIVE

        return FolderType.OTHER

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the application shell."""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "path": self.path,
            "unread_count": self.unread_count,
            "total_count": self.total_count,
            "sync_at": epoch_millis(self.last_synced_at),
            "folder_type": self.folder_type.name.lower(),
        }

    def __str__(self) -> str:
        return self.name if self.name == self.path else f"{self.name} ({self.path})"

    def __repr__(self) -> str:
        return (
            f"Folder(id={self.id!r}, path={self.path!r}, "
            f"type={self.folder_type.name})"
        )
