# =============================================================================
# Message Model
# =============================================================================
# Represents an email message as seen by the application shell:
#   - Headers (From, To, Subject, Date, Message-ID, threading headers)
#   - Body in plain text and/or HTML
#   - Raw IMAP flags plus the booleans the UI actually reads
#
# IMAP identity caveat: a UID is only unique within the folder it was
# fetched from. Moving a message gives it a new UID in the destination, and
# the old one must not be reused. A fresh sync of the destination is the
# only way to learn it.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntFlag
from typing import Any, Iterable

from mailsync.core.folder import epoch_millis


class MessageFlags(IntFlag):
    """
    Email message flags as a bitmask.

    Standard IMAP system flags (RFC 3501):
        - SEEN: Message has been read
        - ANSWERED: Message has been replied to
        - FLAGGED: User-flagged as important (usually shown as a star)
        - DELETED: Marked for deletion (will be purged on EXPUNGE)
        - DRAFT: Message is a draft (not yet sent)

    Keywords:
        - IMPORTANT: The "$Important" keyword some servers expose

    Usage:
        flags = MessageFlags.from_imap(["\\Seen", "\\Flagged"])
        if flags & MessageFlags.SEEN:
            print("Message has been read")
    """
    NONE = 0
    SEEN = 1 << 0
    ANSWERED = 1 << 1
    FLAGGED = 1 << 2
    DELETED = 1 << 3
    DRAFT = 1 << 4
    IMPORTANT = 1 << 5

    @classmethod
    def from_imap(cls, flags: Iterable[str]) -> "MessageFlags":
        """Project raw IMAP flag strings onto the bitmask (case-insensitive)."""
        result = cls.NONE
        for flag in flags:
            member = _IMAP_FLAG_NAMES.get(flag.upper())
            if member is not None:
                result |= member
        return result


_IMAP_FLAG_NAMES = {
    "\\SEEN": MessageFlags.SEEN,
    "\\ANSWERED": MessageFlags.ANSWERED,
    "\\FLAGGED": MessageFlags.FLAGGED,
    "\\DELETED": MessageFlags.DELETED,
    "\\DRAFT": MessageFlags.DRAFT,
    "$IMPORTANT": MessageFlags.IMPORTANT,
}


def message_id_for(account_id: str, uid: int) -> str:
    """Derive the local message identifier from the account and UID."""
    return f"{account_id}-msg-{uid}"


@dataclass
class Message:
    """
    Represents an email message.

    Threading note:
        'message_id' is the RFC Message-ID (not our local id). 'in_reply_to'
        and 'references' link it into a conversation, and 'thread_id' is the
        root Message-ID of that conversation.

    Attributes:
        id: Local identifier, see message_id_for().
        account_id: Owning account.
        folder_id: Local id of the folder the message was fetched from.
        uid: IMAP UID, only meaningful together with folder_id.
        message_id: RFC 5322 Message-ID (or "msg-<uid>" when absent).
        subject: Decoded subject ("No Subject" when absent).
        from_name: Decoded sender display name, if any.
        from_address: Sender address (placeholder when absent).
        to / cc / bcc: Recipient addresses.
        timestamp: Date header in UTC, or sync time when unparseable.
        text_body / html_body: Body variants, either may be None.
        flags: Raw IMAP flags as returned by the server.
        is_read / is_starred / is_important: Projections of flags, computed
            once at parse time.
        synced_at: When the message was fetched.
    """

    id: str
    account_id: str
    folder_id: str
    uid: int
    message_id: str
    subject: str
    from_address: str
    timestamp: datetime
    synced_at: datetime

    from_name: str | None = None
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)

    text_body: str | None = None
    html_body: str | None = None

    flags: list[str] = field(default_factory=list)
    is_read: bool = False
    is_starred: bool = False
    is_important: bool = False

    # Threading
    thread_id: str | None = None
    in_reply_to: str | None = None
    references: list[str] = field(default_factory=list)

    def apply_flags(self, flags: list[str]) -> None:
        """Replace the raw flags and recompute the derived booleans."""
        self.flags = list(flags)
        mask = MessageFlags.from_imap(self.flags)
        self.is_read = bool(mask & MessageFlags.SEEN)
        self.is_starred = bool(mask & MessageFlags.FLAGGED)
        self.is_important = bool(mask & MessageFlags.IMPORTANT)

    @property
    def display_sender(self) -> str:
        """Prefers the display name, falls back to the address."""
        return self.from_name or self.from_address

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the application shell."""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "folder_id": self.folder_id,
            "uid": self.uid,
            "message_id": self.message_id,
            "subject": self.subject,
            "from_name": self.from_name,
            "from_address": self.from_address,
            "to_addresses": list(self.to),
            "cc_addresses": list(self.cc) or None,
            "bcc_addresses": list(self.bcc) or None,
            "date": epoch_millis(self.timestamp),
            "text": self.text_body,
            "html": self.html_body,
            "flags": list(self.flags),
            "is_read": self.is_read,
            "is_starred": self.is_starred,
            "is_important": self.is_important,
            "thread_id": self.thread_id,
            "in_reply_to": self.in_reply_to,
            "references": list(self.references) or None,
            "synced_at": epoch_millis(self.synced_at),
        }

    def __str__(self) -> str:
        read_marker = " " if self.is_read else "*"
        flag_marker = "!" if self.is_starred else " "
        return f"{read_marker}{flag_marker} {self.display_sender}: {self.subject}"

    def __repr__(self) -> str:
        return (
            f"Message(uid={self.uid}, subject={self.subject!r}, "
            f"from={self.from_address!r}, flags={self.flags})"
        )
