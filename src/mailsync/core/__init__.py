# =============================================================================
# mailsync Core Module
# =============================================================================
# Canonical domain models shared by the sync engine and its callers. These
# are plain dataclasses with no I/O, so they can be imported anywhere without
# circular dependency issues.
#
#   - Folder: A server mailbox mapped to a stable local identifier
#   - Message: A parsed email with flags projected into booleans
# =============================================================================

from mailsync.core.folder import Folder, FolderType, folder_id
from mailsync.core.message import Message, MessageFlags, message_id_for

__all__ = [
    "Folder",
    "FolderType",
    "folder_id",
    "Message",
    "MessageFlags",
    "message_id_for",
]
