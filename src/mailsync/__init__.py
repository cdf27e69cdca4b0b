# =============================================================================
# mailsync: IMAP Synchronization Engine
# =============================================================================
#
# mailsync mirrors remote mailbox state into a small canonical model and
# pushes user mutations (read/unread, move, delete) back to the server.
# It is the sync core of a desktop mail client: UI, local storage and
# OAuth2 token refresh live in the application shell, not here.
#
# Features:
#   - XOAUTH2 sessions against Gmail and Outlook IMAP
#   - Folder listing with a guaranteed INBOX and an offline baseline
#   - Incremental message sync in bounded, failure-isolated batches
#   - Flag, move and delete mutations with explicit partial-failure errors
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "mailsync"

from mailsync.operations import (
    delete_message,
    list_folders,
    move_message,
    set_read_state,
    sync_messages,
)

__all__ = [
    "__version__",
    "__app_name__",
    "list_folders",
    "sync_messages",
    "set_read_state",
    "move_message",
    "delete_message",
]
