# =============================================================================
# IMAP Module
# =============================================================================
# Handles all IMAP (Internet Message Access Protocol) operations:
#   - Connecting to provider IMAP servers over TLS with XOAUTH2
#   - Fetching folder lists
#   - Syncing messages in batches
#   - Changing message state (read, move, delete)
#
# This module uses aioimaplib for async IMAP operations, attached to the
# connection through the transport adapter in transport.py.
# =============================================================================

from mailsync.imap.client import (
    IMAPSession,
    MailboxEntry,
    SessionState,
    open_session,
)
from mailsync.imap.errors import (
    AuthenticationError,
    FetchError,
    FolderSelectError,
    IMAPCommandError,
    IMAPConnectionError,
    IMAPError,
    MutationStepError,
    ParseError,
    PartialMoveError,
    SearchError,
    TlsError,
    TransportError,
    UnsupportedProviderError,
)
from mailsync.imap.folders import baseline_folders, list_folders
from mailsync.imap.mutations import delete_message, move_message, set_read_state
from mailsync.imap.providers import PROVIDERS, ProviderProfile, get_provider
from mailsync.imap.sync import (
    MessageSynchronizer,
    SyncResult,
    build_search_criteria,
    sync_messages,
)

__all__ = [
    # Session
    "IMAPSession",
    "MailboxEntry",
    "SessionState",
    "open_session",
    # Providers
    "PROVIDERS",
    "ProviderProfile",
    "get_provider",
    # Errors
    "IMAPError",
    "UnsupportedProviderError",
    "IMAPConnectionError",
    "TransportError",
    "TlsError",
    "AuthenticationError",
    "IMAPCommandError",
    "FolderSelectError",
    "SearchError",
    "FetchError",
    "MutationStepError",
    "PartialMoveError",
    "ParseError",
    # Folders
    "list_folders",
    "baseline_folders",
    # Sync
    "MessageSynchronizer",
    "SyncResult",
    "build_search_criteria",
    "sync_messages",
    # Mutations
    "set_read_state",
    "move_message",
    "delete_message",
]
