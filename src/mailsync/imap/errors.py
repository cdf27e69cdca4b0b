# =============================================================================
# IMAP Exceptions
# =============================================================================
# One hierarchy for every failure the engine can report. Connection, auth
# and SELECT failures end the enclosing operation. FetchError and ParseError
# are raised per batch/message and are absorbed by the message synchronizer.
#
#   IMAPError
#   ├── UnsupportedProviderError
#   ├── IMAPConnectionError
#   │   ├── TransportError         (TCP connect, greeting)
#   │   └── TlsError               (TLS handshake / certificate)
#   ├── AuthenticationError        (XOAUTH2 rejected)
#   ├── IMAPCommandError
#   │   ├── FolderSelectError
#   │   ├── SearchError
#   │   ├── FetchError
#   │   └── MutationStepError
#   │       └── PartialMoveError   (copied but not removed)
#   └── ParseError
# =============================================================================


class IMAPError(Exception):
    """Base exception for IMAP operations."""
    pass


class UnsupportedProviderError(IMAPError):
    """Raised when a provider is not in the static provider table."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unsupported provider: {provider!r}")
        self.provider = provider


class IMAPConnectionError(IMAPError):
    """Raised when unable to establish a connection to the IMAP server."""
    pass


class TransportError(IMAPConnectionError):
    """Raised when the TCP connection or server greeting fails."""
    pass


class TlsError(IMAPConnectionError):
    """Raised when TLS negotiation or certificate verification fails."""
    pass


class AuthenticationError(IMAPError):
    """
    Raised when the server rejects the XOAUTH2 credential.

    Attributes:
        diagnostic: The server's response text.
        provider: The provider profile that was used.
    """

    def __init__(self, diagnostic: str, provider: str) -> None:
        super().__init__(f"Authentication failed for {provider}: {diagnostic}")
        self.diagnostic = diagnostic
        self.provider = provider


class IMAPCommandError(IMAPError):
    """Raised when an IMAP command returns NO/BAD or does not complete."""
    pass


class FolderSelectError(IMAPCommandError):
    """Raised when a folder cannot be selected."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Failed to select folder {path!r}: {detail}")
        self.path = path


class SearchError(IMAPCommandError):
    """Raised when UID SEARCH fails."""
    pass


class FetchError(IMAPCommandError):
    """Raised when a UID FETCH batch fails."""
    pass


class MutationStepError(IMAPCommandError):
    """
    Raised when one step of a mutation sequence fails.

    Attributes:
        step: Which step failed: "copy", "store" or "expunge".
        uid: The message UID the mutation targeted.
    """

    def __init__(self, step: str, uid: int, detail: str) -> None:
        super().__init__(f"{step} failed for UID {uid}: {detail}")
        self.step = step
        self.uid = uid


class PartialMoveError(MutationStepError):
    """
    Raised when a move copied the message but could not flag the source.

    The message now exists in both folders. Nothing is rolled back; the
    caller decides whether to retry the delete or remove the copy.
    """

    def __init__(self, uid: int, source: str, target: str, detail: str) -> None:
        super().__init__("store", uid, detail)
        self.source = source
        self.target = target

    def __str__(self) -> str:
        return (
            f"UID {self.uid} copied from {self.source!r} to {self.target!r} "
            f"but not removed from source: {super().__str__()}"
        )


class ParseError(IMAPError):
    """Raised when a fetched message cannot be parsed."""

    def __init__(self, uid: int, detail: str) -> None:
        super().__init__(f"Could not parse UID {uid}: {detail}")
        self.uid = uid
