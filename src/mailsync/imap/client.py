# =============================================================================
# IMAP Session
# =============================================================================
# An authenticated, single-use IMAP session built on aioimaplib.
#
# Opening a session:
#   1. Resolve the provider's host/port (unknown provider -> no network)
#   2. TCP connect                         -> TransportError on failure
#   3. TLS handshake, verified for host    -> TlsError on failure
#   4. Attach aioimaplib's protocol through the transport adapter and wait
#      for the server greeting
#   5. AUTHENTICATE XOAUTH2 with the caller's access token
#                                          -> AuthenticationError on reject
#
# Design notes:
#   - One session serves exactly one high-level operation, then logs out.
#     Sessions are never pooled or reused.
#   - No re-authentication: a rejected token ends the call. Trying another
#     mechanism would need a fresh connection.
#   - All message addressing uses UID commands, so identifiers stay valid
#     while other clients expunge in the same folder.
#   - Every command returns only after its tagged completion has arrived,
#     so responses are fully drained before the next command is issued.
# =============================================================================

import asyncio
import base64
import logging
import re
import ssl
from dataclasses import dataclass, field
from typing import Any, Awaitable

from aioimaplib import aioimaplib

from mailsync.imap.errors import (
    AuthenticationError,
    FetchError,
    FolderSelectError,
    IMAPCommandError,
    IMAPError,
    SearchError,
    TlsError,
    TransportError,
)
from mailsync.imap.parser import FetchedMessage, parse_fetch_response
from mailsync.imap.providers import ProviderProfile, get_provider
from mailsync.imap.transport import DuplexStream, StreamTransport

# Set up logging for this module
logger = logging.getLogger(__name__)

# Failures aioimaplib can raise while a command is in flight
_COMMAND_FAILURES = (
    asyncio.TimeoutError,
    aioimaplib.Abort,
    aioimaplib.CommandTimeout,
    OSError,
)

# Full message without setting \Seen as a side effect of syncing
FETCH_ITEMS = "(UID FLAGS BODY.PEEK[])"

_LIST_LINE = re.compile(
    r'^(?:LIST\s+)?\(([^)]*)\)\s+(NIL|"(?:[^"\\]|\\.)*")\s+(.*)$',
    re.IGNORECASE,
)
_LITERAL_MARKER = re.compile(r"^\{(\d+)\}$")


def _quote_folder_name(name: str) -> str:
    """
    Quote an IMAP folder name if it contains special characters.

    IMAP folder names with spaces or special characters must be quoted.
    This function wraps folder names in double quotes and escapes
    any internal quotes or backslashes.

    Args:
        name: The folder name to quote.

    Returns:
        Properly quoted folder name for IMAP commands.
    """
    if ' ' in name or '"' in name or '\\' in name or any(c in name for c in '(){}[]%*'):
        escaped = name.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    return name


def _unquote(value: str) -> str:
    """Strip IMAP quoting from a quoted string."""
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1].replace('\\"', '"').replace('\\\\', '\\')
    return value


def _as_text(line: Any) -> str:
    if isinstance(line, (bytes, bytearray)):
        return bytes(line).decode("utf-8", errors="replace")
    return str(line)


def _response_text(response: Any) -> str:
    """Flatten a response into one diagnostic string."""
    text = " ".join(_as_text(line).strip() for line in response.lines if line)
    return text or str(response.result)


def _decode_challenge(line: bytes) -> str:
    """Decode the base64 payload of a "+ ..." continuation line."""
    payload = bytes(line)[1:].strip()
    try:
        return base64.b64decode(payload, validate=True).decode("utf-8", errors="replace")
    except ValueError:
        return payload.decode("utf-8", errors="replace")


@dataclass
class MailboxEntry:
    """
    One line of a LIST response.

    Attributes:
        name: Mailbox name, unquoted.
        delimiter: Hierarchy delimiter, or None when the server sends NIL.
        attributes: Name attributes such as "\\HasNoChildren" or "\\Sent".
    """
    name: str
    delimiter: str | None = "/"
    attributes: list[str] = field(default_factory=list)


@dataclass
class SessionState:
    """
    Tracks the current state of an IMAP session.

    Attributes:
        connected: Whether the server greeting has been received.
        authenticated: Whether XOAUTH2 succeeded.
        selected_folder: Currently selected folder, if any.
        capabilities: Server capabilities (from the greeting).
    """
    connected: bool = False
    authenticated: bool = False
    selected_folder: str | None = None
    capabilities: list[str] = field(default_factory=list)


class BridgedProtocol(aioimaplib.IMAP4ClientProtocol):
    """
    aioimaplib protocol that answers SASL challenges during AUTHENTICATE.

    A server rejecting XOAUTH2 sends "+ <base64 JSON>" and holds back the
    tagged NO until the client replies with an empty line. The decoded
    challenge is kept in auth_challenge for error reporting.
    """

    def __init__(self, loop, conn_lost_cb=None) -> None:
        super().__init__(loop, conn_lost_cb)
        self.auth_challenge: str | None = None

    def _continuation(self, line: bytes) -> None:
        command = self.pending_sync_command
        if command is None or command.name != "AUTHENTICATE":
            super()._continuation(line)
            return

        self.auth_challenge = _decode_challenge(line)
        logger.debug(f"AUTHENTICATE challenge: {self.auth_challenge}")
        self.transport.write(b"\r\n")


class BridgedIMAP4(aioimaplib.IMAP4):
    """
    aioimaplib client that runs over an already-secured DuplexStream.

    aioimaplib normally opens its own socket inside create_client(). Here
    the session has already connected and negotiated TLS itself, so the
    protocol is attached to that stream through StreamTransport instead.
    """

    def __init__(self, stream: DuplexStream, host: str, port: int, timeout: float) -> None:
        self._stream = stream
        self.bridge: StreamTransport | None = None
        super().__init__(host=host, port=port, timeout=timeout)

    def create_client(self, host, port, loop, conn_lost_cb=None, ssl_context=None) -> None:
        local_loop = loop if loop is not None else asyncio.get_running_loop()
        self.protocol = BridgedProtocol(local_loop, conn_lost_cb)
        self.bridge = StreamTransport(self._stream, self.protocol)
        self.bridge.start()

        # wait_hello_from_server() awaits the connect task; ours is already done
        self._client_task = local_loop.create_future()
        self._client_task.set_result(None)


class IMAPSession:
    """
    Async, single-use IMAP session.

    Usage:
        >>> session = await open_session("gmail", "me@gmail.com", token)
        >>> async with session:
        ...     await session.select("INBOX")
        ...     uids = await session.search(["ALL"])

    Leaving the async-with block always logs out, whatever happened
    inside it.

    Attributes:
        profile: Provider profile this session is connected to.
        email: Account address used for authentication.
        state: Current session state.
    """

    # Timeout for connect/TLS/greeting and for each IMAP command (seconds)
    TIMEOUT = 30.0

    # How long teardown waits for the read pump to see EOF (seconds)
    CLOSE_TIMEOUT = 5.0

    def __init__(self, profile: ProviderProfile, email: str, timeout: float = TIMEOUT) -> None:
        self.profile = profile
        self.email = email
        self.timeout = timeout
        self.state = SessionState()
        self._stream: DuplexStream | None = None
        self._client: BridgedIMAP4 | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.state.authenticated and self._client is not None

    @property
    def imap(self) -> BridgedIMAP4:
        """The underlying aioimaplib client. Raises IMAPError once logged out."""
        if self._client is None:
            raise IMAPError("Session is not open")
        return self._client

    async def __aenter__(self) -> "IMAPSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.logout()

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def open(self, access_token: str) -> None:
        """
        Connect, secure and authenticate the session.

        Raises:
            TransportError: If the TCP connection or greeting fails.
            TlsError: If the TLS handshake fails.
            AuthenticationError: If the server rejects the token.
        """
        host, port = self.profile.imap_host, self.profile.imap_port
        logger.info(f"Connecting to {host}:{port} ({self.profile.name})")

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Failed to connect to {host}:{port}: {e}") from e

        try:
            await asyncio.wait_for(
                writer.start_tls(ssl.create_default_context(), server_hostname=host),
                timeout=self.timeout,
            )
        except (ssl.SSLError, OSError, asyncio.TimeoutError) as e:
            stream = DuplexStream(reader, writer)
            stream.close()
            await stream.wait_closed()
            raise TlsError(f"TLS negotiation with {host} failed: {e}") from e
        logger.debug(f"TLS established with {host}")

        self._stream = DuplexStream(reader, writer)

        try:
            self._client = BridgedIMAP4(self._stream, host, port, self.timeout)
            await self._client.wait_hello_from_server()
        except Exception as e:
            await self._close_transport()
            self._client = None
            raise TransportError(f"No greeting from {host}: {e!r}") from e

        self.state.connected = True
        self.state.capabilities = sorted(self._client.protocol.capabilities)
        logger.debug(f"Greeting from {host}, capabilities: {self.state.capabilities}")

        await self._authenticate(access_token)

    async def _authenticate(self, access_token: str) -> None:
        """
        Authenticate with AUTHENTICATE XOAUTH2.

        aioimaplib sends base64("user=<email>\\x01auth=Bearer <token>\\x01\\x01")
        as the initial client response. On rejection the server may first
        send an error challenge; BridgedProtocol answers it and its decoded
        JSON is added to the diagnostic.
        """
        logger.info(f"Authenticating {self.email} with XOAUTH2")

        try:
            response = await self._client.xoauth2(self.email, access_token)
        except (asyncio.TimeoutError, aioimaplib.CommandTimeout) as e:
            # AUTHENTICATE is still pending: close without LOGOUT
            self.state.connected = False
            await self.logout()
            raise AuthenticationError(
                f"No XOAUTH2 response within {self.timeout}s", self.profile.name
            ) from e
        except _COMMAND_FAILURES as e:
            await self.logout()
            raise AuthenticationError(str(e) or type(e).__name__, self.profile.name) from e

        if response.result != "OK":
            diagnostic = _response_text(response)
            challenge = self._client.protocol.auth_challenge
            if challenge:
                diagnostic = f"{diagnostic} {challenge}"
            logger.warning(f"XOAUTH2 rejected for {self.email}: {diagnostic}")
            await self.logout()
            raise AuthenticationError(diagnostic, self.profile.name)

        self.state.authenticated = True
        logger.info(f"Authenticated {self.email} on {self.profile.imap_host}")

    async def logout(self) -> None:
        """
        Gracefully end the session.

        Sends LOGOUT and closes the connection. Errors are logged and
        swallowed since the connection is being torn down regardless.
        """
        if self._client is not None and self.state.connected:
            try:
                logger.debug("Sending LOGOUT")
                await self._client.logout()
            except Exception as e:
                logger.warning(f"Error during logout: {e}")

        await self._close_transport()
        self._client = None
        self.state = SessionState()

    async def _close_transport(self) -> None:
        bridge = self._client.bridge if self._client is not None else None
        if self._stream is not None:
            self._stream.close()
            await self._stream.wait_closed()
            self._stream = None
        if bridge is not None:
            await bridge.wait_closed(timeout=self.CLOSE_TIMEOUT)

    async def _command(
        self,
        description: str,
        awaitable: Awaitable,
        error_cls: type[IMAPCommandError] = IMAPCommandError,
    ):
        """Await an aioimaplib command and require an OK completion."""
        try:
            response = await awaitable
        except _COMMAND_FAILURES as e:
            raise error_cls(f"{description} failed: {e}") from e

        if response.result != "OK":
            raise error_cls(f"{description} failed: {_response_text(response)}")
        return response

    # =========================================================================
    # Folder Operations
    # =========================================================================

    async def list_mailboxes(self) -> list[MailboxEntry]:
        """
        Fetch all mailboxes under the root (LIST "" "*").

        Raises:
            IMAPCommandError: If the LIST command fails.
        """
        logger.debug("Listing folders")
        response = await self._command("LIST", self.imap.list('""', "*"))

        entries = []
        pending: tuple[str, str | None] | None = None

        for line in response.lines:
            if isinstance(line, bytearray):
                # Mailbox name sent as a literal
                if pending is not None:
                    entries.append(self._entry(pending[0], pending[1], bytes(line).decode("utf-8", errors="replace")))
                    pending = None
                continue

            match = _LIST_LINE.match(_as_text(line).strip())
            if not match:
                continue

            attributes, delimiter, name = match.groups()
            if _LITERAL_MARKER.match(name.strip()):
                pending = (attributes, delimiter)
                continue
            entries.append(self._entry(attributes, delimiter, name))

        logger.debug(f"Found {len(entries)} folders")
        return entries

    @staticmethod
    def _entry(attributes: str, delimiter: str, name: str) -> MailboxEntry:
        return MailboxEntry(
            name=_unquote(name),
            delimiter=None if delimiter.upper() == "NIL" else _unquote(delimiter),
            attributes=attributes.split() if attributes else [],
        )

    async def select(self, folder_path: str) -> dict:
        """
        Select a folder for subsequent UID commands.

        Returns:
            Dictionary with folder status (EXISTS, UIDVALIDITY, ...).

        Raises:
            FolderSelectError: If the folder cannot be selected.
        """
        logger.debug(f"Selecting folder: {folder_path}")
        try:
            response = await self._command(
                f"SELECT {folder_path}",
                self.imap.select(_quote_folder_name(folder_path)),
            )
        except IMAPCommandError as e:
            raise FolderSelectError(folder_path, str(e)) from e

        status = self._parse_select_response(response)
        self.state.selected_folder = folder_path
        logger.debug(f"Selected folder: {folder_path}, {status}")
        return status

    def _parse_select_response(self, response) -> dict:
        """Parse SELECT response into a status dictionary."""
        status = {}

        for line in response.lines:
            line = _as_text(line)

            match = re.search(r"(\d+)\s+EXISTS", line, re.IGNORECASE)
            if match:
                status["EXISTS"] = int(match.group(1))

            match = re.search(r"UIDVALIDITY\s+(\d+)", line, re.IGNORECASE)
            if match:
                status["UIDVALIDITY"] = int(match.group(1))

            match = re.search(r"UIDNEXT\s+(\d+)", line, re.IGNORECASE)
            if match:
                status["UIDNEXT"] = int(match.group(1))

        return status

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def search(self, criteria: list[str]) -> list[int]:
        """
        Run UID SEARCH in the selected folder.

        Returns:
            Matching UIDs in server order.

        Raises:
            SearchError: If the search fails.
        """
        logger.debug(f"UID SEARCH {' '.join(criteria)}")
        response = await self._command(
            "UID SEARCH",
            self.imap.uid_search(*criteria, charset=None),
            SearchError,
        )

        uids = []
        for line in response.lines:
            tokens = _as_text(line).split()
            if tokens and tokens[0].upper() == "SEARCH":
                tokens = tokens[1:]
            if tokens and all(t.isdigit() for t in tokens):
                uids.extend(int(t) for t in tokens)
        return uids

    async def fetch_messages(self, uids: list[int]) -> list[FetchedMessage]:
        """
        Fetch full messages (UID, FLAGS, body) for a set of UIDs.

        Raises:
            FetchError: If the UID FETCH fails.
        """
        uid_set = ",".join(str(u) for u in uids)
        logger.debug(f"UID FETCH {len(uids)} messages")
        response = await self._command(
            "UID FETCH",
            self.imap.uid("FETCH", uid_set, FETCH_ITEMS),
            FetchError,
        )
        return parse_fetch_response(response.lines)

    async def store_flags(self, uid: int, flags: list[str], *, add: bool = True) -> None:
        """
        Add or remove flags on one message.

        Raises:
            IMAPCommandError: If the UID STORE fails.
        """
        sign = "+" if add else "-"
        command = f"{sign}FLAGS ({' '.join(flags)})"
        logger.debug(f"Setting flags on {uid}: {command}")
        await self._command("UID STORE", self.imap.uid("STORE", str(uid), command))

    async def copy(self, uid: int, dest_folder: str) -> None:
        """
        Copy one message to another folder.

        Raises:
            IMAPCommandError: If the UID COPY fails.
        """
        logger.debug(f"Copying {uid} to {dest_folder}")
        await self._command(
            "UID COPY",
            self.imap.uid("COPY", str(uid), _quote_folder_name(dest_folder)),
        )

    async def expunge(self) -> None:
        """
        Permanently remove messages flagged \\Deleted in the selected folder.

        Raises:
            IMAPCommandError: If EXPUNGE fails.
        """
        logger.debug(f"Expunging {self.state.selected_folder}")
        await self._command("EXPUNGE", self.imap.expunge())


async def open_session(
    provider: str,
    email: str,
    access_token: str,
    *,
    timeout: float = IMAPSession.TIMEOUT,
) -> IMAPSession:
    """
    Open an authenticated session for one operation.

    Raises:
        UnsupportedProviderError: Before any network activity, if the
            provider is unknown.
        TransportError, TlsError, AuthenticationError: See IMAPSession.open.
    """
    profile = get_provider(provider)
    session = IMAPSession(profile, email, timeout=timeout)
    await session.open(access_token)
    return session
