# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the mailsync test suite. Nothing here touches the
# network: sessions are AsyncMocks and aioimaplib responses are built from
# plain bytes.
# =============================================================================

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from mailsync.core import Folder, FolderType, Message
from mailsync.imap.client import IMAPSession
from mailsync.imap.providers import PROVIDERS


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def gmail_profile():
    return PROVIDERS["gmail"]


@pytest.fixture
def outlook_profile():
    return PROVIDERS["outlook"]


@pytest.fixture
def sample_folder():
    """Create a sample Folder for testing."""
    return Folder.from_path(
        "acc1",
        "INBOX",
        folder_type=FolderType.INBOX,
        last_synced_at=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_message():
    """Create a sample Message for testing."""
    return Message(
        id="acc1-msg-12345",
        account_id="acc1",
        folder_id="acc1-INBOX",
        uid=12345,
        message_id="<test123@example.com>",
        subject="Test Subject",
        from_name="Test Sender",
        from_address="sender@example.com",
        to=["recipient@example.com"],
        timestamp=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
        synced_at=datetime(2024, 1, 16, 8, 0, tzinfo=timezone.utc),
        text_body="This is a test email body.",
        html_body="<html><body><p>This is a <b>test</b> email body.</p></body></html>",
    )


@pytest.fixture
def raw_plain_email():
    """A minimal single-part RFC 822 message."""
    return (
        b"From: Alice Example <alice@example.com>\r\n"
        b"To: bob@example.com, Carol <carol@example.com>\r\n"
        b"Subject: Lunch?\r\n"
        b"Date: Tue, 15 Jan 2024 10:30:00 +0100\r\n"
        b"Message-ID: <lunch-1@example.com>\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Are you free at noon?\r\n"
    )


@pytest.fixture
def raw_multipart_email():
    """A multipart/alternative message with an attachment and threading headers."""
    return (
        b"From: =?utf-8?q?J=C3=BCrgen?= <jurgen@example.de>\r\n"
        b"To: team@example.com\r\n"
        b"Cc: lead@example.com\r\n"
        b"Subject: =?utf-8?q?Re=3A_Gr=C3=BC=C3=9Fe?=\r\n"
        b"Date: Wed, 06 Mar 2024 08:15:00 +0000\r\n"
        b"Message-ID: <reply-2@example.de>\r\n"
        b"In-Reply-To: <reply-1@example.de>\r\n"
        b"References: <root-0@example.de> <reply-1@example.de>\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="outer"\r\n'
        b"\r\n"
        b"--outer\r\n"
        b'Content-Type: multipart/alternative; boundary="inner"\r\n'
        b"\r\n"
        b"--inner\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Plain greetings\r\n"
        b"--inner\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<p>HTML greetings</p>\r\n"
        b"--inner--\r\n"
        b"--outer\r\n"
        b"Content-Type: text/plain; name=notes.txt\r\n"
        b'Content-Disposition: attachment; filename="notes.txt"\r\n'
        b"\r\n"
        b"attached notes\r\n"
        b"--outer--\r\n"
    )


def imap_response(result: str = "OK", lines: list | None = None) -> SimpleNamespace:
    """Build an object shaped like aioimaplib's Response namedtuple."""
    return SimpleNamespace(result=result, lines=lines if lines is not None else [])


def fetch_lines(uid: int, raw: bytes, flags: str = "") -> list:
    """aioimaplib-style response lines for one FETCH item."""
    return [
        f"{uid} FETCH (UID {uid} FLAGS ({flags}) BODY[] {{{len(raw)}}}".encode(),
        bytearray(raw),
        b")",
    ]


@pytest.fixture
def fake_session(gmail_profile):
    """
    An IMAPSession stand-in with every command mocked.

    Commands succeed and return empty results unless a test overrides
    them.
    """
    session = MagicMock(spec=IMAPSession)
    session.profile = gmail_profile
    session.email = "me@gmail.com"
    session.list_mailboxes = AsyncMock(return_value=[])
    session.select = AsyncMock(return_value={"EXISTS": 0})
    session.search = AsyncMock(return_value=[])
    session.fetch_messages = AsyncMock(return_value=[])
    session.store_flags = AsyncMock(return_value=None)
    session.copy = AsyncMock(return_value=None)
    session.expunge = AsyncMock(return_value=None)
    session.logout = AsyncMock(return_value=None)

    async def _exit(*exc_info):
        await session.logout()

    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(side_effect=_exit)
    return session
