# =============================================================================
# FETCH Response and MIME Parsing
# =============================================================================
# Two stages turn a UID FETCH reply into canonical Messages:
#
#   1. parse_fetch_response(): group aioimaplib's flat response items into
#      one FetchedMessage (uid, flags, raw RFC 822 bytes) per message.
#   2. parse_message(): parse the raw bytes with the stdlib email package
#      and map headers/bodies/flags onto a Message.
#
# aioimaplib returns protocol text as bytes and literal payloads as
# bytearray, e.g.:
#
#   b'1 FETCH (UID 42 FLAGS (\\Seen) BODY[] {2048}'
#   bytearray(b'Return-Path: ...')              <- the message itself
#   b')'
#   b'FETCH completed'
#
# Some servers put UID/FLAGS after the literal instead of before it, so the
# grouping collects all text belonging to a message before reading them.
# =============================================================================

import email
import email.errors
import email.header
import email.utils
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import Message as EmailMessage
from typing import Iterable

from mailsync.core import Message, message_id_for
from mailsync.imap.errors import ParseError

logger = logging.getLogger(__name__)

# Fallbacks for missing headers
DEFAULT_SUBJECT = "No Subject"
UNKNOWN_SENDER = "unknown@example.com"

_FETCH_START = re.compile(rb"^\d+\s+FETCH\s*\(", re.IGNORECASE)
_UID = re.compile(r"\bUID\s+(\d+)", re.IGNORECASE)
_FLAGS = re.compile(r"\bFLAGS\s*\(([^)]*)\)", re.IGNORECASE)


@dataclass
class FetchedMessage:
    """
    One message as returned by UID FETCH, before MIME parsing.

    Attributes:
        uid: IMAP UID within the selected folder.
        flags: Raw flag strings (e.g. ["\\Seen", "$Important"]).
        raw: Full RFC 822 message, or None if the server sent no body.
    """
    uid: int
    flags: list[str] = field(default_factory=list)
    raw: bytes | None = None


# =============================================================================
# Stage 1: FETCH response grouping
# =============================================================================

def parse_fetch_response(lines: Iterable[bytes | bytearray | str]) -> list[FetchedMessage]:
    """
    Group aioimaplib FETCH response items into FetchedMessage records.

    Args:
        lines: response.lines from an aioimaplib UID FETCH.

    Returns:
        One FetchedMessage per "N FETCH (...)" group that carried a UID.
    """
    groups: list[dict] = []
    current: dict | None = None

    for item in lines:
        if isinstance(item, bytearray):
            # Literal payload: the first one in a group is the message body
            if current is not None and current["raw"] is None:
                current["raw"] = bytes(item)
            continue

        item_bytes = item if isinstance(item, bytes) else str(item).encode("utf-8")

        if _FETCH_START.match(item_bytes):
            current = {"text": item_bytes.decode("utf-8", errors="replace"), "raw": None}
            groups.append(current)
        elif current is not None:
            current["text"] += " " + item_bytes.decode("utf-8", errors="replace").strip()

    fetched = []
    for group in groups:
        text = group["text"]
        uid_match = _UID.search(text)
        if not uid_match:
            logger.warning(f"FETCH response without UID, skipping: {text[:80]!r}")
            continue

        flags_match = _FLAGS.search(text)
        flags = flags_match.group(1).split() if flags_match else []

        fetched.append(FetchedMessage(
            uid=int(uid_match.group(1)),
            flags=flags,
            raw=group["raw"],
        ))

    return fetched


# =============================================================================
# Stage 2: MIME parsing
# =============================================================================

def parse_message(
    fetched: FetchedMessage,
    *,
    account_id: str,
    folder_id: str,
    synced_at: datetime | None = None,
) -> Message:
    """
    Parse a fetched message into the canonical Message model.

    Header fallbacks:
        Subject    -> "No Subject"
        From       -> "unknown@example.com"
        Date       -> synced_at (now) when missing or unparseable
        Message-ID -> "msg-<uid>"

    Raises:
        ParseError: If the message has no body or cannot be parsed.
    """
    uid = fetched.uid
    if not fetched.raw:
        raise ParseError(uid, "message has no body")

    synced_at = synced_at or datetime.now(timezone.utc)

    try:
        msg = email.message_from_bytes(fetched.raw)

        subject = _decode_header(msg.get("Subject", "")).strip() or DEFAULT_SUBJECT

        from_name, from_address = email.utils.parseaddr(_decode_header(msg.get("From", "")))
        from_address = from_address or UNKNOWN_SENDER

        timestamp = parse_mail_date(msg.get("Date", "")) or synced_at

        text_body, html_body = _extract_bodies(msg)

        message_id = str(msg.get("Message-ID", "")).strip() or f"msg-{uid}"
        in_reply_to = str(msg.get("In-Reply-To", "")).strip() or None
        references = str(msg.get("References", "")).split()

        message = Message(
            id=message_id_for(account_id, uid),
            account_id=account_id,
            folder_id=folder_id,
            uid=uid,
            message_id=message_id,
            subject=subject,
            from_name=from_name or None,
            from_address=from_address,
            to=_addresses(msg, "To"),
            cc=_addresses(msg, "Cc"),
            bcc=_addresses(msg, "Bcc"),
            timestamp=timestamp,
            text_body=text_body,
            html_body=html_body,
            in_reply_to=in_reply_to,
            references=references,
            thread_id=references[0] if references else (in_reply_to or message_id),
            synced_at=synced_at,
        )
    except (ValueError, LookupError, TypeError, AttributeError, email.errors.MessageError) as e:
        raise ParseError(uid, str(e)) from e

    message.apply_flags(fetched.flags)
    return message


def parse_mail_date(value: str | None) -> datetime | None:
    """
    Parse a Date header into an aware UTC datetime.

    Accepts RFC 2822 ("Tue, 15 Jan 2024 10:30:00 +0100") and, failing
    that, ISO 8601 / RFC 3339 ("2024-01-15T10:30:00+01:00"). Naive results
    are assumed to be UTC.

    Returns:
        The parsed datetime, or None if neither format matches.
    """
    if not value:
        return None
    value = str(value).strip()

    parsed: datetime | None = None
    try:
        parsed = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _extract_bodies(msg: EmailMessage) -> tuple[str | None, str | None]:
    """
    Pick the plain-text and HTML bodies independently.

    The text body is the first text/plain part that is not an attachment.
    The HTML body is the first such text/html part. A single-part message
    of any other text type is used as the text body, best-effort.
    """
    if not msg.is_multipart():
        content_type = msg.get_content_type()
        body = _decode_part(msg)
        if content_type == "text/html":
            return None, body
        return body, None

    text_body: str | None = None
    html_body: str | None = None

    for part in msg.walk():
        if part.is_multipart():
            continue
        if "attachment" in str(part.get("Content-Disposition", "")).lower():
            continue

        content_type = part.get_content_type()
        if content_type == "text/plain" and text_body is None:
            text_body = _decode_part(part)
        elif content_type == "text/html" and html_body is None:
            html_body = _decode_part(part)

    return text_body, html_body


def _decode_part(part: EmailMessage) -> str:
    """Decode a message part to string."""
    payload = part.get_payload(decode=True)
    if isinstance(payload, bytes):
        charset = part.get_content_charset() or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except LookupError:
            # Unknown charset name
            return payload.decode("utf-8", errors="replace")
    return str(payload) if payload else ""


def _decode_header(value) -> str:
    """
    Decode a header value into text.

    Handles RFC 2047 encoded-words and raw UTF-8 header bytes (RFC 6532),
    which the compat32 parser hands back as an unknown-8bit Header. A value
    that cannot be decoded is returned as-is.
    """
    if not value:
        return ""
    if isinstance(value, email.header.Header):
        value = _join_parts(email.header.decode_header(value))
    try:
        return _join_parts(email.header.decode_header(value))
    except (email.errors.HeaderParseError, ValueError):
        return str(value)


def _join_parts(parts) -> str:
    result = ""
    for part, charset in parts:
        if not isinstance(part, bytes):
            result += part
        elif charset is None:
            # decode_header() returns unencoded text as raw-unicode-escape bytes
            result += part.decode("raw-unicode-escape", errors="replace")
        else:
            try:
                result += part.decode(charset, errors="replace")
            except LookupError:
                result += part.decode("utf-8", errors="replace")
    return result


def _addresses(msg: EmailMessage, header: str) -> list[str]:
    """Return the bare addresses from every occurrence of a header."""
    values = [_decode_header(v) for v in msg.get_all(header, [])]
    return [addr for _, addr in email.utils.getaddresses(values) if addr]
