"""Tests for FETCH response grouping and MIME parsing."""

from datetime import datetime, timezone

import pytest

from conftest import fetch_lines
from mailsync.imap.errors import ParseError
from mailsync.imap.parser import (
    DEFAULT_SUBJECT,
    UNKNOWN_SENDER,
    FetchedMessage,
    parse_fetch_response,
    parse_mail_date,
    parse_message,
)

SYNCED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def parse(raw: bytes, uid: int = 7, flags: list[str] | None = None):
    return parse_message(
        FetchedMessage(uid=uid, flags=flags or [], raw=raw),
        account_id="acc1",
        folder_id="acc1-INBOX",
        synced_at=SYNCED_AT,
    )


# ==============================================================================
# parse_fetch_response Tests
# ==============================================================================


class TestParseFetchResponse:
    """Tests for grouping aioimaplib FETCH lines."""

    def test_groups_each_message(self, raw_plain_email) -> None:
        lines = (
            fetch_lines(3, raw_plain_email, "\\Seen")
            + fetch_lines(5, b"Subject: two\r\n\r\nbody")
            + [b"FETCH completed"]
        )

        fetched = parse_fetch_response(lines)

        assert [f.uid for f in fetched] == [3, 5]
        assert fetched[0].flags == ["\\Seen"]
        assert fetched[0].raw == raw_plain_email
        assert fetched[1].flags == []

    def test_uid_and_flags_after_literal(self) -> None:
        lines = [
            b"1 FETCH (BODY[] {9}",
            bytearray(b"Subject: x"),
            b" UID 99 FLAGS (\\Flagged $Important))",
        ]

        fetched = parse_fetch_response(lines)

        assert len(fetched) == 1
        assert fetched[0].uid == 99
        assert fetched[0].flags == ["\\Flagged", "$Important"]

    def test_entry_without_uid_is_dropped(self) -> None:
        lines = [b"4 FETCH (FLAGS (\\Seen))", b"FETCH completed"]

        assert parse_fetch_response(lines) == []


# ==============================================================================
# parse_message Tests
# ==============================================================================


class TestParseMessage:
    """Tests for mapping RFC 822 bytes onto Message."""

    def test_plain_message(self, raw_plain_email) -> None:
        message = parse(raw_plain_email, uid=42, flags=["\\Seen"])

        assert message.id == "acc1-msg-42"
        assert message.folder_id == "acc1-INBOX"
        assert message.subject == "Lunch?"
        assert message.from_name == "Alice Example"
        assert message.from_address == "alice@example.com"
        assert message.to == ["bob@example.com", "carol@example.com"]
        assert message.timestamp == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert message.text_body.strip() == "Are you free at noon?"
        assert message.html_body is None
        assert message.message_id == "<lunch-1@example.com>"
        assert message.thread_id == "<lunch-1@example.com>"
        assert message.is_read
        assert not message.is_starred

    def test_multipart_message(self, raw_multipart_email) -> None:
        message = parse(raw_multipart_email, flags=["\\Flagged", "$Important"])

        assert message.subject == "Re: Grüße"
        assert message.from_name == "Jürgen"
        assert message.cc == ["lead@example.com"]
        assert message.text_body.strip() == "Plain greetings"
        assert message.html_body.strip() == "<p>HTML greetings</p>"
        assert message.in_reply_to == "<reply-1@example.de>"
        assert message.references == ["<root-0@example.de>", "<reply-1@example.de>"]
        assert message.thread_id == "<root-0@example.de>"

    def test_raw_utf8_headers(self) -> None:
        raw = (
            "Subject: Grüße aus Köln\r\n"
            "From: Jürgen Müller <juergen@example.de>\r\n"
            "To: Zoë <zoe@example.com>\r\n"
            "\r\n"
            "Hallo\r\n"
        ).encode("utf-8")

        message = parse(raw)

        assert message.subject == "Grüße aus Köln"
        assert message.from_name == "Jürgen Müller"
        assert message.from_address == "juergen@example.de"
        assert message.to == ["zoe@example.com"]

    def test_malformed_encoded_word_keeps_raw_subject(self) -> None:
        raw = (
            b"Subject: =?utf-8?b?!!!notbase64?=\r\n"
            b"From: alice@example.com\r\n"
            b"\r\n"
            b"body\r\n"
        )

        message = parse(raw, uid=2)

        assert message.subject == "=?utf-8?b?!!!notbase64?="
        assert message.from_address == "alice@example.com"
        assert not message.is_read
        assert message.is_starred
        assert message.is_important

    def test_missing_headers_use_fallbacks(self) -> None:
        message = parse(b"\r\nbody only\r\n", uid=8)

        assert message.subject == DEFAULT_SUBJECT
        assert message.from_address == UNKNOWN_SENDER
        assert message.message_id == "msg-8"
        assert message.timestamp == SYNCED_AT

    def test_unparseable_date_falls_back_to_sync_time(self) -> None:
        message = parse(b"Subject: hi\r\nDate: sometime last week\r\n\r\nx")

        assert message.timestamp == SYNCED_AT

    def test_html_only_message(self) -> None:
        message = parse(b"Content-Type: text/html\r\n\r\n<b>hi</b>")

        assert message.text_body is None
        assert message.html_body == "<b>hi</b>"

    def test_empty_body_raises(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse(b"")

        assert exc_info.value.uid == 7


class TestParseMailDate:
    """Tests for the two-format Date rule."""

    def test_rfc2822(self) -> None:
        assert parse_mail_date("Tue, 15 Jan 2024 10:30:00 +0100") == datetime(
            2024, 1, 15, 9, 30, tzinfo=timezone.utc
        )

    def test_iso8601(self) -> None:
        assert parse_mail_date("2024-01-15T10:30:00+01:00") == datetime(
            2024, 1, 15, 9, 30, tzinfo=timezone.utc
        )

    def test_naive_is_utc(self) -> None:
        assert parse_mail_date("2024-01-15T10:30:00") == datetime(
            2024, 1, 15, 10, 30, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize("value", ["", None, "not a date"])
    def test_garbage_returns_none(self, value) -> None:
        assert parse_mail_date(value) is None
