# =============================================================================
# Message Synchronizer
# =============================================================================
# Downloads the messages of one folder, optionally limited to those received
# on or after a date.
#
# Sync flow:
#   1. SELECT the folder (failure ends the sync)
#   2. UID SEARCH SINCE <date> (or ALL)
#   3. Sort the UIDs and fetch them in batches of BATCH_SIZE
#   4. Parse every fetched message into a Message
#
# Partial results:
#   A batch whose FETCH fails is logged and skipped; later batches still
#   run. A message that cannot be parsed is logged and dropped. Everything
#   that was skipped is listed in SyncResult.errors, so the caller can tell
#   a short folder from a short sync.
#
# Batching keeps each FETCH response bounded. Batches run one after another
# on the single session connection.
# =============================================================================

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from mailsync.core import Message
from mailsync.imap.client import IMAPSession
from mailsync.imap.errors import FetchError, ParseError
from mailsync.imap.parser import parse_message

logger = logging.getLogger(__name__)

# IMAP date months are English regardless of locale (RFC 3501 date-month)
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def imap_date(value: datetime) -> str:
    """
    Format a datetime as an IMAP search date (e.g. "05-Mar-2024").

    Naive datetimes are taken as UTC; aware ones are converted to UTC first.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year:04d}"


def build_search_criteria(since: datetime | None) -> list[str]:
    """UID SEARCH criteria: everything, or messages since a date."""
    if since is None:
        return ["ALL"]
    return ["SINCE", imap_date(since)]


@dataclass
class SyncResult:
    """
    Result of syncing one folder.

    Attributes:
        messages: Successfully parsed messages, in ascending UID order.
        errors: Descriptions of every skipped batch or message.
        batches: Number of FETCH batches attempted.
        failed_batches: Number of batches whose FETCH failed.
        skipped: Number of fetched messages that could not be parsed.
        duration_seconds: Time taken for the sync.
    """
    messages: list[Message] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    batches: int = 0
    failed_batches: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """True if nothing was skipped."""
        return not self.errors


class MessageSynchronizer:
    """
    Fetches and parses the messages of a folder over one session.

    Usage:
        >>> synchronizer = MessageSynchronizer(session, "acc1")
        >>> result = await synchronizer.sync("acc1-INBOX", "INBOX", since=cutoff)
        >>> print(f"{len(result.messages)} messages, {len(result.errors)} errors")
    """

    # Number of messages to fetch per batch
    BATCH_SIZE = 50

    def __init__(
        self,
        session: IMAPSession,
        account_id: str,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.session = session
        self.account_id = account_id
        self.batch_size = batch_size

    async def sync(
        self,
        folder_id: str,
        folder_path: str,
        since: datetime | None = None,
    ) -> SyncResult:
        """
        Sync one folder.

        Args:
            folder_id: Local folder id stamped onto every message.
            folder_path: Server path to SELECT.
            since: Only fetch messages received on or after this date.

        Returns:
            SyncResult with the parsed messages and any skipped work.

        Raises:
            FolderSelectError: If the folder cannot be selected.
            SearchError: If the UID SEARCH fails.
        """
        start_time = time.monotonic()
        result = SyncResult()

        await self.session.select(folder_path)

        criteria = build_search_criteria(since)
        uids = sorted(await self.session.search(criteria))

        if not uids:
            logger.info(f"Sync of {folder_path} complete: 0 messages")
            return result

        total_batches = (len(uids) + self.batch_size - 1) // self.batch_size
        logger.debug(f"Sync {folder_path}: {len(uids)} messages in {total_batches} batches")

        synced_at = datetime.now(timezone.utc)

        for i in range(0, len(uids), self.batch_size):
            batch_uids = uids[i:i + self.batch_size]
            batch_num = (i // self.batch_size) + 1
            result.batches += 1

            logger.debug(
                f"Fetching batch {batch_num}/{total_batches} "
                f"({len(batch_uids)} messages) from {folder_path}"
            )

            try:
                fetched = await self.session.fetch_messages(batch_uids)
            except FetchError as e:
                logger.warning(f"Skipping batch {batch_num}/{total_batches} of {folder_path}: {e}")
                result.failed_batches += 1
                result.errors.append(
                    f"batch {batch_num} (UIDs {batch_uids[0]}-{batch_uids[-1]}): {e}"
                )
                continue

            for item in fetched:
                try:
                    message = parse_message(
                        item,
                        account_id=self.account_id,
                        folder_id=folder_id,
                        synced_at=synced_at,
                    )
                except ParseError as e:
                    logger.warning(f"Skipping message in {folder_path}: {e}")
                    result.skipped += 1
                    result.errors.append(str(e))
                    continue
                result.messages.append(message)

        result.duration_seconds = time.monotonic() - start_time

        if result.errors:
            logger.info(
                f"Sync of {folder_path} complete: {len(result.messages)} messages "
                f"({len(result.errors)} skipped)"
            )
        else:
            logger.info(f"Sync of {folder_path} complete: {len(result.messages)} messages")
        return result


async def sync_messages(
    session: IMAPSession,
    account_id: str,
    folder_id: str,
    folder_path: str,
    since: datetime | None = None,
    *,
    batch_size: int = MessageSynchronizer.BATCH_SIZE,
) -> SyncResult:
    """Sync one folder with a fresh MessageSynchronizer."""
    synchronizer = MessageSynchronizer(session, account_id, batch_size=batch_size)
    return await synchronizer.sync(folder_id, folder_path, since)
