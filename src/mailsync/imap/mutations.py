# =============================================================================
# Mutation Executor
# =============================================================================
# Single-message changes: read state, move, delete. Each one selects the
# folder, then runs a short fixed sequence of UID commands.
#
#   set_read_state:  STORE +/-FLAGS (\Seen)
#   move_message:    COPY -> STORE +FLAGS (\Deleted)
#   delete_message:  STORE +FLAGS (\Deleted) -> EXPUNGE
#
# A step only runs if the step before it succeeded. move_message does not
# expunge: the source copy stays flagged \Deleted until the folder is next
# expunged. If the COPY lands but the STORE fails, the message exists in
# both folders and PartialMoveError says so. There is no rollback.
#
# After a move the message has a new, unknown UID in the target folder.
# Sync the target folder to learn it.
# =============================================================================

import logging

from mailsync.imap.client import IMAPSession
from mailsync.imap.errors import IMAPCommandError, MutationStepError, PartialMoveError

logger = logging.getLogger(__name__)

SEEN = "\\Seen"
DELETED = "\\Deleted"


async def set_read_state(session: IMAPSession, folder_path: str, uid: int, read: bool) -> None:
    """
    Mark a message as read or unread.

    Raises:
        FolderSelectError: If the folder cannot be selected.
        MutationStepError: If the STORE fails (step "store").
    """
    await session.select(folder_path)

    try:
        await session.store_flags(uid, [SEEN], add=read)
    except IMAPCommandError as e:
        raise MutationStepError("store", uid, str(e)) from e

    logger.info(f"Marked UID {uid} in {folder_path} as {'read' if read else 'unread'}")


async def move_message(
    session: IMAPSession,
    folder_path: str,
    uid: int,
    target_folder_path: str,
) -> None:
    """
    Move a message to another folder (COPY, then flag the source \\Deleted).

    Raises:
        FolderSelectError: If the source folder cannot be selected.
        MutationStepError: If the COPY fails (step "copy"); nothing changed.
        PartialMoveError: If the COPY succeeded but the STORE failed.
    """
    await session.select(folder_path)

    try:
        await session.copy(uid, target_folder_path)
    except IMAPCommandError as e:
        raise MutationStepError("copy", uid, str(e)) from e

    try:
        await session.store_flags(uid, [DELETED], add=True)
    except IMAPCommandError as e:
        logger.warning(
            f"UID {uid} copied to {target_folder_path} but still in {folder_path}: {e}"
        )
        raise PartialMoveError(uid, folder_path, target_folder_path, str(e)) from e

    logger.info(f"Moved UID {uid} from {folder_path} to {target_folder_path}")


async def delete_message(session: IMAPSession, folder_path: str, uid: int) -> None:
    """
    Permanently delete a message (flag \\Deleted, then EXPUNGE).

    EXPUNGE removes every \\Deleted message in the folder, not only this
    one.

    Raises:
        FolderSelectError: If the folder cannot be selected.
        MutationStepError: If the STORE (step "store") or EXPUNGE
            (step "expunge") fails. EXPUNGE is never sent after a failed
            STORE.
    """
    await session.select(folder_path)

    try:
        await session.store_flags(uid, [DELETED], add=True)
    except IMAPCommandError as e:
        raise MutationStepError("store", uid, str(e)) from e

    try:
        await session.expunge()
    except IMAPCommandError as e:
        raise MutationStepError("expunge", uid, str(e)) from e

    logger.info(f"Deleted UID {uid} from {folder_path}")
