"""
ActionMixin — Fire-and-forget remote actions.

Submitting homework and replying to a discussion are acknowledged to the
writer before the remote call finishes: FUSE requests are handled one at
a time, and a write reply cannot be taken back once sent. The remote call
runs in the background nursery with its own copy of everything it needs
and never touches the inode arena; its outcome only shows up in the log
and in what a later refresh returns.
"""

import errno
import logging
from typing import Awaitable, Callable, Optional

import pyfuse3
import trio

from ..api_client import Attachment
from ..models import ThreadRef
from ..payload import WritePayload, parse_payload
from ..proc import read_process_file

log = logging.getLogger(__name__)


class ActionMixin:
    """Fire-and-forget remote actions."""

    async def _read_payload(self, buf: bytes, pid: int) -> tuple[str, Optional[Attachment]]:
        """Decode a write body and read its attachment from the writer's cwd.

        The attachment is read now, while the writing process is known to be
        alive, rather than in the background task.
        """
        try:
            payload: WritePayload = parse_payload(buf)
        except UnicodeDecodeError as e:
            log.error(f"Write payload is not UTF-8: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        if payload.file_path is None:
            return payload.text, None
        try:
            data = await trio.to_thread.run_sync(read_process_file, pid, payload.file_path)
        except OSError as e:
            log.error(f"Cannot read attachment {payload.file_path} of process {pid}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)
        return payload.text, (payload.file_name, data)

    def _spawn(self, fn: Callable[..., Awaitable[None]], *args) -> None:
        if self._nursery is None:
            log.error("No background nursery; filesystem is not running")
            raise pyfuse3.FUSEError(errno.EIO)
        self._nursery.start_soon(fn, *args)

    async def _submit_homework(self, client, student_homework_id: str, text: str,
                               attachment: Optional[Attachment]) -> None:
        """Background task: submit homework and log the outcome."""
        try:
            await client.submit_homework(student_homework_id, text, attachment)
        except Exception as e:
            log.warning(f"Failed to submit homework {student_homework_id}: {e}")
        else:
            log.info(f"Submitted homework {student_homework_id}")

    async def _reply_discussion(self, client, thread: ThreadRef, reply_id: Optional[str], text: str,
                                attachment: Optional[Attachment]) -> None:
        """Background task: post a reply and log the outcome."""
        try:
            await client.reply_discussion(thread.course_id, thread.discussion_id, text, reply_id, attachment)
        except Exception as e:
            log.warning(f"Failed to reply to discussion {thread.discussion_id}: {e}")
        else:
            log.info(f"Replied to discussion {thread.discussion_id}")
