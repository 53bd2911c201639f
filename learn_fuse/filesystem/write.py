"""
WriteMixin — Writes, logins, and deletions.

Writing never stores data. A write to an action file or a reply is a
command: submit homework, post a reply, or refresh cached content. mkdir
at the root logs a user in; unlink in a discussion deletes a reply.
"""

import errno
import logging
from functools import partial

import pyfuse3
import trio

from ..api_client import LearnClient
from ..errors import AuthError
from ..formatters import homework_fields, sanitize_name, semester_label
from ..models import (
    COURSE_CATEGORIES, Course, Discussion, DiscussionRefresh, DiscussionReply,
    HomeworkRefresh, Item, ItemList, Refresh, Root, Semester, SubmitHomework, User,
    find_child,
)
from ..proc import prompt_password
from ..tasks import gather

log = logging.getLogger(__name__)


class WriteMixin:
    """Writes, logins, and deletions."""

    async def write(self, fh: int, off: int, buf: bytes) -> int:
        """Run the command behind a writable node; the whole buffer is consumed."""
        handle = self._handle(fh)
        node = self._node(handle.inode)
        log.info(f"write: inode={handle.inode}, {len(buf)} bytes")

        if isinstance(node, SubmitHomework):
            text, attachment = await self._read_payload(buf, handle.pid)
            self._spawn(self._submit_homework, node.client, node.student_homework_id, text, attachment)
        elif isinstance(node, DiscussionReply):
            text, attachment = await self._read_payload(buf, handle.pid)
            self._spawn(self._reply_discussion, node.client, node.thread, node.reply_id, text, attachment)
        elif isinstance(node, Refresh):
            await self._refresh(node)
        else:
            raise pyfuse3.FUSEError(errno.EPERM)
        return len(buf)

    async def setattr(self, inode: int, attr: pyfuse3.EntryAttributes, fields: pyfuse3.SetattrFields,
                      fh: int, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Accept truncation of writable nodes so `echo > file` works."""
        node = self._node(inode)
        if fields.update_size and not isinstance(node, (SubmitHomework, Refresh, DiscussionReply)):
            raise pyfuse3.FUSEError(errno.EPERM)
        return self._attr(inode)

    async def _refresh(self, node: Refresh) -> None:
        if isinstance(node.kind, HomeworkRefresh):
            await self._refresh_homework(node)
        elif isinstance(node.kind, DiscussionRefresh):
            discussion = self._typed_node(node.parent, Discussion)
            # Back to the sentinel; the next lookup/readdir fetches again
            del discussion.replies[1:]
            log.info(f"Discussion {discussion.thread.discussion_id} will be re-fetched")

    async def _refresh_homework(self, node: Refresh) -> None:
        """Re-fetch one homework and replace its fields.

        The submit and refresh actions (first two entries) are kept; the old
        field nodes stay in the arena, unreachable.
        """
        kind = node.kind
        try:
            homework = await node.client.list_homework(kind.course_id)
        except Exception as e:
            log.error(f"Failed to refresh homework {kind.homework_id}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        h = next((h for h in homework if h.id == kind.homework_id), None)
        if h is None:
            log.info(f"Homework {kind.homework_id} no longer exists, nothing to refresh")
            return

        item = self._typed_node(node.parent, Item)
        fresh = [(label, self._arena.push(content)) for label, content in homework_fields(h, node.client)]
        del item.entries[2:]
        item.entries.extend(fresh)
        log.info(f"Refreshed homework {kind.homework_id}")

    async def mkdir(self, parent_inode: int, name: bytes, mode: int, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Log a user in: mkdir <username> at the root.

        The password is asked for on the terminal of the process calling
        mkdir. Nothing is added to the tree unless every step succeeds.
        """
        name_str = name.decode("utf-8", errors="surrogateescape")
        log.info(f"mkdir: parent={parent_inode}, name={name_str}")

        root = self._node(parent_inode)
        if not isinstance(root, Root):
            raise pyfuse3.FUSEError(errno.EPERM)

        try:
            password = await trio.to_thread.run_sync(prompt_password, ctx.pid)
        except (OSError, UnicodeDecodeError) as e:
            log.error(f"Cannot read password from process {ctx.pid}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        try:
            client = await LearnClient.login(name_str, password, self.config)
        except AuthError as e:
            log.warning(f"Login failed for {name_str}: {e}")
            raise pyfuse3.FUSEError(errno.EACCES)
        except Exception as e:
            log.error(f"Login failed for {name_str}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        try:
            semesters = await client.list_semesters()
            courses = await gather(*(partial(client.list_courses, s) for s in semesters))
        except Exception as e:
            log.error(f"Failed to list courses of {name_str}: {e}")
            await client.close()
            raise pyfuse3.FUSEError(errno.EIO)

        user_inode = self._arena.push(User())
        user = self._arena.get(user_inode)
        for semester_id, semester_courses in zip(semesters, courses):
            semester_inode = self._arena.push(Semester())
            semester = self._arena.get(semester_inode)
            for c in semester_courses:
                semester.courses.append((sanitize_name(c.name), self._add_course(c.id, client)))
            user.semesters.append((semester_label(semester_id), semester_inode))

        root.users.append((name_str, user_inode))
        self._clients.append(client)
        log.info(f"User {name_str}: {len(semesters)} semesters, {sum(map(len, courses))} courses")
        return self._attr(user_inode)

    def _add_course(self, course_id: str, client: LearnClient) -> int:
        """Append a Course with its empty category lists."""
        inode = self._arena.push(Course(id=course_id, client=client))
        course = self._arena.get(inode)
        for category in COURSE_CATEGORIES:
            course.categories.append((category, self._arena.push(ItemList())))
        return inode

    async def unlink(self, parent_inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> None:
        """Delete one of the user's replies from a discussion."""
        name_str = name.decode("utf-8", errors="surrogateescape")
        log.info(f"unlink: parent={parent_inode}, name={name_str}")

        discussion = self._node(parent_inode)
        if not isinstance(discussion, Discussion):
            raise pyfuse3.FUSEError(errno.EPERM)
        await self._populate_replies(discussion)

        inode = find_child(discussion.replies, name_str)
        if inode is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        reply = self._node(inode)
        # The opening post and the refresh action cannot be deleted
        if not isinstance(reply, DiscussionReply) or reply.reply_id is None:
            raise pyfuse3.FUSEError(errno.EPERM)

        try:
            await reply.client.delete_reply(reply.thread.course_id, reply.reply_id)
        except Exception as e:
            log.error(f"Failed to delete reply {reply.reply_id}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        discussion.replies.remove((name_str, inode))
        log.info(f"Deleted reply {reply.reply_id}")
