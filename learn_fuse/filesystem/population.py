"""
PopulationMixin — Lazy materialization of remote content into nodes.

A course's four categories are fetched the first time the course is looked
into or listed; a discussion's replies the first time the thread is.
Everything is fetched before the first node is appended, so a failed fetch
leaves the arena untouched and the next request simply tries again.
"""

import errno
import logging
from functools import partial

import pyfuse3

from ..formatters import (
    file_fields, homework_fields, nested_reply_label, notification_fields, reply_label,
    sanitize_name,
)
from ..models import (
    DISCUSSIONS, FILES, HOMEWORK, NOTIFICATIONS, REFRESH_NAME, SUBMIT_NAME,
    Course, Discussion, DiscussionRefresh, DiscussionReply, HomeworkRefresh,
    Item, ItemList, Refresh, SubmitHomework, ThreadRef, find_child,
)
from ..records import Homework
from ..tasks import gather
from ..urls import file_download

log = logging.getLogger(__name__)


class PopulationMixin:
    """Lazy materialization of remote content into nodes."""

    async def _populate_course(self, course: Course) -> None:
        """Fetch and build all four categories of a course, once."""
        if course.fetched:
            return

        client = course.client
        log.info(f"Fetching content of course {course.id}")
        try:
            homework, notifications, files, discussions = await gather(
                partial(client.list_homework, course.id),
                partial(client.list_notifications, course.id),
                partial(client.list_files, course.id),
                partial(client.list_discussions, course.id),
            )
        except Exception as e:
            log.error(f"Failed to fetch content of course {course.id}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        homework_list = self._category(course, HOMEWORK)
        notification_list = self._category(course, NOTIFICATIONS)
        file_list = self._category(course, FILES)
        discussion_list = self._category(course, DISCUSSIONS)

        # Build every subtree before attaching any, so a bad record leaves
        # the course unfetched
        try:
            homework_entries = [(sanitize_name(h.title), self._add_homework(h, client)) for h in homework]
            notification_entries = [
                (sanitize_name(n.title), self._add_item(notification_fields(n, client)))
                for n in notifications
            ]
            file_entries = [
                (sanitize_name(f.title), self._add_item(file_fields(f, file_download(f.id), client)))
                for f in files
            ]
            discussion_entries = [
                (sanitize_name(d.title), self._add_discussion(course, d, client)) for d in discussions
            ]
        except (AttributeError, TypeError, ValueError) as e:
            log.error(f"Malformed content in course {course.id}: {e}", exc_info=True)
            raise pyfuse3.FUSEError(errno.EIO)

        homework_list.entries.extend(homework_entries)
        notification_list.entries.extend(notification_entries)
        file_list.entries.extend(file_entries)
        discussion_list.entries.extend(discussion_entries)
        course.fetched = True

        log.info(f"Course {course.id}: {len(homework)} homework, {len(notifications)} notifications, "
                 f"{len(files)} files, {len(discussions)} discussions")

    def _category(self, course: Course, name: str) -> ItemList:
        inode = find_child(course.categories, name)
        if inode is None:
            log.error(f"Course {course.id} has no {name} category")
            raise pyfuse3.FUSEError(errno.EIO)
        return self._typed_node(inode, ItemList)

    def _add_discussion(self, course: Course, d, client) -> int:
        """Append a Discussion holding only its refresh action."""
        inode = self._arena.push(Discussion(
            thread=ThreadRef(course_id=course.id, discussion_id=d.id),
            board=d.board_id,
            client=client,
        ))
        refresh = self._arena.push(Refresh(parent=inode, client=client, kind=DiscussionRefresh()))
        self._arena.get(inode).replies.append((REFRESH_NAME, refresh))
        return inode

    def _add_item(self, fields) -> int:
        """Append an Item and its content children; return the Item inode."""
        entries = [(label, self._arena.push(content)) for label, content in fields]
        return self._arena.push(Item(entries=entries))

    def _add_homework(self, h: Homework, client) -> int:
        """Append a homework Item: submit and refresh actions, then its fields."""
        inode = self._arena.push(Item())
        submit = self._arena.push(SubmitHomework(student_homework_id=h.student_homework_id, client=client))
        refresh = self._arena.push(Refresh(
            parent=inode,
            client=client,
            kind=HomeworkRefresh(course_id=h.course_id, homework_id=h.id),
        ))
        item = self._arena.get(inode)
        item.entries.append((SUBMIT_NAME, submit))
        item.entries.append((REFRESH_NAME, refresh))
        item.entries.extend((label, self._arena.push(content)) for label, content in homework_fields(h, client))
        return inode

    async def _populate_replies(self, discussion: Discussion) -> None:
        """Fetch the posts of a thread when only the refresh entry is present."""
        if len(discussion.replies) != 1:
            return

        thread = discussion.thread
        try:
            replies = await discussion.client.fetch_replies(thread.course_id, thread.discussion_id, discussion.board)
        except Exception as e:
            log.error(f"Failed to fetch replies of discussion {thread.discussion_id}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        for i, reply in enumerate(replies):
            discussion.replies.append((reply_label(i, reply), self._add_reply(discussion, reply)))
            for j, sub in enumerate(reply.replies):
                discussion.replies.append((nested_reply_label(i, j, sub), self._add_reply(discussion, sub)))

        log.debug(f"Discussion {thread.discussion_id}: {len(discussion.replies) - 1} posts")

    def _add_reply(self, discussion: Discussion, reply) -> int:
        return self._arena.push(DiscussionReply(
            thread=discussion.thread,
            reply_id=reply.id,
            client=discussion.client,
            content=reply.content,
        ))
