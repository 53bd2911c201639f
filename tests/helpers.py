"""Builders shared by the filesystem tests: records, a mocked client, a bare fs."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pyfuse3

from learn_fuse.api_client import LearnClient
from learn_fuse.config import FuseConfig
from learn_fuse.filesystem import LearnFS
from learn_fuse.models import Semester, User
from learn_fuse.records import (
    Course, CourseFile, Discussion, DiscussionReply, Homework, HomeworkDetail, Notification,
)


def make_fs() -> LearnFS:
    """Create a LearnFS with default config and no users."""
    return LearnFS(FuseConfig())


def make_client() -> AsyncMock:
    """A LearnClient stand-in whose remote calls return empty results."""
    client = AsyncMock(spec=LearnClient)
    client.list_homework.return_value = []
    client.list_notifications.return_value = []
    client.list_files.return_value = []
    client.list_discussions.return_value = []
    client.fetch_replies.return_value = []
    return client


def mock_ctx(pid: int = 12345):
    """Create a mock pyfuse3.RequestContext."""
    ctx = MagicMock(spec=pyfuse3.RequestContext)
    ctx.uid = 1000
    ctx.gid = 1000
    ctx.pid = pid
    return ctx


def course(id="c1", name="软件工程") -> Course:
    return Course(id=id, name=name)


def homework(id="h1", title="第一次作业", **kwargs) -> Homework:
    fields = dict(
        course_id="c1",
        id=id,
        student_homework_id=f"s-{id}",
        title=title,
        assign_time=datetime(2020, 3, 1, 8, 0),
        deadline=datetime(2020, 3, 8, 23, 59),
        detail=HomeworkDetail(description="完成第一章习题"),
    )
    fields.update(kwargs)
    return Homework(**fields)


def notification(id="n1", title="开课通知", **kwargs) -> Notification:
    fields = dict(
        course_id="c1",
        id=id,
        title=title,
        content="欢迎选课",
        read=True,
        important=False,
        publish_time=datetime(2020, 2, 20, 9, 30),
        publisher="张老师",
    )
    fields.update(kwargs)
    return Notification(**fields)


def course_file(id="f1", title="课件1", **kwargs) -> CourseFile:
    fields = dict(
        id=id,
        title=title,
        description="第一讲",
        raw_size=2048,
        size="2K",
        upload_time=datetime(2020, 2, 21, 10, 0),
        new=False,
        important=True,
        visit_count=3,
        download_count=1,
        file_type="pdf",
    )
    fields.update(kwargs)
    return CourseFile(**fields)


def discussion(id="d1", title="期中答疑", board="b1") -> Discussion:
    return Discussion(
        id=id,
        board_id=board,
        title=title,
        publisher_name="张老师",
        publish_time=datetime(2020, 4, 1, 12, 0, 0),
    )


def reply(id, author="李四", content="同问", replies=None, minute=0) -> DiscussionReply:
    return DiscussionReply(
        id=id,
        author=author,
        publish_time=datetime(2020, 4, 2, 10, minute, 0),
        content=content,
        replies=replies or [],
    )


def listing(fs: LearnFS, inode: int, start_id: int = 0, limit: int = None):
    """Run readdir and collect (name, inode, next_id) for each entry sent."""
    sent = []

    def readdir_reply(token, name, attr, next_id):
        if limit is not None and len(sent) >= limit:
            return False
        sent.append((name.decode("utf-8"), attr.st_ino, next_id))
        return True

    async def run():
        with patch("pyfuse3.readdir_reply", side_effect=readdir_reply):
            await fs.readdir(inode, start_id, MagicMock())
        return sent

    return run()


async def names(fs: LearnFS, inode: int) -> list[str]:
    """Entry names of a directory, without "." and ".."."""
    return [name for name, _, _ in await listing(fs, inode)][2:]


async def walk(fs: LearnFS, parent: int, *path: str) -> int:
    """Resolve a path of names below ``parent`` with lookup()."""
    inode = parent
    for name in path:
        attr = await fs.lookup(inode, name.encode("utf-8"), mock_ctx())
        inode = attr.st_ino
    return inode


def add_user(fs: LearnFS, client, name="alice", semester="2019-2020-秋",
             course_name="软件工程", course_id="c1") -> int:
    """Build a logged-in user with one course, as mkdir would; return the course inode."""
    arena = fs._arena
    semester_inode = arena.push(Semester())
    course_inode = fs._add_course(course_id, client)
    arena.get(semester_inode).courses.append((course_name, course_inode))
    user_inode = arena.push(User(semesters=[(semester, semester_inode)]))
    arena.root.users.append((name, user_inode))
    return course_inode
