"""Tests for write actions, refresh, mkdir login and reply deletion."""

import errno
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pyfuse3
import pytest
import trio

from learn_fuse.errors import AuthError, RemoteError
from learn_fuse.models import DiscussionRefresh, Refresh
from learn_fuse.records import Course
from tests.helpers import (
    add_user, discussion, homework, make_client, make_fs, mock_ctx, names, reply, walk,
)


async def _write(fs, inode, data: bytes, pid: int = 42) -> int:
    """Open, write and release, with the background nursery running.

    Background tasks have finished by the time this returns. A FUSEError
    from write() is re-raised outside the nursery so it is not wrapped in
    an ExceptionGroup.
    """
    error = None
    async with trio.open_nursery() as nursery:
        fs.set_nursery(nursery)
        info = await fs.open(inode, os.O_WRONLY, mock_ctx(pid))
        try:
            written = await fs.write(info.fh, 0, data)
        except pyfuse3.FUSEError as e:
            error = e
        finally:
            await fs.release(info.fh)
    if error is not None:
        raise error
    return written


def _discussion_client():
    client = make_client()
    client.list_discussions.return_value = [discussion()]
    client.fetch_replies.return_value = [
        reply(None, author="张老师", content="有问题在这里提"),
        reply("r1", content="第三题怎么做"),
    ]
    return client


OPENING = "0楼-张老师-2020-04-02 10:00:00"
FIRST_REPLY = "1楼-李四-2020-04-02 10:00:00"


class TestSubmitHomework:

    async def _submit_inode(self, fs, client):
        client.list_homework.return_value = [homework()]
        course = add_user(fs, client)
        return await walk(fs, course, "作业", "第一次作业", "提交作业")

    @pytest.mark.anyio
    async def test_text_submission(self):
        fs = make_fs()
        client = make_client()
        inode = await self._submit_inode(fs, client)

        assert await _write(fs, inode, "我的答案".encode("utf-8")) == len("我的答案".encode("utf-8"))
        client.submit_homework.assert_awaited_once_with("s-h1", "我的答案", None)

    @pytest.mark.anyio
    async def test_submission_with_attachment(self):
        fs = make_fs()
        client = make_client()
        inode = await self._submit_inode(fs, client)

        with patch("learn_fuse.filesystem.actions.read_process_file", return_value=b"%PDF") as read_file:
            await _write(fs, inode, b"FILE=out/report.pdf see attached", pid=4321)

        read_file.assert_called_once_with(4321, "out/report.pdf")
        client.submit_homework.assert_awaited_once_with("s-h1", " see attached", ("report.pdf", b"%PDF"))

    @pytest.mark.anyio
    async def test_unreadable_attachment_is_eio(self):
        fs = make_fs()
        client = make_client()
        inode = await self._submit_inode(fs, client)

        with patch("learn_fuse.filesystem.actions.read_process_file", side_effect=FileNotFoundError("nope")):
            with pytest.raises(pyfuse3.FUSEError) as exc_info:
                await _write(fs, inode, b"FILE=missing.pdf")
        assert exc_info.value.errno == errno.EIO
        client.submit_homework.assert_not_awaited()

    @pytest.mark.anyio
    async def test_invalid_utf8_is_eio(self):
        fs = make_fs()
        client = make_client()
        inode = await self._submit_inode(fs, client)

        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await _write(fs, inode, b"\xff\xfe")
        assert exc_info.value.errno == errno.EIO
        client.submit_homework.assert_not_awaited()

    @pytest.mark.anyio
    async def test_remote_failure_is_only_logged(self, caplog):
        fs = make_fs()
        client = make_client()
        client.submit_homework.side_effect = RemoteError("failed to submit homework")
        inode = await self._submit_inode(fs, client)

        # The write was already acknowledged
        assert await _write(fs, inode, b"answer") == 6
        assert "Failed to submit homework s-h1" in caplog.text

    @pytest.mark.anyio
    async def test_write_without_nursery_is_eio(self):
        fs = make_fs()
        client = make_client()
        inode = await self._submit_inode(fs, client)
        info = await fs.open(inode, os.O_WRONLY, mock_ctx())

        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await fs.write(info.fh, 0, b"answer")
        assert exc_info.value.errno == errno.EIO

    @pytest.mark.anyio
    async def test_truncate_allowed(self):
        fs = make_fs()
        client = make_client()
        inode = await self._submit_inode(fs, client)
        fields = MagicMock(update_size=True)
        attr = await fs.setattr(inode, MagicMock(), fields, None, mock_ctx())
        assert attr.st_ino == inode


class TestReadOnlyFiles:

    @pytest.mark.anyio
    async def test_write_to_content_is_eperm(self):
        fs = make_fs()
        client = make_client()
        client.list_homework.return_value = [homework()]
        course = add_user(fs, client)
        inode = await walk(fs, course, "作业", "第一次作业", "描述")

        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await _write(fs, inode, b"x")
        assert exc_info.value.errno == errno.EPERM

    @pytest.mark.anyio
    async def test_truncate_content_is_eperm(self):
        fs = make_fs()
        client = make_client()
        client.list_homework.return_value = [homework()]
        course = add_user(fs, client)
        inode = await walk(fs, course, "作业", "第一次作业", "描述")

        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await fs.setattr(inode, MagicMock(), MagicMock(update_size=True), None, mock_ctx())
        assert exc_info.value.errno == errno.EPERM


class TestDiscussionReply:

    @pytest.mark.anyio
    async def test_reply_to_post(self):
        fs = make_fs()
        client = _discussion_client()
        course = add_user(fs, client)
        inode = await walk(fs, course, "讨论", "期中答疑", FIRST_REPLY)

        await _write(fs, inode, b"see lecture 3")
        client.reply_discussion.assert_awaited_once_with("c1", "d1", "see lecture 3", "r1", None)

    @pytest.mark.anyio
    async def test_reply_to_opening_post(self):
        fs = make_fs()
        client = _discussion_client()
        course = add_user(fs, client)
        inode = await walk(fs, course, "讨论", "期中答疑", OPENING)

        await _write(fs, inode, b"thanks")
        client.reply_discussion.assert_awaited_once_with("c1", "d1", "thanks", None, None)

    @pytest.mark.anyio
    async def test_reply_failure_is_only_logged(self, caplog):
        fs = make_fs()
        client = _discussion_client()
        client.reply_discussion.side_effect = RemoteError("failed to reply discussion")
        course = add_user(fs, client)
        inode = await walk(fs, course, "讨论", "期中答疑", OPENING)

        assert await _write(fs, inode, b"thanks") == 6
        assert "Failed to reply to discussion d1" in caplog.text


class TestRefresh:

    @pytest.mark.anyio
    async def test_homework_refresh_replaces_fields(self):
        fs = make_fs()
        client = make_client()
        client.list_homework.return_value = [homework()]
        course = add_user(fs, client)
        item_inode = await walk(fs, course, "作业", "第一次作业")
        item = fs._arena.get(item_inode)
        actions = item.entries[:2]
        old_description = item.entries[2][1]

        client.list_homework.return_value = [homework(grade=95.0, grade_content="很好")]
        await _write(fs, actions[1][1], b"1")

        assert item.entries[:2] == actions
        assert await names(fs, item_inode) == ["提交作业", "刷新", "描述", "发布时间", "截止时间", "成绩", "评语"]
        assert item.entries[2][1] != old_description
        grade = fs._arena.get(await walk(fs, item_inode, "成绩"))
        assert grade.bytes() == b"95"

    @pytest.mark.anyio
    async def test_homework_refresh_not_found_is_noop(self):
        fs = make_fs()
        client = make_client()
        client.list_homework.return_value = [homework()]
        course = add_user(fs, client)
        item_inode = await walk(fs, course, "作业", "第一次作业")
        before = list(fs._arena.get(item_inode).entries)

        client.list_homework.return_value = [homework("h9", "别的作业")]
        refresh = fs._arena.get(item_inode).entries[1][1]
        assert await _write(fs, refresh, b"1") == 1
        assert fs._arena.get(item_inode).entries == before

    @pytest.mark.anyio
    async def test_homework_refresh_failure_is_eio(self):
        fs = make_fs()
        client = make_client()
        client.list_homework.return_value = [homework()]
        course = add_user(fs, client)
        item_inode = await walk(fs, course, "作业", "第一次作业")
        before = list(fs._arena.get(item_inode).entries)

        client.list_homework.side_effect = RemoteError("timeout")
        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await _write(fs, before[1][1], b"1")
        assert exc_info.value.errno == errno.EIO
        assert fs._arena.get(item_inode).entries == before

    @pytest.mark.anyio
    async def test_discussion_refresh_refetches(self):
        fs = make_fs()
        client = _discussion_client()
        course = add_user(fs, client)
        thread = await walk(fs, course, "讨论", "期中答疑")
        assert len(await names(fs, thread)) == 3

        refresh = await walk(fs, thread, "刷新")
        client.fetch_replies.return_value = [reply(None, author="张老师")]
        await _write(fs, refresh, b"1")
        assert [name for name, _ in fs._arena.get(thread).replies] == ["刷新"]

        assert await names(fs, thread) == ["刷新", OPENING]
        assert client.fetch_replies.await_count == 2

    @pytest.mark.anyio
    async def test_refresh_under_wrong_parent_is_eio(self):
        fs = make_fs()
        refresh = fs._arena.push(Refresh(parent=fs.ROOT_INODE, client=make_client(), kind=DiscussionRefresh()))

        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await _write(fs, refresh, b"1")
        assert exc_info.value.errno == errno.EIO
        assert fs._arena.root.users == []


class TestUnlink:

    async def _thread(self, fs, client):
        course = add_user(fs, client)
        return await walk(fs, course, "讨论", "期中答疑")

    @pytest.mark.anyio
    async def test_delete_reply(self):
        fs = make_fs()
        client = _discussion_client()
        thread = await self._thread(fs, client)

        await fs.unlink(thread, FIRST_REPLY.encode("utf-8"), mock_ctx())
        client.delete_reply.assert_awaited_once_with("c1", "r1")
        assert await names(fs, thread) == ["刷新", OPENING]

    @pytest.mark.anyio
    async def test_unlink_fetches_replies_first(self):
        fs = make_fs()
        client = _discussion_client()
        thread = await self._thread(fs, client)
        client.fetch_replies.assert_not_awaited()

        await fs.unlink(thread, FIRST_REPLY.encode("utf-8"), mock_ctx())
        client.fetch_replies.assert_awaited_once()

    @pytest.mark.anyio
    @pytest.mark.parametrize("name", [OPENING, "刷新"])
    async def test_undeletable_entries(self, name):
        fs = make_fs()
        client = _discussion_client()
        thread = await self._thread(fs, client)
        await names(fs, thread)
        before = list(fs._arena.get(thread).replies)

        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await fs.unlink(thread, name.encode("utf-8"), mock_ctx())
        assert exc_info.value.errno == errno.EPERM
        client.delete_reply.assert_not_awaited()
        assert fs._arena.get(thread).replies == before

    @pytest.mark.anyio
    async def test_missing_name(self):
        fs = make_fs()
        thread = await self._thread(fs, _discussion_client())
        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await fs.unlink(thread, b"nope", mock_ctx())
        assert exc_info.value.errno == errno.ENOENT

    @pytest.mark.anyio
    async def test_outside_discussion_is_eperm(self):
        fs = make_fs()
        add_user(fs, make_client())
        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await fs.unlink(fs.ROOT_INODE, b"alice", mock_ctx())
        assert exc_info.value.errno == errno.EPERM

    @pytest.mark.anyio
    async def test_remote_failure_keeps_entry(self):
        fs = make_fs()
        client = _discussion_client()
        client.delete_reply.side_effect = RemoteError("failed to delete discussion reply")
        thread = await self._thread(fs, client)

        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await fs.unlink(thread, FIRST_REPLY.encode("utf-8"), mock_ctx())
        assert exc_info.value.errno == errno.EIO
        assert FIRST_REPLY in await names(fs, thread)


class TestMkdirLogin:
    """mkdir <username> at the root logs in with a password read from the caller."""

    def _login_client(self):
        client = make_client()
        client.list_semesters.return_value = ["2019-2020-1", "2019-2020-2"]
        courses = {
            "2019-2020-1": [Course(id="c1", name="软件工程"), Course(id="c2", name="编译原理")],
            "2019-2020-2": [Course(id="c3", name="操作系统")],
        }
        client.list_courses.side_effect = lambda semester: courses[semester]
        return client

    @pytest.mark.anyio
    async def test_login_builds_user_tree(self):
        fs = make_fs()
        client = self._login_client()
        with patch("learn_fuse.filesystem.write.prompt_password", return_value="pw") as prompt, \
             patch("learn_fuse.filesystem.write.LearnClient") as MockClient:
            MockClient.login = AsyncMock(return_value=client)
            attr = await fs.mkdir(fs.ROOT_INODE, b"alice", 0o755, mock_ctx(pid=77))

        prompt.assert_called_once_with(77)
        MockClient.login.assert_awaited_once_with("alice", "pw", fs.config)
        assert await names(fs, fs.ROOT_INODE) == ["alice"]
        assert attr.st_ino == await walk(fs, fs.ROOT_INODE, "alice")
        assert await names(fs, attr.st_ino) == ["2019-2020-秋", "2019-2020-春"]
        assert await names(fs, await walk(fs, attr.st_ino, "2019-2020-秋")) == ["软件工程", "编译原理"]
        assert fs._clients == [client]

        # Courses are not fetched until they are entered
        course = await walk(fs, attr.st_ino, "2019-2020-春", "操作系统")
        client.list_homework.assert_not_awaited()
        assert await names(fs, course) == ["作业", "通知", "文件", "讨论"]
        client.list_homework.assert_awaited_once_with("c3")

    @pytest.mark.anyio
    async def test_rejected_login_is_eacces(self):
        fs = make_fs()
        size = len(fs._arena)
        with patch("learn_fuse.filesystem.write.prompt_password", return_value="wrong"), \
             patch("learn_fuse.filesystem.write.LearnClient") as MockClient:
            MockClient.login = AsyncMock(side_effect=AuthError("login rejected for alice"))
            with pytest.raises(pyfuse3.FUSEError) as exc_info:
                await fs.mkdir(fs.ROOT_INODE, b"alice", 0o755, mock_ctx())

        assert exc_info.value.errno == errno.EACCES
        assert fs._arena.root.users == []
        assert len(fs._arena) == size

    @pytest.mark.anyio
    async def test_unreachable_service_is_eio(self):
        fs = make_fs()
        with patch("learn_fuse.filesystem.write.prompt_password", return_value="pw"), \
             patch("learn_fuse.filesystem.write.LearnClient") as MockClient:
            MockClient.login = AsyncMock(side_effect=RemoteError("connection refused"))
            with pytest.raises(pyfuse3.FUSEError) as exc_info:
                await fs.mkdir(fs.ROOT_INODE, b"alice", 0o755, mock_ctx())
        assert exc_info.value.errno == errno.EIO

    @pytest.mark.anyio
    async def test_course_listing_failure_closes_client(self):
        fs = make_fs()
        client = self._login_client()
        client.list_courses.side_effect = RemoteError("timeout")
        size = len(fs._arena)
        with patch("learn_fuse.filesystem.write.prompt_password", return_value="pw"), \
             patch("learn_fuse.filesystem.write.LearnClient") as MockClient:
            MockClient.login = AsyncMock(return_value=client)
            with pytest.raises(pyfuse3.FUSEError) as exc_info:
                await fs.mkdir(fs.ROOT_INODE, b"alice", 0o755, mock_ctx())

        assert exc_info.value.errno == errno.EIO
        client.close.assert_awaited_once()
        assert fs._arena.root.users == []
        assert len(fs._arena) == size
        assert fs._clients == []

    @pytest.mark.anyio
    async def test_password_unreadable_is_eio(self):
        fs = make_fs()
        with patch("learn_fuse.filesystem.write.prompt_password", side_effect=PermissionError("fd/0")), \
             patch("learn_fuse.filesystem.write.LearnClient") as MockClient:
            MockClient.login = AsyncMock()
            with pytest.raises(pyfuse3.FUSEError) as exc_info:
                await fs.mkdir(fs.ROOT_INODE, b"alice", 0o755, mock_ctx())
        assert exc_info.value.errno == errno.EIO
        MockClient.login.assert_not_awaited()

    @pytest.mark.anyio
    async def test_password_not_utf8_is_eio(self):
        fs = make_fs()
        bad_input = UnicodeDecodeError("utf-8", b"p\xffw", 1, 2, "invalid start byte")
        with patch("learn_fuse.filesystem.write.prompt_password", side_effect=bad_input), \
             patch("learn_fuse.filesystem.write.LearnClient") as MockClient:
            MockClient.login = AsyncMock()
            with pytest.raises(pyfuse3.FUSEError) as exc_info:
                await fs.mkdir(fs.ROOT_INODE, b"alice", 0o755, mock_ctx())
        assert exc_info.value.errno == errno.EIO
        assert fs._arena.root.users == []
        MockClient.login.assert_not_awaited()

    @pytest.mark.anyio
    async def test_mkdir_below_root_is_eperm(self):
        fs = make_fs()
        course = add_user(fs, make_client())
        with pytest.raises(pyfuse3.FUSEError) as exc_info:
            await fs.mkdir(course, b"new", 0o755, mock_ctx())
        assert exc_info.value.errno == errno.EPERM

    @pytest.mark.anyio
    async def test_fresh_login_then_first_homework_listing(self):
        fs = make_fs()
        client = self._login_client()
        client.list_homework.return_value = [homework("h1", "第一次作业")]
        with patch("learn_fuse.filesystem.write.prompt_password", return_value="pw"), \
             patch("learn_fuse.filesystem.write.LearnClient") as MockClient:
            MockClient.login = AsyncMock(return_value=client)
            await fs.mkdir(fs.ROOT_INODE, b"alice", 0o755, mock_ctx())

        course = await walk(fs, fs.ROOT_INODE, "alice", "2019-2020-秋", "软件工程")
        categories = fs._arena.get(course).categories
        assert [name for name, _ in categories] == ["作业", "通知", "文件", "讨论"]
        assert all(fs._arena.get(inode).entries == [] for _, inode in categories)

        homework_list = await walk(fs, course, "作业")
        assert await names(fs, homework_list) == ["第一次作业"]
        entries = await names(fs, await walk(fs, homework_list, "第一次作业"))
        assert {"描述", "发布时间", "截止时间", "提交作业", "刷新"} <= set(entries)
        client.list_homework.assert_awaited_once_with("c1")
