"""
Rendering of remote records into file names and file contents.

Each ``*_fields`` function returns the ordered (label, Content) children of
one Item directory. Plain fields become resolved Content; attachments
become URL Content fetched on first open.
"""

from datetime import datetime
from typing import Optional

from .models import Content
from .records import CourseFile, DiscussionReply, Homework, Notification

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

SEMESTER_SEASONS = {"1": "秋", "2": "春", "3": "夏"}


def format_time(value: datetime) -> str:
    return value.strftime(TIME_FORMAT)


def yes_no(value: bool) -> str:
    return "是" if value else "否"


def format_grade(grade: float) -> str:
    # 95.0 -> "95", 92.5 -> "92.5"
    return f"{grade:g}"


def semester_label(semester_id: str) -> str:
    """``2019-2020-1`` -> ``2019-2020-秋``.

    Ids with an unknown term digit are shown unchanged.
    """
    season = SEMESTER_SEASONS.get(semester_id[-1:])
    if season is None:
        return semester_id
    return semester_id[:-1] + season


def sanitize_name(name: str) -> str:
    """Make a remote title usable as a single path component."""
    safe = name.replace("/", "-").replace("\0", "")
    if safe in ("", ".", ".."):
        return "unnamed"
    return safe


def _text(value: str) -> Content:
    return Content(data=value.encode("utf-8"))


def _attachment(fields: list, prefix: str, name_url: Optional[tuple[str, str]], client) -> None:
    if name_url is not None:
        name, url = name_url
        fields.append((sanitize_name(f"{prefix}{name}"), Content(url=url, client=client)))


def homework_fields(h: Homework, client) -> list[tuple[str, Content]]:
    """Detail and attachment children of a homework Item.

    The submit and refresh actions are not included; they are created once
    per homework and survive refreshes.
    """
    fields = [
        ("描述", _text(h.detail.description)),
        ("发布时间", _text(format_time(h.assign_time))),
        ("截止时间", _text(format_time(h.deadline))),
    ]
    optional = [
        ("提交时间", format_time(h.submit_time) if h.submit_time else None),
        ("提交内容", h.submit_content),
        ("成绩", format_grade(h.grade) if h.grade is not None else None),
        ("批阅时间", format_time(h.grade_time) if h.grade_time else None),
        ("批阅老师", h.grader_name),
        ("评语", h.grade_content),
    ]
    fields.extend((label, _text(value)) for label, value in optional if value is not None)
    _attachment(fields, "附件：", h.detail.attachment, client)
    _attachment(fields, "提交附件：", h.detail.submit_attachment, client)
    _attachment(fields, "评语附件：", h.detail.grade_attachment, client)
    return fields


def notification_fields(n: Notification, client) -> list[tuple[str, Content]]:
    fields = [
        ("内容", _text(n.content)),
        ("发布时间", _text(format_time(n.publish_time))),
        ("发布老师", _text(n.publisher)),
        ("已读", _text(yes_no(n.read))),
        ("重要", _text(yes_no(n.important))),
    ]
    if n.attachment_name and n.attachment_url:
        _attachment(fields, "通知附件：", (n.attachment_name, n.attachment_url), client)
    return fields


def file_fields(f: CourseFile, download_url: str, client) -> list[tuple[str, Content]]:
    fields = [
        ("描述", _text(f.description)),
        ("大小", _text(f.size)),
        ("上传时间", _text(format_time(f.upload_time))),
        ("已读", _text(yes_no(not f.new))),
        ("重要", _text(yes_no(f.important))),
        ("访问次数", _text(str(f.visit_count))),
        ("下载次数", _text(str(f.download_count))),
    ]
    fields.append((sanitize_name(f"{f.title}.{f.file_type}"), Content(url=download_url, client=client)))
    return fields


def reply_label(index: int, reply: DiscussionReply) -> str:
    return sanitize_name(f"{index}楼-{reply.author}-{format_time(reply.publish_time)}")


def nested_reply_label(index: int, sub_index: int, reply: DiscussionReply) -> str:
    return sanitize_name(f"{index}楼-回复{sub_index}-{reply.author}-{format_time(reply.publish_time)}")
