"""Typed records returned by the learning web service client."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Course:
    id: str
    name: str
    english_name: str = ""
    teacher_name: str = ""
    course_number: str = ""
    course_index: int = 0


@dataclass
class HomeworkDetail:
    """Fields only available from the homework detail page.

    Attachments are (name, url) pairs.
    """
    description: str = ""
    attachment: Optional[tuple[str, str]] = None
    submit_attachment: Optional[tuple[str, str]] = None
    grade_attachment: Optional[tuple[str, str]] = None


@dataclass
class Homework:
    course_id: str
    id: str
    student_homework_id: str
    title: str
    assign_time: datetime
    deadline: datetime
    submit_time: Optional[datetime] = None
    submit_content: Optional[str] = None
    grade: Optional[float] = None
    grade_time: Optional[datetime] = None
    grader_name: Optional[str] = None
    grade_content: Optional[str] = None
    detail: HomeworkDetail = field(default_factory=HomeworkDetail)


@dataclass
class Notification:
    course_id: str
    id: str
    title: str
    content: str
    read: bool
    important: bool
    publish_time: datetime
    publisher: str
    attachment_name: Optional[str] = None
    attachment_url: Optional[str] = None


@dataclass
class CourseFile:
    id: str
    title: str
    description: str
    raw_size: int
    size: str
    upload_time: datetime
    new: bool
    important: bool
    visit_count: int
    download_count: int
    file_type: str


@dataclass
class Discussion:
    id: str
    board_id: str
    title: str
    publisher_name: str
    publish_time: datetime
    last_replier_name: Optional[str] = None
    last_reply_time: Optional[datetime] = None
    visit_count: int = 0
    reply_count: int = 0


@dataclass
class DiscussionReply:
    """One post in a discussion thread.

    The opening post has no id: it cannot be replied to directly or deleted.
    Only top-level posts carry nested replies.
    """
    id: Optional[str]
    author: str
    publish_time: datetime
    content: str
    replies: list["DiscussionReply"] = field(default_factory=list)
