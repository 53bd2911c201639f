"""Data models for the FUSE filesystem.

Every inode holds exactly one of the node classes below. The set is
closed; handlers dispatch on it with ``isinstance``.

Node types:
- Root: mount root, maps usernames to User nodes (grown by mkdir)
- User: maps semester labels to Semester nodes
- Semester: maps course names to Course nodes
- Course: one course; its four category ItemLists are allocated at login
  and filled on first access
- ItemList: one category of a course (homework, notifications, files,
  discussions)
- Item: detail fields and attachments of one homework/notification/file
- Content: file bytes, or a URL fetched on first open
- Discussion: one discussion thread, replies fetched on first access
- DiscussionReply: one post in a thread (write to reply, unlink to delete)
- SubmitHomework: action file, write to submit
- Refresh: action file, write to re-fetch the parent's content
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from .api_client import LearnClient

# Ordered (display name, child inode) pairs; insertion order is listing order
NameMap = list[tuple[str, int]]

# Category directories of a course, in listing order
HOMEWORK = "作业"
NOTIFICATIONS = "通知"
FILES = "文件"
DISCUSSIONS = "讨论"
COURSE_CATEGORIES = (HOMEWORK, NOTIFICATIONS, FILES, DISCUSSIONS)

SUBMIT_NAME = "提交作业"
REFRESH_NAME = "刷新"


def find_child(entries: NameMap, name: str) -> Optional[int]:
    """First exact match wins."""
    for entry_name, inode in entries:
        if entry_name == name:
            return inode
    return None


@dataclass
class Root:
    users: NameMap = field(default_factory=list)


@dataclass
class User:
    semesters: NameMap = field(default_factory=list)


@dataclass
class Semester:
    courses: NameMap = field(default_factory=list)


@dataclass
class Course:
    id: str
    client: "LearnClient"
    categories: NameMap = field(default_factory=list)
    fetched: bool = False


@dataclass
class ItemList:
    entries: NameMap = field(default_factory=list)


@dataclass
class Item:
    entries: NameMap = field(default_factory=list)


@dataclass
class Content:
    """Resolved bytes, or a URL that is fetched (once) on first open."""
    data: Optional[bytes] = None
    url: Optional[str] = None
    client: Optional["LearnClient"] = None

    @property
    def resolved(self) -> bool:
        return self.data is not None

    def bytes(self) -> bytes:
        # An unresolved node cannot be read before open() resolves it
        return self.data if self.data is not None else b""


@dataclass(frozen=True)
class ThreadRef:
    """Identifies one discussion thread."""
    course_id: str
    discussion_id: str


@dataclass
class Discussion:
    thread: ThreadRef
    board: str
    client: "LearnClient"
    # Position 0 is always the refresh action; length 1 means "not fetched"
    replies: NameMap = field(default_factory=list)


@dataclass
class DiscussionReply:
    thread: ThreadRef
    reply_id: Optional[str]
    client: "LearnClient"
    content: str

    def bytes(self) -> bytes:
        return self.content.encode("utf-8")


@dataclass
class SubmitHomework:
    student_homework_id: str
    client: "LearnClient"


@dataclass(frozen=True)
class HomeworkRefresh:
    course_id: str
    homework_id: str


@dataclass(frozen=True)
class DiscussionRefresh:
    pass


@dataclass
class Refresh:
    parent: int
    client: "LearnClient"
    kind: Union[HomeworkRefresh, DiscussionRefresh]


Node = Union[
    Root, User, Semester, Course, ItemList, Item, Content,
    Discussion, DiscussionReply, SubmitHomework, Refresh,
]

DIR_TYPES = (Root, User, Semester, Course, ItemList, Item, Discussion)
ACTION_TYPES = (SubmitHomework, Refresh)


def is_dir(node: Node) -> bool:
    """Check if a node is listed as a directory."""
    return isinstance(node, DIR_TYPES)


def children(node: Node) -> NameMap:
    """Return the name map backing a directory node.

    Course and Discussion maps may still be waiting for lazy population;
    callers populate them first.
    """
    if isinstance(node, Root):
        return node.users
    if isinstance(node, User):
        return node.semesters
    if isinstance(node, Semester):
        return node.courses
    if isinstance(node, Course):
        return node.categories
    if isinstance(node, (ItemList, Item)):
        return node.entries
    if isinstance(node, Discussion):
        return node.replies
    raise TypeError(f"{type(node).__name__} has no children")
