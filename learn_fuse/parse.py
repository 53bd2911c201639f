"""
Response parsing for the learning web service.

JSON list endpoints map their abbreviated field names onto the records in
``records.py``. Homework details and discussion threads only exist as HTML
pages and are scraped with ``html.parser``.
"""

import base64
import binascii
import logging
from datetime import datetime
from html.parser import HTMLParser
from typing import Any, Optional

from .errors import ParseError
from .records import (
    Course, CourseFile, Discussion, DiscussionReply, Homework, HomeworkDetail, Notification,
)

log = logging.getLogger(__name__)

MINUTE_FORMAT = "%Y-%m-%d %H:%M"
SECOND_FORMAT = "%Y-%m-%d %H:%M:%S"

# Elements that never receive an end tag
_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})


def parse_time(value: Optional[str], fmt: str = MINUTE_FORMAT) -> Optional[datetime]:
    """Parse a service timestamp. Empty or missing values become None."""
    if not value:
        return None
    try:
        return datetime.strptime(value, fmt)
    except ValueError as e:
        raise ParseError(f"invalid timestamp {value!r}: {e}") from e


def _required_time(value: Optional[str], fmt: str = MINUTE_FORMAT) -> datetime:
    parsed = parse_time(value, fmt)
    if parsed is None:
        raise ParseError("missing timestamp")
    return parsed


def _title(d: dict) -> str:
    title = d["bt"]
    if not isinstance(title, str):
        raise ParseError(f"title is {title!r}")
    return title


def _nonempty(value: Optional[str]) -> Optional[str]:
    return value or None


def _unwrap(data: Any, *keys: str) -> Any:
    """Walk nested wrapper objects, e.g. ``{"object": {"aaData": [...]}}``."""
    for key in keys:
        if not isinstance(data, dict) or key not in data:
            raise ParseError(f"response is missing '{key}'")
        data = data[key]
    return data


def _records(data: Any, parser, what: str) -> list:
    if not isinstance(data, list):
        raise ParseError(f"expected a list of {what}")
    try:
        return [parser(item) for item in data]
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"malformed {what}: {e}") from e


# ── JSON records ────────────────────────────────────────────────────────

def parse_semesters(data: Any) -> list[str]:
    """The semester list contains nulls; drop them."""
    if not isinstance(data, list):
        raise ParseError("expected a list of semesters")
    return [s for s in data if s]


def parse_course(d: dict) -> Course:
    return Course(
        id=d["wlkcid"],
        name=d["kcm"],
        english_name=d.get("ywkcm") or "",
        teacher_name=d.get("jsm") or "",
        course_number=d.get("kch") or "",
        course_index=int(d.get("kxh") or 0),
    )


def parse_courses(data: Any) -> list[Course]:
    return _records(_unwrap(data, "resultList"), parse_course, "courses")


def decode_content(value: Optional[str]) -> str:
    """Notification bodies are base64-encoded UTF-8."""
    if not value:
        return ""
    try:
        return base64.b64decode(value).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ParseError(f"invalid notification content: {e}") from e


def parse_notification(d: dict) -> Notification:
    return Notification(
        course_id=d["wlkcid"],
        id=d["ggid"],
        title=_title(d),
        content=decode_content(d.get("ggnr")),
        read=d.get("sfyd") == "是",
        important=d.get("sfqd") == "1",
        publish_time=_required_time(d.get("fbsjStr")),
        publisher=d.get("fbrxm") or "",
        attachment_name=_nonempty(d.get("fjmc")),
    )


def parse_notifications(data: Any) -> list[Notification]:
    return _records(_unwrap(data, "object", "aaData"), parse_notification, "notifications")


def parse_notification_attachment_url(html: str) -> str:
    """Find the download link in a notification detail page.

    The link is returned as found, relative to the service base URL.
    """
    href_end = html.find('" class="ml-10"')
    if href_end == -1:
        raise ParseError("invalid notification attachment format")
    href_start = html.rfind('a href="', 0, href_end)
    if href_start == -1:
        raise ParseError("invalid notification attachment format")
    return html[href_start + len('a href="'):href_end]


def parse_file(d: dict) -> CourseFile:
    return CourseFile(
        id=d["wjid"],
        title=_title(d),
        description=d.get("ms") or "",
        raw_size=int(d.get("wjdx") or 0),
        size=d.get("fileSize") or "",
        upload_time=_required_time(d.get("scsj")),
        new=bool(d.get("isNew")),
        important=bool(d.get("sfqd")),
        visit_count=int(d.get("llcs") or 0),
        download_count=int(d.get("xzcs") or 0),
        file_type=d.get("wjlx") or "",
    )


def parse_files(data: Any) -> list[CourseFile]:
    return _records(_unwrap(data, "object"), parse_file, "files")


def parse_homework(d: dict) -> Homework:
    grade = d.get("cj")
    return Homework(
        course_id=d["wlkcid"],
        id=d["zyid"],
        student_homework_id=d["xszyid"],
        title=_title(d),
        assign_time=_required_time(d.get("kssjStr")),
        deadline=_required_time(d.get("jzsjStr")),
        submit_time=parse_time(d.get("scsjStr")),
        submit_content=_nonempty(d.get("zynrStr")),
        grade=float(grade) if grade is not None else None,
        grade_time=parse_time(d.get("pysjStr")),
        grader_name=_nonempty(d.get("jsm")),
        grade_content=_nonempty(d.get("pynr")),
    )


def parse_homework_list(data: Any) -> list[Homework]:
    return _records(_unwrap(data, "object", "aaData"), parse_homework, "homework")


def parse_discussion(d: dict) -> Discussion:
    return Discussion(
        id=d["id"],
        board_id=d["bqid"],
        title=_title(d),
        publisher_name=d.get("fbrxm") or "",
        publish_time=_required_time(d.get("fbsj"), SECOND_FORMAT),
        last_replier_name=_nonempty(d.get("zhhfrxm")),
        last_reply_time=parse_time(d.get("zhhfsj"), SECOND_FORMAT),
        visit_count=int(d.get("djs") or 0),
        reply_count=int(d.get("hfcs") or 0),
    )


def parse_discussions(data: Any) -> list[Discussion]:
    return _records(_unwrap(data, "object", "resultsList"), parse_discussion, "discussions")


# ── HTML pages ──────────────────────────────────────────────────────────

class _ClassTracker(HTMLParser):
    """HTMLParser that keeps a stack of open elements and their classes."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self._stack: list[tuple[str, frozenset[str], dict]] = []

    def handle_starttag(self, tag, attrs):
        attrs = dict(attrs)
        classes = frozenset((attrs.get("class") or "").split())
        if tag in _VOID_TAGS:
            self.open_element(tag, classes, attrs)
            self.close_element(tag, classes, attrs)
            return
        self._stack.append((tag, classes, attrs))
        self.open_element(tag, classes, attrs)

    def handle_startendtag(self, tag, attrs):
        attrs = dict(attrs)
        classes = frozenset((attrs.get("class") or "").split())
        self.open_element(tag, classes, attrs)
        self.close_element(tag, classes, attrs)

    def handle_endtag(self, tag):
        if tag in _VOID_TAGS:
            return
        # Tolerate unbalanced markup: pop up to the matching element
        for i in range(len(self._stack) - 1, -1, -1):
            if self._stack[i][0] == tag:
                while len(self._stack) > i:
                    name, classes, attrs = self._stack.pop()
                    self.close_element(name, classes, attrs)
                return

    @property
    def depth(self) -> int:
        return len(self._stack)

    def open_element(self, tag, classes, attrs):
        pass

    def close_element(self, tag, classes, attrs):
        pass


class _HomeworkDetailParser(_ClassTracker):
    """Collects the description text and the attachment blocks.

    The description lives in ``div.c55``; every ``div.fujian`` block holds at
    most one attachment link whose href carries the real URL in its
    ``downloadUrl=`` parameter.
    """

    def __init__(self):
        super().__init__()
        self.description: Optional[list[str]] = None
        self.attachments: list[Optional[tuple[str, str]]] = []
        self._desc_depth: Optional[int] = None
        self._block_depth: Optional[int] = None
        self._title_depth: Optional[int] = None
        self._anchor: Optional[tuple[str, list[str]]] = None

    def open_element(self, tag, classes, attrs):
        if tag == "div" and "c55" in classes and self.description is None:
            self.description = []
            self._desc_depth = self.depth
        elif tag == "br" and self._desc_depth is not None:
            self.description.append("\n")
        elif tag == "div" and "fujian" in classes and self._block_depth is None:
            self.attachments.append(None)
            self._block_depth = self.depth
        elif "ftitle" in classes and self._block_depth is not None and self._title_depth is None:
            self._title_depth = self.depth
        elif (tag == "a" and self._title_depth is not None and self._anchor is None
              and self.attachments[-1] is None):
            href = attrs.get("href") or ""
            marker = href.find("downloadUrl=")
            if marker != -1:
                self._anchor = (href[marker + len("downloadUrl="):], [])

    def close_element(self, tag, classes, attrs):
        depth = self.depth + 1
        if tag == "a" and self._anchor is not None:
            url, text = self._anchor
            self.attachments[-1] = ("".join(text).strip(), url)
            self._anchor = None
        if self._title_depth == depth:
            self._title_depth = None
        if self._block_depth == depth:
            self._block_depth = None
        if self._desc_depth == depth:
            self._desc_depth = None

    def handle_data(self, data):
        if self._desc_depth is not None:
            self.description.append(data)
        if self._anchor is not None:
            self._anchor[1].append(data)


def parse_homework_detail(html: str) -> HomeworkDetail:
    """Scrape the homework detail page.

    The page carries four attachment blocks in a fixed order: the
    assignment's attachment, the submission answer, the submitted
    attachment and the grading attachment. The answer block is not exposed.
    """
    parser = _HomeworkDetailParser()
    parser.feed(html)
    parser.close()
    if parser.description is None:
        raise ParseError("invalid homework detail format")
    blocks = parser.attachments + [None] * (4 - len(parser.attachments))
    return HomeworkDetail(
        description="".join(parser.description).strip(),
        attachment=blocks[0],
        submit_attachment=blocks[2],
        grade_attachment=blocks[3],
    )


class _DiscussionParser(_ClassTracker):
    """Collects ``div.reply`` posts; a reply nested in another is a sub-reply.

    Each post holds ``.name``, ``.time`` and ``.content`` children and carries
    its id in ``data-id`` (absent on the opening post).
    """

    _FIELDS = ("name", "time", "content")

    def __init__(self):
        super().__init__()
        self.posts: list[dict] = []
        self._open: list[tuple[int, dict]] = []
        self._field: Optional[tuple[int, str]] = None

    def open_element(self, tag, classes, attrs):
        if "reply" in classes:
            post = {"id": attrs.get("data-id") or None, "name": [], "time": [], "content": [], "replies": []}
            if self._open:
                self._open[-1][1]["replies"].append(post)
            else:
                self.posts.append(post)
            self._open.append((self.depth, post))
            return
        if self._open and self._field is None:
            for name in self._FIELDS:
                if name in classes:
                    self._field = (self.depth, name)
                    break
        if tag == "br" and self._field is not None:
            self._open[-1][1][self._field[1]].append("\n")

    def close_element(self, tag, classes, attrs):
        depth = self.depth + 1
        if self._field is not None and self._field[0] == depth:
            self._field = None
        if self._open and self._open[-1][0] == depth:
            self._open.pop()

    def handle_data(self, data):
        if self._field is not None:
            self._open[-1][1][self._field[1]].append(data)


def _build_reply(post: dict, nested: bool) -> DiscussionReply:
    return DiscussionReply(
        id=post["id"],
        author="".join(post["name"]).strip(),
        publish_time=_required_time("".join(post["time"]).strip(), SECOND_FORMAT),
        content="".join(post["content"]).strip(),
        replies=[] if nested else [_build_reply(p, True) for p in post["replies"]],
    )


def parse_discussion_replies(html: str) -> list[DiscussionReply]:
    """Scrape a discussion thread page into top-level posts with their replies.

    Replies are only one level deep; anything nested further is ignored.
    """
    parser = _DiscussionParser()
    parser.feed(html)
    parser.close()
    return [_build_reply(post, False) for post in parser.posts]
