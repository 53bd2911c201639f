"""HTTP API client for the learning web service."""

import logging
from functools import partial
from typing import Any, Optional

import httpx

from . import urls
from .config import FuseConfig
from .errors import AuthError, ParseError, RemoteError
from .parse import (
    parse_courses, parse_discussion_replies, parse_discussions, parse_files,
    parse_homework_detail, parse_homework_list, parse_notification_attachment_url,
    parse_notifications, parse_semesters,
)
from .records import Course, CourseFile, Discussion, DiscussionReply, Homework, Notification
from .tasks import gather

log = logging.getLogger(__name__)

# (file name, file bytes) attached to a submission or reply
Attachment = tuple[str, bytes]


class LearnClient:
    """Async HTTP client for one logged-in user.

    The session lives in the cookie jar of the underlying httpx client, so
    one instance is shared by every node built from the same login.
    """

    def __init__(self, config: Optional[FuseConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or FuseConfig()
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent},
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    async def login(cls, username: str, password: str, config: Optional[FuseConfig] = None,
                    transport: Optional[httpx.AsyncBaseTransport] = None) -> "LearnClient":
        """Log in and return a client carrying the session cookies."""
        client = cls(config, transport=transport)
        try:
            text = await client._text("POST", urls.LOGIN, data={
                "i_user": username,
                "i_pass": password,
                "atOnce": "true",
            })
            ticket_start = text.find("ticket=")
            if ticket_start == -1:
                raise AuthError(f"login rejected for {username}")
            ticket_start += len("ticket=")
            ticket_end = text.find('"', ticket_start)
            if ticket_end == -1:
                raise AuthError(f"login rejected for {username}")
            await client._request("POST", urls.auth_roam(text[ticket_start:ticket_end]))
        except Exception:
            await client.close()
            raise
        log.info(f"Logged in as {username}")
        return client

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {url}: {e}") from e
        return response

    async def _text(self, method: str, url: str, **kwargs) -> str:
        response = await self._request(method, url, **kwargs)
        return response.text

    async def _json(self, url: str) -> Any:
        response = await self._request("GET", url)
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"GET {url}: invalid JSON: {e}") from e

    async def _post_checked(self, url: str, failure: str, **kwargs) -> None:
        """POST and require the service to answer with "success"."""
        text = await self._text("POST", url, **kwargs)
        if "success" not in text:
            raise RemoteError(failure)

    # ── Listings ─────────────────────────────────────────────────────────

    async def list_semesters(self) -> list[str]:
        return parse_semesters(await self._json(urls.SEMESTER_LIST))

    async def list_courses(self, semester: str) -> list[Course]:
        return parse_courses(await self._json(urls.course_list(semester)))

    async def list_homework(self, course: str) -> list[Homework]:
        """All homework of a course: unsubmitted, then submitted, then graded."""
        lists = await gather(*(partial(self._homework_list, url) for url in urls.homework_lists(course)))
        return [h for homework in lists for h in homework]

    async def _homework_list(self, url: str) -> list[Homework]:
        homework = parse_homework_list(await self._json(url))
        await gather(*(partial(self._fill_homework_detail, h) for h in homework))
        return homework

    async def _fill_homework_detail(self, h: Homework) -> None:
        html = await self._text("GET", urls.homework_detail(h.course_id, h.id, h.student_homework_id))
        h.detail = parse_homework_detail(html)

    async def list_notifications(self, course: str) -> list[Notification]:
        notifications = parse_notifications(await self._json(urls.notification_list(course)))
        await gather(*(partial(self._fill_attachment_url, n) for n in notifications if n.attachment_name))
        return notifications

    async def _fill_attachment_url(self, n: Notification) -> None:
        html = await self._text("GET", urls.notification_detail(n.id, n.course_id))
        n.attachment_url = parse_notification_attachment_url(html)

    async def list_files(self, course: str) -> list[CourseFile]:
        return parse_files(await self._json(urls.file_list(course)))

    async def list_discussions(self, course: str) -> list[Discussion]:
        return parse_discussions(await self._json(urls.discussion_list(course)))

    async def fetch_replies(self, course: str, discussion: str, board: str) -> list[DiscussionReply]:
        html = await self._text("GET", urls.discussion_replies(course, discussion, board))
        return parse_discussion_replies(html)

    # ── Actions ──────────────────────────────────────────────────────────

    @staticmethod
    def _upload(attachment: Optional[Attachment]) -> tuple[dict, dict]:
        """Form fields and files for an optional attachment."""
        if attachment is None:
            return {"fileupload": "undefined"}, {}
        name, data = attachment
        return {}, {"fileupload": (name, data)}

    async def submit_homework(self, student_homework: str, text: str,
                              attachment: Optional[Attachment] = None) -> None:
        data, files = self._upload(attachment)
        data.update({"zynr": text, "xszyid": student_homework, "isDeleted": "0"})
        await self._post_checked(urls.HOMEWORK_SUBMIT, "failed to submit homework",
                                 data=data, files=files or None)

    async def reply_discussion(self, course: str, discussion: str, text: str,
                               in_reply_to: Optional[str] = None,
                               attachment: Optional[Attachment] = None) -> None:
        data, files = self._upload(attachment)
        data.update({"wlkcid": course, "tltid": discussion, "nr": text})
        if in_reply_to is not None:
            data.update({"fhhid": in_reply_to, "_fhhid": in_reply_to})
        await self._post_checked(urls.REPLY_DISCUSSION, "failed to reply discussion",
                                 data=data, files=files or None)

    async def delete_reply(self, course: str, reply: str) -> None:
        await self._post_checked(urls.delete_discussion_reply(course, reply),
                                 "failed to delete discussion reply")

    async def resolve(self, url: str) -> bytes:
        """Download the bytes behind an attachment or file URL."""
        response = await self._request("GET", url)
        return response.content

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
