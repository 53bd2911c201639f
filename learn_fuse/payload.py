"""Parsing of the bytes written to action files.

A write body is either plain text, or ``FILE=<path>`` followed by the text.
The path ends at the first whitespace character; everything after it,
including that whitespace, is the text.
"""

import os
from dataclasses import dataclass
from typing import Optional

FILE_PREFIX = "FILE="


@dataclass
class WritePayload:
    text: str
    file_path: Optional[str] = None

    @property
    def file_name(self) -> Optional[str]:
        """Name the attachment is uploaded under."""
        if self.file_path is None:
            return None
        return os.path.basename(self.file_path) or self.file_path


def parse_payload(buf: bytes) -> WritePayload:
    """Split a write body into text and optional attachment path.

    Raises UnicodeDecodeError if the body is not UTF-8.
    """
    data = buf.decode("utf-8")
    if not data.startswith(FILE_PREFIX):
        return WritePayload(text=data)
    rest = data[len(FILE_PREFIX):]
    end = next((i for i, ch in enumerate(rest) if ch.isspace()), len(rest))
    return WritePayload(text=rest[end:], file_path=rest[:end])
