"""
InodeMixin — Attribute resolution for every node type.
"""

import errno
import logging

import pyfuse3

from ..models import (
    ACTION_TYPES, Content, DiscussionReply, is_dir,
)

log = logging.getLogger(__name__)


class InodeMixin:
    """Attribute resolution for every node type."""

    async def getattr(self, inode: int, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Get file/directory attributes."""
        log.debug(f"getattr: inode={inode}")
        return self._attr(inode)

    def _attr(self, inode: int) -> pyfuse3.EntryAttributes:
        node = self._node(inode)
        if is_dir(node):
            return self._make_attr(inode, is_dir=True)
        if isinstance(node, (Content, DiscussionReply)):
            # Unresolved content reports 0 until open() fetches it
            return self._make_attr(inode, size=len(node.bytes()))
        if isinstance(node, ACTION_TYPES):
            return self._make_attr(inode, size=0)
        log.error(f"getattr: inode {inode} holds unexpected {type(node).__name__}")
        raise pyfuse3.FUSEError(errno.EIO)
