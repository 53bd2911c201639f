"""
ReadMixin — File open and read operations.

Attachment and download files start out as a bare URL; the first open
downloads them into the node. Reads never touch the network.
"""

import errno
import logging

import pyfuse3

from ..models import ACTION_TYPES, Content, DiscussionReply, is_dir

log = logging.getLogger(__name__)


class ReadMixin:
    """File open and read operations."""

    async def open(self, inode: int, flags: int, ctx: pyfuse3.RequestContext) -> pyfuse3.FileInfo:
        """Open a file, downloading unresolved content first."""
        log.debug(f"open: inode={inode}, flags={flags:#o}")
        node = self._node(inode)
        if is_dir(node):
            raise pyfuse3.FUSEError(errno.EPERM)

        if isinstance(node, Content) and not node.resolved:
            await self._resolve_content(inode, node)

        return pyfuse3.FileInfo(fh=self._open_handle(inode, ctx.pid))

    async def _resolve_content(self, inode: int, node: Content) -> None:
        """Download a URL-backed node. On failure it stays unresolved."""
        try:
            data = await node.client.resolve(node.url)
        except Exception as e:
            log.error(f"Failed to download {node.url}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)
        self._arena.replace(inode, Content(data=data))
        log.info(f"Downloaded {len(data)} bytes for inode {inode}")

    async def read(self, fh: int, off: int, size: int) -> bytes:
        """Read file contents; past the end yields no bytes."""
        inode = self._handle(fh).inode
        log.debug(f"read: inode={inode}, off={off}, size={size}")
        node = self._node(inode)

        if isinstance(node, (Content, DiscussionReply)):
            return node.bytes()[off:off + size]
        if isinstance(node, ACTION_TYPES):
            return b""
        raise pyfuse3.FUSEError(errno.EPERM)
