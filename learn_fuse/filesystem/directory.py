"""
DirectoryMixin — Directory listing and lookup.

Handles lookup, opendir/releasedir and readdir. Course and Discussion
directories are populated from the remote service on first access.
"""

import errno
import logging

import pyfuse3

from ..models import NameMap, Course, Discussion, children, find_child, is_dir

log = logging.getLogger(__name__)


class DirectoryMixin:
    """Directory listing and lookup."""

    async def _listing(self, inode: int) -> NameMap:
        """Name map of a directory, fetching lazy content first."""
        node = self._node(inode)
        if not is_dir(node):
            raise pyfuse3.FUSEError(errno.EPERM)
        if isinstance(node, Course):
            await self._populate_course(node)
        elif isinstance(node, Discussion):
            await self._populate_replies(node)
        return children(node)

    async def lookup(self, parent_inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Look up a directory entry by name."""
        name_str = name.decode("utf-8", errors="surrogateescape")
        log.debug(f"lookup: parent={parent_inode}, name={name_str}")

        entries = await self._listing(parent_inode)
        inode = find_child(entries, name_str)
        if inode is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        return self._attr(inode)

    async def opendir(self, inode: int, ctx: pyfuse3.RequestContext) -> int:
        """Open a directory, return file handle."""
        if not is_dir(self._node(inode)):
            raise pyfuse3.FUSEError(errno.EPERM)
        return inode  # Use inode as file handle

    async def releasedir(self, fh: int) -> None:
        """Release (close) a directory handle. No-op — we use inodes as handles."""
        pass

    async def readdir(self, fh: int, start_id: int, token: pyfuse3.ReaddirToken) -> None:
        """List a directory from ``start_id`` on.

        "." and ".." take ids 1 and 2; map entry ``i`` takes ``i + 3``, so
        any offset the kernel hands back restarts at the same position.
        """
        log.debug(f"readdir: fh={fh}, start_id={start_id}")

        entries = [(".", fh), ("..", fh)] + await self._listing(fh)

        for idx in range(max(start_id, 0), len(entries)):
            name, inode = entries[idx]
            attr = self._attr(inode)
            if not pyfuse3.readdir_reply(token, name.encode("utf-8"), attr, idx + 1):
                break
