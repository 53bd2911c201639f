"""
BaseMixin — Lifecycle, configuration, and core FUSE plumbing.

Handles init, destroy, nursery setup, access checks, statfs, the open-file
table, and the shared node/attribute helpers.
"""

import errno
import logging
import stat
from dataclasses import dataclass
from typing import Optional

import pyfuse3
import trio

from ..api_client import LearnClient
from ..arena import InodeArena, InodeError
from ..config import FuseConfig
from ..models import Node

log = logging.getLogger(__name__)


@dataclass
class OpenFile:
    """What an open file handle remembers: the inode and who opened it."""
    inode: int
    pid: int


class BaseMixin(pyfuse3.Operations):
    """Lifecycle, configuration, and core FUSE plumbing."""

    ROOT_INODE = pyfuse3.ROOT_INODE  # 1

    # Every node belongs to the normal user on most Linux systems
    UID = 1000
    GID = 1000

    # Attributes are only valid for the reply they are sent in: open() can
    # change a file's size, and the kernel must ask again before reading.
    TTL = 0

    def __init__(self, config: Optional[FuseConfig] = None):
        super().__init__()
        self.config = config or FuseConfig()

        # All nodes of the mount; inode numbers are indices into it
        self._arena = InodeArena()

        # One client per logged-in user, closed on unmount
        self._clients: list[LearnClient] = []

        # Open files: fh -> OpenFile
        self._handles: dict[int, OpenFile] = {}
        self._next_fh = 1

        # Nursery for fire-and-forget remote actions
        self._nursery: Optional[trio.Nursery] = None

    def _node(self, inode: int) -> Node:
        """Fetch a node, turning an unknown inode into EIO for this request."""
        try:
            return self._arena.get(inode)
        except InodeError:
            log.error(f"Request for unknown inode {inode}", exc_info=True)
            raise pyfuse3.FUSEError(errno.EIO)

    def _typed_node(self, inode: int, cls: type) -> Node:
        """Fetch a node that can only be a ``cls``; anything else is a bug (EIO)."""
        node = self._node(inode)
        if not isinstance(node, cls):
            log.error(f"Inode {inode} holds {type(node).__name__}, expected {cls.__name__}")
            raise pyfuse3.FUSEError(errno.EIO)
        return node

    def _make_attr(self, inode: int, is_dir: bool = False, size: int = 0) -> pyfuse3.EntryAttributes:
        """Create file attributes.

        Timestamps are always the epoch: remote times are exposed as file
        contents, not metadata.
        """
        attr = pyfuse3.EntryAttributes()
        attr.st_ino = inode
        if is_dir:
            attr.st_mode = stat.S_IFDIR | 0o555
            attr.st_nlink = 2
        else:
            attr.st_mode = stat.S_IFREG | 0o666
            attr.st_nlink = 1
        attr.st_size = size
        attr.st_blocks = (size + 511) // 512
        attr.st_atime_ns = 0
        attr.st_mtime_ns = 0
        attr.st_ctime_ns = 0
        attr.st_uid = self.UID
        attr.st_gid = self.GID
        attr.entry_timeout = self.TTL
        attr.attr_timeout = self.TTL
        return attr

    def _open_handle(self, inode: int, pid: int) -> int:
        fh = self._next_fh
        self._next_fh += 1
        self._handles[fh] = OpenFile(inode=inode, pid=pid)
        return fh

    def _handle(self, fh: int) -> OpenFile:
        handle = self._handles.get(fh)
        if handle is None:
            raise pyfuse3.FUSEError(errno.EBADF)
        return handle

    async def statfs(self, ctx: pyfuse3.RequestContext) -> pyfuse3.StatvfsData:
        """Return filesystem stats. Required by df and some file managers."""
        s = pyfuse3.StatvfsData()
        s.f_bsize = 4096
        s.f_frsize = 4096
        s.f_files = len(self._arena)
        s.f_namemax = 255
        return s

    async def access(self, inode: int, mode: int, ctx: pyfuse3.RequestContext) -> bool:
        """Permission check — always allow, each handler enforces its own rules."""
        return True

    async def flush(self, fh: int) -> None:
        """Flush file data. No-op — writes act immediately."""
        pass

    async def release(self, fh: int) -> None:
        """Close a file handle."""
        self._handles.pop(fh, None)

    def set_nursery(self, nursery: trio.Nursery) -> None:
        """Set the trio nursery for background tasks. Called by main.py."""
        self._nursery = nursery

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def destroy(self) -> None:
        """Clean up resources on unmount."""
        log.info("Destroying filesystem, closing sessions")
        for client in self._clients:
            try:
                await client.close()
            except Exception as e:
                log.warning(f"Failed to close client session: {e}")
        self._clients.clear()
        self._handles.clear()
