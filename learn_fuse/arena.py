"""Append-only inode table.

Inode numbers are indices into one growing list. Slot 0 is never used and
slot 1 is the filesystem root. Nodes are never removed: unlinking only
drops an entry from a parent's name map, and superseded subtrees stay
allocated for the rest of the session.
"""

import pyfuse3

from .models import Node, Root


class InodeError(LookupError):
    """An inode number that was never handed out. Always a bug."""


class InodeArena:
    """Index-addressed store of every node created during a mount."""

    def __init__(self):
        self._nodes: list = [None, Root()]

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def root(self) -> Root:
        return self._nodes[pyfuse3.ROOT_INODE]

    def get(self, inode: int) -> Node:
        """Return the node for ``inode``; the object is shared, not copied."""
        if inode <= 0 or inode >= len(self._nodes):
            raise InodeError(f"inode {inode} does not exist")
        return self._nodes[inode]

    def push(self, node: Node) -> int:
        """Append a node and return its newly assigned inode number."""
        self._nodes.append(node)
        return len(self._nodes) - 1

    def replace(self, inode: int, node: Node) -> None:
        """Swap the node stored at ``inode`` (e.g. content becoming resolved)."""
        self.get(inode)
        self._nodes[inode] = node
