"""
Learning Web FUSE Filesystem — mixin composition.

Hierarchy:
- /                                      - Mount root (one directory per logged-in user)
- /{user}/                               - Created by `mkdir`, which logs the user in
- /{user}/{semester}/                    - e.g. 2019-2020-秋
- /{user}/{semester}/{course}/           - One directory per course
- /{course}/作业/{title}/                - Homework: fields, attachments, actions
- /{course}/作业/{title}/提交作业        - Write "text" or "FILE=path text" to submit
- /{course}/作业/{title}/刷新            - Write anything to re-fetch this homework
- /{course}/通知/{title}/                - Notification fields and attachment
- /{course}/文件/{title}/                - File fields and the file itself
- /{course}/讨论/{title}/                - Discussion thread, one file per post
- /{course}/讨论/{title}/{post}          - Write to reply to the post, rm to delete it
- /{course}/讨论/{title}/刷新            - Write anything to re-fetch the thread

Course content and discussion posts are fetched on first access;
attachments are downloaded on first open.
"""

from .actions import ActionMixin
from .base import BaseMixin
from .directory import DirectoryMixin
from .inode import InodeMixin
from .population import PopulationMixin
from .read import ReadMixin
from .write import WriteMixin


class LearnFS(
    WriteMixin,        # write, setattr, mkdir, unlink, refresh
    ActionMixin,       # payload parsing, background submit/reply
    ReadMixin,         # open, read, content download
    DirectoryMixin,    # lookup, opendir, readdir
    PopulationMixin,   # lazy course/discussion population
    InodeMixin,        # getattr, attribute resolution
    BaseMixin,         # __init__, destroy, statfs, handles (MUST be last)
):
    """Learning Web FUSE Filesystem.

    Composed from domain-specific mixins. BaseMixin must be last in MRO
    so its __init__ runs first and sets up all shared state.
    """
    pass


__all__ = ["LearnFS"]
