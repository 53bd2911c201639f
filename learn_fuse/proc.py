"""
Access to the process that issued a filesystem request.

Uses procfs to reach the caller's terminal and working directory, so a
password never shows up in a command line or environment variable and a
``FILE=`` path in a write is resolved the way the caller would resolve it.
These calls block; run them off the trio loop with ``trio.to_thread``.
"""

from pathlib import Path

PROC_ROOT = Path("/proc")

PASSWORD_PROMPT = "请输入密码："


def prompt_password(pid: int, prompt: str = PASSWORD_PROMPT) -> str:
    """Print ``prompt`` on the process's stdout and read a line from its stdin."""
    fd_dir = PROC_ROOT / str(pid) / "fd"
    # Append: stdout may be a redirected file that must not be truncated
    with open(fd_dir / "1", "a", encoding="utf-8") as out:
        out.write(prompt)
        out.flush()
    with open(fd_dir / "0", "r", encoding="utf-8") as inp:
        return inp.readline().strip()


def read_process_file(pid: int, path: str) -> bytes:
    """Read ``path`` relative to the process's current working directory."""
    return (PROC_ROOT / str(pid) / "cwd" / path).read_bytes()
