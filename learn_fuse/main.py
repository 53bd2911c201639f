#!/usr/bin/env python3
"""
Learning Web FUSE Driver

Mounts the learning web service as a filesystem.

Usage:
    learn-fuse /mnt/learn
    mkdir /mnt/learn/<username>     # prompts for the password
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

import pyfuse3
import trio

from .config import FuseConfig, load_config
from .filesystem import LearnFS

log = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mount the learning web service as a FUSE filesystem"
    )
    parser.add_argument(
        "mountpoint",
        help="Directory to mount the filesystem",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: ~/.config/learn-fuse/config.json)",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Learning web service URL",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def fuse_options(config: FuseConfig) -> set[str]:
    """Mount options. Permission checks are left to our handlers."""
    options = set(pyfuse3.default_options)
    options.discard("default_permissions")
    options.add(f"fsname={config.fsname}")
    if config.debug:
        options.add("debug")
    return options


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    config = load_config(args.config, base_url=args.base_url, debug=args.debug)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    fs = LearnFS(config)

    log.info(f"Mounting learning web at {args.mountpoint}")
    log.info(f"Service: {config.base_url}")

    pyfuse3.init(fs, args.mountpoint, fuse_options(config))

    async def _run():
        async with trio.open_nursery() as nursery:
            fs.set_nursery(nursery)
            # One request at a time: handlers are not reentrant
            await pyfuse3.main(min_tasks=1, max_tasks=1)

    try:
        trio.run(_run)
    except KeyboardInterrupt:
        log.info("Interrupted, unmounting...")
    finally:
        pyfuse3.close(unmount=True)
        log.info("Unmounted")


if __name__ == "__main__":
    main()
