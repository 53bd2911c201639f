"""Pytest configuration for learn-fuse tests."""

import pytest


@pytest.fixture
def anyio_backend():
    # pyfuse3 runs on trio; the filesystem's nursery and to_thread calls need it
    return "trio"
