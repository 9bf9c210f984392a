"""Shared content directory and SSH directory resolution."""

from __future__ import annotations

from functools import cache
from pathlib import Path

from ssh_buddy.core.config import get_settings

# Packaged data files (deny lists, etc.) ship inside the wheel as ssh_buddy/_shared
SHARED_DIR = Path(__file__).resolve().parent.parent / "_shared"


@cache
def get_ssh_dir() -> Path:
    """Return the SSH directory. Computed once; the location cannot change at runtime."""
    return get_settings().ssh_dir


def get_known_hosts_path() -> Path:
    return get_settings().known_hosts_path


def get_config_path() -> Path:
    return get_settings().config_path
