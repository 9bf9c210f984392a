"""Configuration loading. Reads the optional TOML config file and SSHB_* env vars."""

from __future__ import annotations

import os
import tomllib
from functools import cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel

DEFAULT_CONFIG_PATHS = [
    Path.home() / ".config" / "ssh-buddy" / "config.toml",
    Path("sshb.toml"),
]


class Settings(BaseModel):
    """Resolved locations of the files ssh-buddy reads and writes."""

    ssh_dir: Path
    config_path: Path
    known_hosts_path: Path
    backup: bool = False


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a TOML file.

    Searches default paths if no explicit path is given.
    Returns an empty dict if no config file is found.
    """
    paths = [path] if path is not None else DEFAULT_CONFIG_PATHS

    for p in paths:
        if p.exists():
            with open(p, "rb") as f:
                return tomllib.load(f)

    return {}


def resolve_settings(ssh_dir: Path | str | None = None, config: dict[str, Any] | None = None) -> Settings:
    """Build Settings: explicit ssh_dir → SSHB_SSH_DIR env var → config.toml [ssh] → ~/.ssh."""
    if config is None:
        config = load_config()
    section: dict[str, Any] = config.get("ssh", {})

    raw_dir = ssh_dir or os.environ.get("SSHB_SSH_DIR") or section.get("dir")
    base = Path(raw_dir).expanduser() if raw_dir else Path.home() / ".ssh"

    config_path = Path(section["config"]).expanduser() if "config" in section else base / "config"
    known_hosts = (
        Path(section["known_hosts"]).expanduser()
        if "known_hosts" in section
        else base / "known_hosts"
    )

    return Settings(
        ssh_dir=base,
        config_path=config_path,
        known_hosts_path=known_hosts,
        backup=bool(section.get("backup", False)),
    )


@cache
def get_settings() -> Settings:
    """Process-wide settings, resolved on first access and reused afterwards."""
    return resolve_settings()
