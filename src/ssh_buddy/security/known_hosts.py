"""known_hosts parsing and line-level editing.

Format per line: ``[@marker] hostnames algorithm base64key [comment]``.
Hashed host fields look like ``|1|<salt>|<hmac>`` and cannot be reversed.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
from pathlib import Path

from pydantic import BaseModel

from ssh_buddy.core import fileio
from ssh_buddy.core.paths import get_known_hosts_path

logger = logging.getLogger(__name__)

HASHED_PLACEHOLDER = "[hashed]"
_HASH_PREFIX = "|1|"


class KnownHostEntry(BaseModel):
    line_number: int  # 1-based
    hosts: list[str]
    key_type: str
    public_key: str
    raw: str
    marker: str | None = None  # @cert-authority / @revoked
    comment: str | None = None

    @property
    def is_hashed(self) -> bool:
        return self.hosts == [HASHED_PLACEHOLDER]

    @property
    def host_field(self) -> str:
        """The host column exactly as written in the file."""
        fields = self.raw.split()
        return fields[1] if self.marker else fields[0]


def parse_known_host_line(line: str, line_number: int) -> KnownHostEntry | None:
    """Parse one data line. Returns None for lines without host, algorithm and key."""
    parts = line.strip().split()
    marker = None
    if parts and parts[0].startswith("@"):
        marker = parts[0]
        parts = parts[1:]

    if len(parts) < 3:
        return None

    host_field, key_type, public_key = parts[0], parts[1], parts[2]
    hosts = [HASHED_PLACEHOLDER] if host_field.startswith("|") else host_field.split(",")

    return KnownHostEntry(
        line_number=line_number,
        hosts=hosts,
        key_type=key_type,
        public_key=public_key,
        raw=line.strip(),
        marker=marker,
        comment=" ".join(parts[3:]) or None,
    )


def parse_known_hosts(text: str) -> list[KnownHostEntry]:
    """Parse every data line, skipping blanks, comments and malformed lines."""
    entries: list[KnownHostEntry] = []
    for index, line in enumerate(text.split("\n")):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        entry = parse_known_host_line(stripped, index + 1)
        if entry is not None:
            entries.append(entry)
    return entries


def hashed_host_matches(host_field: str, hostname: str) -> bool:
    """Check a ``|1|salt|hash`` field against a plain hostname (what ssh-keygen -F does)."""
    if not host_field.startswith(_HASH_PREFIX):
        return False
    try:
        salt_b64, hash_b64 = host_field[len(_HASH_PREFIX) :].split("|", 1)
        salt = base64.b64decode(salt_b64, validate=True)
        expected = base64.b64decode(hash_b64, validate=True)
    except (ValueError, binascii.Error):
        return False
    digest = hmac.new(salt, hostname.encode("utf-8"), hashlib.sha1).digest()
    return hmac.compare_digest(digest, expected)


def entry_matches(entry: KnownHostEntry, name: str) -> bool:
    if not name:
        return False
    if entry.is_hashed:
        field = entry.host_field
        return name in field or hashed_host_matches(field, name)
    return any(host == name or name in host for host in entry.hosts)


def remove_known_host_line(text: str, line_number: int) -> tuple[str, bool]:
    """Drop one physical line (1-based). Out-of-range numbers change nothing."""
    lines = text.split("\n")
    if not 1 <= line_number <= len(lines):
        return text, False
    del lines[line_number - 1]
    return "\n".join(lines), True


def remove_known_hosts_matching(text: str, name: str) -> tuple[str, int]:
    """Drop every entry whose hosts match ``name``; other lines stay byte-exact."""
    kept: list[str] = []
    removed = 0
    for line in text.split("\n"):
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            entry = parse_known_host_line(stripped, 0)
            if entry is not None and entry_matches(entry, name):
                removed += 1
                continue
        kept.append(line)
    return "\n".join(kept), removed


async def remove_known_host_entry(line_number: int, path: Path | None = None) -> bool:
    """Remove one line from known_hosts. Returns whether a line was removed."""
    path = path or get_known_hosts_path()
    text = await fileio.read_text(path)
    new_text, removed = remove_known_host_line(text, line_number)
    if removed:
        await fileio.write_text(path, new_text)
        logger.info("Removed line %d from %s", line_number, path)
    return removed


async def remove_known_host_by_name(name: str, path: Path | None = None) -> int:
    """Remove every known_hosts entry for ``name``. Returns the number removed."""
    path = path or get_known_hosts_path()
    text = await fileio.read_text(path)
    new_text, removed = remove_known_hosts_matching(text, name)
    if removed:
        await fileio.write_text(path, new_text)
        logger.info("Removed %d entries for %s from %s", removed, name, path)
    return removed
