"""Tests for known_hosts parsing and entry removal."""

from __future__ import annotations

import base64
import hashlib
import hmac
import stat
from pathlib import Path

import pytest

from ssh_buddy.core.errors import NotFoundError
from ssh_buddy.security.known_hosts import (
    HASHED_PLACEHOLDER,
    entry_matches,
    hashed_host_matches,
    parse_known_host_line,
    parse_known_hosts,
    remove_known_host_by_name,
    remove_known_host_entry,
    remove_known_host_line,
    remove_known_hosts_matching,
)


def _hashed(hostname: str, salt: bytes = b"0123456789abcdefghij") -> str:
    digest = hmac.new(salt, hostname.encode(), hashlib.sha1).digest()
    return f"|1|{base64.b64encode(salt).decode()}|{base64.b64encode(digest).decode()}"


KNOWN_HOSTS = f"""\
# managed by hand
github.com,140.82.121.3 ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIOMq
gitlab.com ecdsa-sha2-nistp256 AAAAE2VjZHNhLXNoYTItbmlzdHAyNTYAAAAI

{_hashed("secret.example.com")} ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIHashed
@cert-authority *.corp.example.com ssh-rsa AAAAB3NzaC1yc2EAAAADAQAB ca@corp
broken-line-only-two-fields ssh-rsa
"""


# --- Parsing ---


def test_parse_skips_comments_blanks_and_malformed():
    entries = parse_known_hosts(KNOWN_HOSTS)
    assert [e.line_number for e in entries] == [2, 3, 5, 6]


def test_parse_splits_hosts_on_commas():
    entry = parse_known_hosts(KNOWN_HOSTS)[0]
    assert entry.hosts == ["github.com", "140.82.121.3"]
    assert entry.key_type == "ssh-ed25519"
    assert entry.public_key == "AAAAC3NzaC1lZDI1NTE5AAAAIOMq"
    assert entry.marker is None
    assert entry.comment is None


def test_parse_hashed_entry():
    entry = parse_known_hosts(KNOWN_HOSTS)[2]
    assert entry.hosts == [HASHED_PLACEHOLDER]
    assert entry.is_hashed
    assert entry.host_field.startswith("|1|")


def test_parse_marker_and_comment():
    entry = parse_known_hosts(KNOWN_HOSTS)[3]
    assert entry.marker == "@cert-authority"
    assert entry.hosts == ["*.corp.example.com"]
    assert entry.key_type == "ssh-rsa"
    assert entry.comment == "ca@corp"
    assert entry.host_field == "*.corp.example.com"


def test_parse_line_needs_three_fields():
    assert parse_known_host_line("host ssh-rsa", 1) is None
    assert parse_known_host_line("@revoked host ssh-rsa", 1) is None


def test_parse_empty_text():
    assert parse_known_hosts("") == []


# --- Matching ---


def test_hashed_host_matches_exact_name():
    field = _hashed("secret.example.com")
    assert hashed_host_matches(field, "secret.example.com")
    assert not hashed_host_matches(field, "other.example.com")


def test_hashed_host_matches_rejects_malformed():
    assert not hashed_host_matches("|1|not-base64!|x", "a")
    assert not hashed_host_matches("plain.example.com", "plain.example.com")


def test_entry_matches_plain_substring():
    entry = parse_known_hosts(KNOWN_HOSTS)[0]
    assert entry_matches(entry, "github.com")
    assert entry_matches(entry, "140.82.121.3")
    assert entry_matches(entry, "github")
    assert not entry_matches(entry, "gitlab.com")


def test_entry_matches_empty_name_never():
    for entry in parse_known_hosts(KNOWN_HOSTS):
        assert not entry_matches(entry, "")


# --- Pure removal ---


def test_remove_line_by_number():
    text = "a ssh-rsa K1\nb ssh-rsa K2\nc ssh-rsa K3\n"
    new_text, removed = remove_known_host_line(text, 2)
    assert removed
    assert new_text == "a ssh-rsa K1\nc ssh-rsa K3\n"


@pytest.mark.parametrize("line_number", [0, -1, 99])
def test_remove_line_out_of_range(line_number: int):
    text = "a ssh-rsa K1\n"
    assert remove_known_host_line(text, line_number) == (text, False)


def test_remove_matching_keeps_unrelated_lines_byte_exact():
    text = "# c\n  a.example.com ssh-rsa K1\nb.example.com ssh-rsa K2  \n\na.example.com ssh-ed25519 K3\n"
    new_text, count = remove_known_hosts_matching(text, "a.example.com")
    assert count == 2
    assert new_text == "# c\nb.example.com ssh-rsa K2  \n\n"


def test_remove_matching_hashed_entry_by_name():
    new_text, count = remove_known_hosts_matching(KNOWN_HOSTS, "secret.example.com")
    assert count == 1
    assert "|1|" not in new_text
    assert "github.com" in new_text


def test_remove_matching_nothing():
    assert remove_known_hosts_matching(KNOWN_HOSTS, "nowhere.invalid") == (KNOWN_HOSTS, 0)


# --- File operations ---


@pytest.mark.asyncio
async def test_remove_entry_from_file(tmp_path: Path):
    path = tmp_path / "known_hosts"
    path.write_text("a ssh-rsa K1\nb ssh-rsa K2\n")
    path.chmod(0o644)

    assert await remove_known_host_entry(1, path)

    assert path.read_text() == "b ssh-rsa K2\n"
    assert stat.S_IMODE(path.stat().st_mode) == 0o644


@pytest.mark.asyncio
async def test_remove_entry_out_of_range_does_not_write(tmp_path: Path):
    path = tmp_path / "known_hosts"
    path.write_text("a ssh-rsa K1\n")
    before = path.stat().st_mtime_ns

    assert not await remove_known_host_entry(10, path)

    assert path.stat().st_mtime_ns == before


@pytest.mark.asyncio
async def test_remove_by_name_from_file(tmp_path: Path):
    path = tmp_path / "known_hosts"
    path.write_text(KNOWN_HOSTS)

    assert await remove_known_host_by_name("gitlab.com", path) == 1

    assert "gitlab.com" not in path.read_text()
    assert len(parse_known_hosts(path.read_text())) == 3


@pytest.mark.asyncio
async def test_remove_from_missing_file_raises(tmp_path: Path):
    with pytest.raises(NotFoundError):
        await remove_known_host_by_name("a", tmp_path / "known_hosts")
