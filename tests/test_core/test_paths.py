"""Tests for memoized path resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from ssh_buddy.core.config import get_settings
from ssh_buddy.core.paths import (
    SHARED_DIR,
    get_config_path,
    get_known_hosts_path,
    get_ssh_dir,
)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr("ssh_buddy.core.config.DEFAULT_CONFIG_PATHS", [])
    get_settings.cache_clear()
    get_ssh_dir.cache_clear()
    yield
    get_settings.cache_clear()
    get_ssh_dir.cache_clear()


def test_paths_follow_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("SSHB_SSH_DIR", str(tmp_path))

    assert get_ssh_dir() == tmp_path
    assert get_config_path() == tmp_path / "config"
    assert get_known_hosts_path() == tmp_path / "known_hosts"


def test_ssh_dir_resolved_once(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("SSHB_SSH_DIR", str(tmp_path / "first"))
    first = get_ssh_dir()

    monkeypatch.setenv("SSHB_SSH_DIR", str(tmp_path / "second"))

    assert get_ssh_dir() == first == tmp_path / "first"
    assert get_settings() is get_settings()


def test_algorithm_data_ships_with_package():
    assert (SHARED_DIR / "data" / "algorithms.yaml").is_file()
