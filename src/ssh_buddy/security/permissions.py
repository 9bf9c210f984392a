"""File permission checks for private keys and the SSH directory (POSIX modes)."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from pydantic import BaseModel

from ssh_buddy.core.errors import NotFoundError, PermissionDeniedError

KEY_FILE_MODE = 0o600
SSH_DIR_MODE = 0o700


class PermissionCheckResult(BaseModel):
    is_valid: bool
    current_mode: str | None = None
    expected_mode: str
    message: str


class PermissionFixResult(BaseModel):
    success: bool
    message: str
    new_mode: str | None = None


def format_mode(mode: int) -> str:
    return f"{mode:03o}"


def is_owner_only(mode: int) -> bool:
    """True when neither group nor others have any access bit."""
    return not mode & (stat.S_IRWXG | stat.S_IRWXO)


def _mode_of(path: Path) -> int:
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError as e:
        raise NotFoundError(path) from e
    except PermissionError as e:
        raise PermissionDeniedError(path, "stat") from e


def check_key_permissions(key_path: Path) -> PermissionCheckResult:
    """A private key must not be accessible to group or others (600 or stricter).

    Raises:
        NotFoundError: the key file does not exist
    """
    mode = _mode_of(Path(key_path))
    current = format_mode(mode)
    is_valid = is_owner_only(mode)
    return PermissionCheckResult(
        is_valid=is_valid,
        current_mode=current,
        expected_mode=format_mode(KEY_FILE_MODE),
        message=(
            "Key permissions are correct"
            if is_valid
            else f"Key permissions are {current} but should be 600. File is too accessible."
        ),
    )


def check_ssh_dir_permissions(ssh_dir: Path) -> PermissionCheckResult:
    """The SSH directory should be 700. A missing directory is reported, not raised."""
    ssh_dir = Path(ssh_dir)
    if not ssh_dir.exists():
        return PermissionCheckResult(
            is_valid=False,
            expected_mode=format_mode(SSH_DIR_MODE),
            message="SSH directory does not exist",
        )

    mode = _mode_of(ssh_dir)
    current = format_mode(mode)
    is_valid = mode == SSH_DIR_MODE
    return PermissionCheckResult(
        is_valid=is_valid,
        current_mode=current,
        expected_mode=format_mode(SSH_DIR_MODE),
        message=(
            "SSH directory permissions are correct"
            if is_valid
            else f"SSH directory permissions are {current} but should be 700"
        ),
    )


def _fix(path: Path, mode: int) -> PermissionFixResult:
    path = Path(path)
    if not path.exists():
        raise NotFoundError(path)
    try:
        os.chmod(path, mode)
    except PermissionError as e:
        raise PermissionDeniedError(path, "chmod") from e

    new_mode = _mode_of(path)
    return PermissionFixResult(
        success=new_mode == mode,
        message=f"Permissions set to {format_mode(new_mode)}",
        new_mode=format_mode(new_mode),
    )


def fix_key_permissions(key_path: Path) -> PermissionFixResult:
    return _fix(key_path, KEY_FILE_MODE)


def fix_ssh_dir_permissions(ssh_dir: Path) -> PermissionFixResult:
    return _fix(ssh_dir, SSH_DIR_MODE)
