"""Async file access with typed failures.

Everything here runs the blocking filesystem call in a worker thread so the
callers can await it. OS errors are translated into ssh_buddy.core.errors types.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path

from ssh_buddy.core.errors import (
    CorruptDataError,
    DiskFullError,
    NotFoundError,
    PermissionDeniedError,
    SSHBuddyError,
)

logger = logging.getLogger(__name__)


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotFoundError(path) from e
    except PermissionError as e:
        raise PermissionDeniedError(path, "read") from e
    except UnicodeDecodeError as e:
        raise CorruptDataError(path, str(e)) from e
    except OSError as e:
        raise SSHBuddyError(f"Cannot read {path}: {e}", path) from e


def _write(path: Path, text: str, backup: bool, mode: int | None) -> None:
    try:
        if mode is None:
            mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else 0o600

        if backup and path.exists():
            backup_path = path.with_name(f"{path.name}.bak")
            shutil.copy2(path, backup_path)
            logger.debug("Backed up %s to %s", path, backup_path)

        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with open(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.chmod(tmp, mode)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except PermissionError as e:
        raise PermissionDeniedError(path, "write") from e
    except OSError as e:
        if e.errno == errno.ENOSPC:
            raise DiskFullError(path) from e
        raise SSHBuddyError(f"Cannot write {path}: {e}", path) from e


async def read_text(path: Path) -> str:
    """Read a UTF-8 text file.

    Raises:
        NotFoundError: the file does not exist
        PermissionDeniedError: the file is not readable
        CorruptDataError: the content is not valid UTF-8
    """
    return await asyncio.to_thread(_read, Path(path))


async def write_text(path: Path, text: str, *, backup: bool = False, mode: int | None = None) -> None:
    """Replace a file's content atomically (temp file + rename).

    With backup=True the previous content is copied to ``<name>.bak`` first.
    The existing file mode is kept unless ``mode`` is given; new files get 600.

    Raises:
        PermissionDeniedError: the file or its directory is not writable
        DiskFullError: the device ran out of space
    """
    path = Path(path)
    await asyncio.to_thread(_write, path, text, backup, mode)
    logger.debug("Wrote %d bytes to %s", len(text.encode("utf-8")), path)


async def exists(path: Path) -> bool:
    return await asyncio.to_thread(Path(path).exists)


async def ensure_dir(path: Path, mode: int = 0o700) -> None:
    """Create a directory (and parents) if missing."""

    def _mkdir() -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True, mode=mode)
        except PermissionError as e:
            raise PermissionDeniedError(path, "create") from e

    await asyncio.to_thread(_mkdir)
