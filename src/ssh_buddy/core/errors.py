"""Typed failures raised by the file layer and surfaced by the CLI."""

from __future__ import annotations

from pathlib import Path


class SSHBuddyError(Exception):
    """Base class for every error ssh-buddy raises on purpose."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class NotFoundError(SSHBuddyError):
    """The requested file does not exist."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"File not found: {path}", path)


class PermissionDeniedError(SSHBuddyError):
    """The process may not read or write the file."""

    def __init__(self, path: Path | str, operation: str = "access") -> None:
        self.operation = operation
        super().__init__(f"Permission denied: cannot {operation} {path}", path)


class DiskFullError(SSHBuddyError):
    """No space left while writing the file."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"No space left on device while writing {path}", path)


class CorruptDataError(SSHBuddyError):
    """The file exists but its content cannot be decoded."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Cannot decode {path}: {reason}", path)
