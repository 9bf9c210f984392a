"""Read-modify-write access to the SSH config file.

Each public coroutine is one full round trip: read the file, parse it, apply
the mutation in memory, serialize and write it back. There is no locking;
a concurrent edit made since the read is overwritten.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from ssh_buddy.core import fileio
from ssh_buddy.core.errors import NotFoundError
from ssh_buddy.sshconfig.document import (
    ParsedDocument,
    SSHHostConfig,
    create_empty_document,
    parse,
    serialize,
)
from ssh_buddy.sshconfig.mutations import add_host, remove_host, update_host

logger = logging.getLogger(__name__)

Mutation = Callable[[ParsedDocument], ParsedDocument]


class SSHConfigStore:
    """SSH config file bound to a path.

    Args:
        path: Location of the config file (usually ~/.ssh/config)
        backup: Copy the previous file to ``<name>.bak`` before each write
    """

    def __init__(self, path: Path | str, backup: bool = False):
        self.path = Path(path).expanduser()
        self.backup = backup

    async def load(self) -> ParsedDocument:
        """Parse the current file. A missing file reads as an empty document."""
        try:
            text = await fileio.read_text(self.path)
        except NotFoundError:
            logger.info("SSH config not found at %s, starting empty", self.path)
            return create_empty_document()

        doc = parse(text)
        logger.debug("Parsed %d lines, %d hosts from %s", len(doc.lines), len(doc.hosts), self.path)
        return doc

    async def save(self, doc: ParsedDocument) -> None:
        await fileio.ensure_dir(self.path.parent)
        await fileio.write_text(self.path, serialize(doc), backup=self.backup)
        logger.info("Saved %d hosts to %s", len(doc.hosts), self.path)

    async def apply(self, *mutations: Mutation) -> ParsedDocument:
        """Apply several mutations against one loaded document and write once."""
        doc = await self.load()
        for mutation in mutations:
            doc = mutation(doc)
        await self.save(doc)
        return doc

    async def add_host(self, host: SSHHostConfig) -> ParsedDocument:
        return await self.apply(lambda doc: add_host(doc, host))

    async def update_host(self, old_name: str, host: SSHHostConfig) -> ParsedDocument:
        return await self.apply(lambda doc: update_host(doc, old_name, host))

    async def remove_host(self, host_name: str) -> ParsedDocument:
        return await self.apply(lambda doc: remove_host(doc, host_name))
