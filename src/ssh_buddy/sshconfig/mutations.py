"""Add, update and remove host blocks.

Every function is pure: it takes a document and returns a new one, leaving
lines outside the touched block exactly as they were read.
"""

from __future__ import annotations

from collections import defaultdict, deque

from ssh_buddy.sshconfig.directives import coerce_value, is_option_key, normalize_key
from ssh_buddy.sshconfig.document import (
    Blank,
    ConfigLine,
    HostHeader,
    HostOption,
    ParsedDocument,
    SSHHostConfig,
)


def _check_renderable(host: SSHHostConfig) -> None:
    """Raise ValueError for a host whose block would re-parse as something else."""
    name = host.host.strip()
    if not name:
        raise ValueError("host alias is required")
    if "\n" in name or "\r" in name:
        raise ValueError("host alias cannot contain line breaks")
    problems = host.line_problems()
    if problems:
        raise ValueError("; ".join(message for _field, message in problems))


def _block_lines(host: SSHHostConfig) -> list[ConfigLine]:
    lines: list[ConfigLine] = [HostHeader(name=host.host.strip())]
    lines.extend(HostOption(key=key, value=value) for key, value in host.option_items())
    return lines


def _group(key: str) -> str:
    return normalize_key(key).lower()


def _same_value(key: str, old: str, new: str) -> bool:
    canonical = normalize_key(key)
    if is_option_key(canonical):
        return coerce_value(canonical, old.strip()) == coerce_value(canonical, new)
    return old.strip() == new


def _block_end(lines: list[ConfigLine], start: int) -> int:
    """Index one past the last line of the block whose header is at ``start``."""
    end = start + 1
    while end < len(lines) and not isinstance(lines[end], Blank | HostHeader):
        end += 1
    return end


def add_host(doc: ParsedDocument, host: SSHHostConfig) -> ParsedDocument:
    """Append a new host block. Calling it twice adds two blocks.

    Raises ValueError when the host can't be written as config lines.
    """
    _check_renderable(host)
    lines = list(doc.lines)
    if lines == [Blank(raw="")]:
        # parse("") yields one empty line
        lines = []
    elif lines and not isinstance(lines[-1], Blank):
        lines.append(Blank())
    lines.extend(_block_lines(host))
    return ParsedDocument.from_lines(lines)


def update_host(doc: ParsedDocument, old_name: str, new_host: SSHHostConfig) -> ParsedDocument:
    """Rewrite the first block named ``old_name`` so it describes ``new_host``.

    The block is diffed line by line: options whose value did not change keep
    their original text, changed ones are rewritten in place, removed ones are
    dropped and new ones go after the block's last option. Comments inside the
    block stay where they are. Falls back to add_host when ``old_name`` is absent.
    """
    _check_renderable(new_host)
    lines = list(doc.lines)
    start = next(
        (
            i
            for i, line in enumerate(lines)
            if isinstance(line, HostHeader) and line.name == old_name
        ),
        None,
    )
    if start is None:
        return add_host(doc, new_host)

    end = _block_end(lines, start)
    header = lines[start]
    assert isinstance(header, HostHeader)

    items = new_host.option_items()
    pending: dict[str, deque[int]] = defaultdict(deque)
    for index, (key, _value) in enumerate(items):
        pending[_group(key)].append(index)
    consumed: set[int] = set()

    block: list[ConfigLine] = []
    last_option = 0
    for line in lines[start + 1 : end]:
        if not isinstance(line, HostOption):
            block.append(line)
            continue

        queue = pending.get(_group(line.key))
        if not queue:
            continue

        index = queue.popleft()
        consumed.add(index)
        new_key, new_value = items[index]
        if _same_value(line.key, line.value, new_value):
            block.append(line)
        else:
            block.append(HostOption(key=new_key, value=new_value))
        last_option = len(block)

    additions = [
        HostOption(key=key, value=value)
        for index, (key, value) in enumerate(items)
        if index not in consumed
    ]
    block[last_option:last_option] = additions

    new_header = header if header.name == new_host.host.strip() else HostHeader(name=new_host.host.strip())
    lines[start:end] = [new_header, *block]
    return ParsedDocument.from_lines(lines)


def remove_host(doc: ParsedDocument, host_name: str) -> ParsedDocument:
    """Delete every block named ``host_name``. Unknown names leave the document as is."""
    lines = doc.lines
    kept: list[ConfigLine] = []
    removed = False
    i = 0

    while i < len(lines):
        line = lines[i]
        if isinstance(line, HostHeader) and line.name == host_name:
            removed = True
            i = _block_end(lines, i)
            # Don't leave two blank runs back to back, or a blank at the top
            if not kept or isinstance(kept[-1], Blank):
                while i < len(lines) and isinstance(lines[i], Blank):
                    i += 1
            continue
        kept.append(line)
        i += 1

    if not removed:
        return doc

    while kept and isinstance(kept[-1], Blank):
        kept.pop()

    return ParsedDocument.from_lines(kept)
