"""SSH client config document model: parse and serialize ~/.ssh/config.

The ordered list of lines is the source of truth. The host list is a typed
projection recomputed from those lines, so the two can never drift apart.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Annotated, Literal, assert_never

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ssh_buddy.sshconfig.directives import (
    HOST,
    OPTION_KEYS,
    OptionValue,
    coerce_value,
    format_value,
    is_option_key,
    normalize_key,
)

_KV_RE = re.compile(r"^(\S+)\s+(.+)$")
_LINE_BREAK_RE = re.compile(r"[\r\n]")
_DIRECTIVE_NAME_RE = re.compile(r"^[^\s#]\S*\Z")

OPTION_INDENT = "  "


# --- Line variants -----------------------------------------------------------
#
# ``raw`` holds the physical line as read from disk. Lines created by a
# mutation have ``raw=None`` and are rendered from their fields.


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["comment"] = "comment"
    text: str


class Blank(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["blank"] = "blank"
    raw: str | None = None


class GlobalDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["global"] = "global"
    key: str
    value: str
    raw: str | None = None


class HostHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["host"] = "host"
    name: str
    raw: str | None = None


class HostOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["option"] = "option"
    key: str
    value: str
    raw: str | None = None


ConfigLine = Annotated[
    Comment | Blank | GlobalDirective | HostHeader | HostOption,
    Field(discriminator="kind"),
]


# --- Host projection -----------------------------------------------------------


class SSHHostConfig(BaseModel):
    """One ``Host`` block as typed data.

    ``options`` maps canonical directive names to typed values in the order
    they were supplied. Directives outside the canonical set are kept, in
    order and with their original spelling, in ``extra_options``.
    """

    host: str
    options: dict[str, OptionValue] = Field(default_factory=dict)
    extra_options: list[tuple[str, str]] = Field(default_factory=list)

    @field_validator("options")
    @classmethod
    def _canonical_keys_only(cls, value: dict[str, OptionValue]) -> dict[str, OptionValue]:
        unknown = [k for k in value if k not in OPTION_KEYS]
        if unknown:
            raise ValueError(
                f"not canonical directives: {', '.join(unknown)} (use extra_options)"
            )
        return value

    @classmethod
    def from_pairs(cls, host: str, pairs: Iterable[tuple[str, OptionValue]]) -> SSHHostConfig:
        """Build a host from (directive, value) pairs in any key casing.

        The first occurrence of a canonical directive is typed (ssh uses the
        first value it sees). Repeats, such as a second IdentityFile, and
        unknown directives go to extra_options verbatim.
        """
        options: dict[str, OptionValue] = {}
        extra: list[tuple[str, str]] = []
        for key, value in pairs:
            canonical = normalize_key(key)
            if is_option_key(canonical) and canonical not in options:
                options[canonical] = (
                    coerce_value(canonical, value) if isinstance(value, str) else value
                )
            else:
                extra.append((key, format_value(value)))
        return cls(host=host, options=options, extra_options=extra)

    def get(self, key: str) -> OptionValue | None:
        """Look up a directive: typed value for canonical keys, raw string otherwise."""
        canonical = normalize_key(key)
        if canonical == HOST:
            return self.host
        if canonical in self.options:
            return self.options[canonical]
        lowered = key.lower()
        for extra_key, extra_value in self.extra_options:
            if extra_key.lower() == lowered:
                return extra_value
        return None

    def option_items(self) -> list[tuple[str, str]]:
        """Directive lines this host renders to, skipping empty values."""
        items: list[tuple[str, str]] = []
        for key, value in self.options.items():
            rendered = format_value(value).strip()
            if rendered:
                items.append((key, rendered))
        for key, value in self.extra_options:
            rendered = value.strip()
            if rendered:
                items.append((key, rendered))
        return items

    def line_problems(self) -> list[tuple[str, str]]:
        """(field, message) for each directive that can't be written as one config line."""
        problems: list[tuple[str, str]] = []
        for key, value in self.options.items():
            if _LINE_BREAK_RE.search(format_value(value)):
                problems.append((key, f"{key} cannot contain line breaks"))
        for key, value in self.extra_options:
            if not _DIRECTIVE_NAME_RE.match(key) or normalize_key(key) == HOST:
                problems.append((key, f"Invalid directive name: {key!r}"))
            elif _LINE_BREAK_RE.search(value):
                problems.append((key, f"{key} cannot contain line breaks"))
        return problems

    @property
    def hostname(self) -> str | None:
        value = self.options.get("HostName")
        return str(value) if value not in (None, "") else None

    @property
    def user(self) -> str | None:
        value = self.options.get("User")
        return str(value) if value not in (None, "") else None

    @property
    def port(self) -> OptionValue | None:
        return self.options.get("Port")

    @property
    def identity_file(self) -> str | None:
        value = self.options.get("IdentityFile")
        return str(value) if value not in (None, "") else None

    @property
    def identities_only(self) -> bool | None:
        value = self.options.get("IdentitiesOnly")
        return value if isinstance(value, bool) else None

    @property
    def forward_agent(self) -> bool | None:
        value = self.options.get("ForwardAgent")
        return value if isinstance(value, bool) else None

    @property
    def proxy_jump(self) -> str | None:
        value = self.options.get("ProxyJump")
        return str(value) if value not in (None, "") else None

    @property
    def strict_host_key_checking(self) -> str | None:
        value = self.options.get("StrictHostKeyChecking")
        return str(value) if value not in (None, "") else None


def project_hosts(lines: Sequence[ConfigLine]) -> list[SSHHostConfig]:
    """Fold option lines into their host blocks, exactly as parse() reads them."""
    hosts: list[SSHHostConfig] = []
    current_name: str | None = None
    current_pairs: list[tuple[str, OptionValue]] = []

    for line in lines:
        if isinstance(line, HostHeader):
            if current_name is not None:
                hosts.append(SSHHostConfig.from_pairs(current_name, current_pairs))
            current_name = line.name
            current_pairs = []
        elif isinstance(line, HostOption | GlobalDirective) and current_name is not None:
            current_pairs.append((line.key, line.value))

    if current_name is not None:
        hosts.append(SSHHostConfig.from_pairs(current_name, current_pairs))

    return hosts


class ParsedDocument(BaseModel):
    """An SSH config file: its lines plus the host projection derived from them."""

    lines: list[ConfigLine] = Field(default_factory=list)
    hosts: list[SSHHostConfig] = Field(default_factory=list)

    @classmethod
    def from_lines(cls, lines: Iterable[ConfigLine]) -> ParsedDocument:
        line_list = list(lines)
        return cls(lines=line_list, hosts=project_hosts(line_list))

    @property
    def host_names(self) -> list[str]:
        return [h.host for h in self.hosts]

    def get_host(self, name: str) -> SSHHostConfig | None:
        for host in self.hosts:
            if host.host == name:
                return host
        return None


# --- Parse / serialize ---------------------------------------------------------


def parse(text: str) -> ParsedDocument:
    """Parse SSH config text. Never raises: malformed lines become comments."""
    lines: list[ConfigLine] = []
    in_host = False

    for raw in text.split("\n"):
        stripped = raw.strip()

        if not stripped:
            lines.append(Blank(raw=raw))
            continue

        if stripped.startswith("#"):
            lines.append(Comment(text=raw))
            continue

        match = _KV_RE.match(stripped)
        if match is None:
            lines.append(Comment(text=raw))
            continue

        key, value = match.group(1), match.group(2)
        if normalize_key(key) == HOST:
            in_host = True
            lines.append(HostHeader(name=value, raw=raw))
        elif in_host:
            lines.append(HostOption(key=key, value=value, raw=raw))
        else:
            lines.append(GlobalDirective(key=key, value=value, raw=raw))

    return ParsedDocument.from_lines(lines)


def render_line(line: ConfigLine) -> str:
    match line:
        case Comment():
            return line.text
        case Blank():
            return line.raw if line.raw is not None else ""
        case GlobalDirective():
            return line.raw if line.raw is not None else f"{line.key} {line.value}"
        case HostHeader():
            return line.raw if line.raw is not None else f"Host {line.name}"
        case HostOption():
            return (
                line.raw if line.raw is not None else f"{OPTION_INDENT}{line.key} {line.value}"
            )
        case _:
            assert_never(line)


def serialize(doc: ParsedDocument) -> str:
    """Render a document back to text. Lines read from disk come back byte-exact."""
    return "\n".join(render_line(line) for line in doc.lines)


# --- Helpers -----------------------------------------------------------------------


def create_empty_document() -> ParsedDocument:
    return ParsedDocument()


def create_default_host(name: str) -> SSHHostConfig:
    """A blank host with the fields a new entry usually needs."""
    return SSHHostConfig(host=name, options={"HostName": "", "User": "", "IdentityFile": ""})


def get_host_display_name(host: SSHHostConfig) -> str:
    if host.host == "*":
        return "Default (all hosts)"
    return host.host


def host_matches_pattern(hostname: str, pattern: str) -> bool:
    """Match a hostname against an ssh-style glob (``*`` and ``?``)."""
    if pattern == "*":
        return True
    regex = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.fullmatch(regex, hostname) is not None
