"""SSH client config: document model, mutations and validation."""

from ssh_buddy.sshconfig.document import (
    Blank,
    Comment,
    ConfigLine,
    GlobalDirective,
    HostHeader,
    HostOption,
    ParsedDocument,
    SSHHostConfig,
    create_default_host,
    create_empty_document,
    get_host_display_name,
    host_matches_pattern,
    parse,
    serialize,
)
from ssh_buddy.sshconfig.mutations import add_host, remove_host, update_host
from ssh_buddy.sshconfig.validation import validate_config, validate_host

__all__ = [
    "Blank",
    "Comment",
    "ConfigLine",
    "GlobalDirective",
    "HostHeader",
    "HostOption",
    "ParsedDocument",
    "SSHHostConfig",
    "add_host",
    "create_default_host",
    "create_empty_document",
    "get_host_display_name",
    "host_matches_pattern",
    "parse",
    "remove_host",
    "serialize",
    "update_host",
    "validate_config",
    "validate_host",
]
