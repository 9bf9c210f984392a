"""Canonical SSH directive names and value coercion for the host projection."""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Final

OptionValue = bool | int | str

HOST: Final = "Host"

# Directives the host projection types. Order is the canonical display order.
CANONICAL_DIRECTIVES: Final = (
    "Host",
    "HostName",
    "User",
    "Port",
    "IdentityFile",
    "IdentitiesOnly",
    "ProxyJump",
    "ProxyCommand",
    "ForwardAgent",
    "AddKeysToAgent",
    "UseKeychain",
    "ServerAliveInterval",
    "ServerAliveCountMax",
    "StrictHostKeyChecking",
    "UserKnownHostsFile",
    "LogLevel",
    "Compression",
)

# Lower-case spelling -> canonical spelling. Include is normalized for display
# but stays an untyped directive.
_KEY_MAP: Final = MappingProxyType(
    {name.lower(): name for name in (*CANONICAL_DIRECTIVES, "Include")}
)

BOOLEAN_KEYS: Final = frozenset(
    {"IdentitiesOnly", "ForwardAgent", "AddKeysToAgent", "UseKeychain", "Compression"}
)
INTEGER_KEYS: Final = frozenset({"Port", "ServerAliveInterval", "ServerAliveCountMax"})

# Typed option keys (everything canonical except Host itself)
OPTION_KEYS: Final = frozenset(CANONICAL_DIRECTIVES) - {HOST}

_INT_RE = re.compile(r"^[+-]?\d+$")


def normalize_key(key: str) -> str:
    """Return the canonical spelling of a directive, or the key unchanged if unknown."""
    return _KEY_MAP.get(key.lower(), key)


def is_option_key(key: str) -> bool:
    return key in OPTION_KEYS


def coerce_value(key: str, value: str) -> OptionValue:
    """Convert a raw directive value to the projection's typed value.

    Integers that do not parse stay as the raw string so the validator can
    report them; the line text remains authoritative either way.
    """
    if key in BOOLEAN_KEYS:
        return value.lower() in ("yes", "true")
    if key in INTEGER_KEYS:
        stripped = value.strip()
        if _INT_RE.match(stripped):
            return int(stripped, 10)
        return value
    return value


def format_value(value: OptionValue) -> str:
    """Render a typed value the way the ssh client expects it."""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)
