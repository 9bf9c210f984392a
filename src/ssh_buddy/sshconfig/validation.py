"""Host entry validation: structural errors and security-posture warnings.

Errors block a save; warnings are advisory. Nothing here raises for any host
the model can represent.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable

import yaml

from ssh_buddy.core.base import ValidationIssue, ValidationResult, ValidationSeverity
from ssh_buddy.core.paths import SHARED_DIR
from ssh_buddy.sshconfig.document import ParsedDocument, SSHHostConfig

_HOSTNAME_RE = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?)*\Z"
)
_INT_RE = re.compile(r"^[+-]?\d+$")
# ssh expands %h, %n, ... at connect time
_PERCENT_TOKEN_RE = re.compile(r"%[A-Za-z%]")

MIN_PORT = 1
MAX_PORT = 65535


def _load_deprecated() -> dict[str, frozenset[str]]:
    path = SHARED_DIR / "data" / "algorithms.yaml"
    with open(path) as f:
        data = yaml.safe_load(f)
    return {
        field: frozenset(name.lower() for name in names)
        for field, names in data["deprecated"].items()
    }


DEPRECATED_ALGORITHMS = _load_deprecated()


def _error(field: str | None, message: str, hint: str | None = None) -> ValidationIssue:
    return ValidationIssue(severity=ValidationSeverity.ERROR, field=field, message=message, hint=hint)


def _warning(field: str | None, message: str, hint: str | None = None) -> ValidationIssue:
    return ValidationIssue(
        severity=ValidationSeverity.WARNING, field=field, message=message, hint=hint
    )


def _is_valid_port(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return MIN_PORT <= value <= MAX_PORT
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return MIN_PORT <= int(value.strip(), 10) <= MAX_PORT
    return False


def is_valid_hostname(value: str) -> bool:
    """Accept DNS names and IPv4/IPv6 literals. %-tokens count as one label."""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return _HOSTNAME_RE.match(_PERCENT_TOKEN_RE.sub("x", value)) is not None
    return True


def _deprecated_in(host: SSHHostConfig, field: str) -> list[str]:
    value = host.get(field)
    if not isinstance(value, str):
        return []
    deny = DEPRECATED_ALGORITHMS.get(field, frozenset())
    found = []
    for name in value.split(","):
        name = name.strip()
        if name.lstrip("+-^").lower() in deny:
            found.append(name.lstrip("+-^"))
    return found


def validate_host(
    host: SSHHostConfig,
    existing_host_names: Iterable[str] = (),
    is_new_host: bool = False,
) -> ValidationResult:
    """Validate one host entry.

    ``existing_host_names`` is only consulted when ``is_new_host`` is set,
    to reject an alias that is already taken.
    """
    issues: list[ValidationIssue] = []
    name = host.host

    # --- Blocking errors ---

    if not name.strip():
        issues.append(
            _error("Host", "Host alias is required", 'Enter a short name, e.g. "my-server"')
        )
    elif re.search(r"\s", name):
        issues.append(
            _error(
                "Host",
                "Host alias cannot contain spaces",
                'Use hyphens or underscores instead, e.g. "my-server"',
            )
        )

    if is_new_host and name in set(existing_host_names):
        issues.append(
            _error("Host", "A host with this alias already exists", "Choose a different alias")
        )

    port = host.port
    if port is not None and not _is_valid_port(port):
        issues.append(
            _error(
                "Port",
                f"Port must be between {MIN_PORT} and {MAX_PORT}",
                "Standard SSH port is 22",
            )
        )

    hostname = host.hostname
    if hostname and not is_valid_hostname(hostname):
        issues.append(
            _error(
                "HostName",
                "Invalid hostname or IP address format",
                "Enter a valid domain name or IP address",
            )
        )

    for field, message in host.line_problems():
        issues.append(
            _error(field, message, "Each directive must fit on one line as KEY VALUE")
        )

    # --- Warnings ---

    if name and name != "*" and not hostname:
        issues.append(
            _warning(
                "HostName",
                "No server address specified",
                "Add a HostName to specify where to connect",
            )
        )

    identity_file = host.identity_file
    if not identity_file:
        issues.append(
            _warning(
                "IdentityFile",
                "No identity file specified",
                "SSH will try its default keys. Point to a specific key instead.",
            )
        )
    elif not identity_file.startswith(("/", "~", "%")):
        issues.append(
            _warning(
                "IdentityFile",
                "Identity file path may be invalid",
                "Use an absolute path starting with / or ~ (e.g. ~/.ssh/id_ed25519)",
            )
        )

    for field in DEPRECATED_ALGORITHMS:
        found = _deprecated_in(host, field)
        if found:
            issues.append(
                _warning(
                    field,
                    f"Deprecated {field.lower()}: {', '.join(found)}",
                    "These algorithms are considered weak. Use stronger alternatives.",
                )
            )

    strict = host.strict_host_key_checking
    if strict is not None and strict.lower() == "no":
        issues.append(
            _warning(
                "StrictHostKeyChecking",
                "Host key checking is disabled",
                "This allows man-in-the-middle attacks. Only use it for testing.",
            )
        )

    if host.forward_agent is True and not host.identities_only:
        issues.append(
            _warning(
                "ForwardAgent",
                "Agent forwarding enabled without IdentitiesOnly",
                "Set IdentitiesOnly yes to limit which keys are offered",
            )
        )

    return ValidationResult(issues=issues)


def validate_config(doc: ParsedDocument) -> ValidationResult:
    """Validate every host in a document, plus alias uniqueness across it."""
    issues: list[ValidationIssue] = []

    seen: set[str] = set()
    duplicates: list[str] = []
    for host in doc.hosts:
        if host.host in seen and host.host not in duplicates:
            duplicates.append(host.host)
        seen.add(host.host)

    for duplicate in duplicates:
        issues.append(
            _error("Host", f"Duplicate host alias: {duplicate}", "Each host alias must be unique")
        )

    for host in doc.hosts:
        result = validate_host(host)
        issues.extend(
            issue.model_copy(update={"message": f"[{host.host}] {issue.message}"})
            for issue in result.issues
        )

    return ValidationResult(issues=issues)
