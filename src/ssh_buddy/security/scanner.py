"""Security and health checks for SSH keys and known_hosts.

Every check returns findings as data. Nothing here raises for a finding, and
read failures on known_hosts are reported as an error issue instead.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, computed_field

from ssh_buddy.core import fileio
from ssh_buddy.core.base import IssueAction, IssueSeverity, ScanStatus, SecurityIssue
from ssh_buddy.core.errors import NotFoundError, SSHBuddyError
from ssh_buddy.core.paths import SHARED_DIR, get_known_hosts_path
from ssh_buddy.security.keys import SSHKeyInfo
from ssh_buddy.security.known_hosts import KnownHostEntry, parse_known_hosts
from ssh_buddy.security.permissions import format_mode, is_owner_only

logger = logging.getLogger(__name__)

RSA_MIN_BITS = 2048
RSA_RECOMMENDED_BITS = 3072

_ED25519_KEYGEN = "ssh-keygen -t ed25519 -C 'your_email@example.com'"


def _load_known_host_flags() -> tuple[frozenset[str], frozenset[str]]:
    with open(SHARED_DIR / "data" / "algorithms.yaml") as f:
        data = yaml.safe_load(f)["known_hosts"]
    return frozenset(data.get("warning", [])), frozenset(data.get("info", []))


WARN_HOST_KEY_TYPES, INFO_HOST_KEY_TYPES = _load_known_host_flags()


class KeyHealthResult(BaseModel):
    key: SSHKeyInfo
    issues: list[SecurityIssue] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_healthy(self) -> bool:
        return all(i.severity == IssueSeverity.INFO for i in self.issues)


class KnownHostsResult(BaseModel):
    entries: list[KnownHostEntry] = Field(default_factory=list)
    issues: list[SecurityIssue] = Field(default_factory=list)
    path: Path


class SecurityScanResult(BaseModel):
    key_health: list[KeyHealthResult] = Field(default_factory=list)
    known_hosts: KnownHostsResult
    overall_issues: list[SecurityIssue] = Field(default_factory=list)
    status: ScanStatus
    timestamp: datetime

    @property
    def all_issues(self) -> list[SecurityIssue]:
        issues = [issue for kh in self.key_health for issue in kh.issues]
        issues.extend(self.known_hosts.issues)
        return issues


# --- Key health --------------------------------------------------------------------


def _key_issues(key: SSHKeyInfo) -> list[SecurityIssue]:
    issues: list[SecurityIssue] = []
    name = key.name

    if not key.has_public_key:
        issues.append(
            SecurityIssue(
                id=f"key-no-pub-{name}",
                severity=IssueSeverity.WARNING,
                title="Missing Public Key",
                description=f'The private key "{name}" has no corresponding .pub file.',
                affected_item=name,
                suggestion=f"Regenerate it with: ssh-keygen -y -f ~/.ssh/{name} > ~/.ssh/{name}.pub",
                action=IssueAction(label="Learn how to fix", type="learn"),
            )
        )

    if key.type == "dsa":
        issues.append(
            SecurityIssue(
                id=f"key-insecure-{name}",
                severity=IssueSeverity.ERROR,
                title="Insecure Key Type",
                description=(
                    f'"{name}" uses DSA, which has been deprecated since OpenSSH 7.0 '
                    "and is limited to 1024 bits."
                ),
                affected_item=name,
                suggestion=f"Replace it with an Ed25519 key: {_ED25519_KEYGEN}",
                action=IssueAction(label="Generate new key", type="fix"),
            )
        )

    elif key.type == "rsa":
        bits = key.bit_size
        if bits is None:
            issues.append(
                SecurityIssue(
                    id=f"key-rsa-unknown-{name}",
                    severity=IssueSeverity.INFO,
                    title="RSA Key",
                    description=f'"{name}" uses RSA. Could not determine key size.',
                    affected_item=name,
                    suggestion="Consider Ed25519 for better security and performance.",
                )
            )
        elif bits < RSA_MIN_BITS:
            issues.append(
                SecurityIssue(
                    id=f"key-rsa-weak-{name}",
                    severity=IssueSeverity.ERROR,
                    title="Weak RSA Key",
                    description=(
                        f'"{name}" uses {bits}-bit RSA, which can be factored with modern hardware.'
                    ),
                    affected_item=name,
                    suggestion="Generate a key of at least 3072 bits, or preferably Ed25519.",
                    action=IssueAction(label="Generate new key", type="fix"),
                )
            )
        elif bits < RSA_RECOMMENDED_BITS:
            issues.append(
                SecurityIssue(
                    id=f"key-rsa-short-{name}",
                    severity=IssueSeverity.WARNING,
                    title="Short RSA Key",
                    description=f'"{name}" uses {bits}-bit RSA. NIST recommends at least 3072 bits.',
                    affected_item=name,
                    suggestion="Consider a 4096-bit RSA key or switching to Ed25519.",
                )
            )
        else:
            issues.append(
                SecurityIssue(
                    id=f"key-rsa-info-{name}",
                    severity=IssueSeverity.INFO,
                    title=f"RSA {bits}-bit",
                    description=f'"{name}" uses {bits}-bit RSA, which is secure.',
                    affected_item=name,
                    suggestion="Ed25519 offers similar security with better performance.",
                )
            )

    elif key.type == "unknown":
        issues.append(
            SecurityIssue(
                id=f"key-unknown-{name}",
                severity=IssueSeverity.INFO,
                title="Unknown Key Type",
                description=f'Could not determine the type of key "{name}".',
                affected_item=name,
            )
        )

    if key.mode is not None and not is_owner_only(key.mode):
        issues.append(
            SecurityIssue(
                id=f"key-permissions-{name}",
                severity=IssueSeverity.WARNING,
                title="Unsafe Key Permissions",
                description=(
                    f'"{name}" has permissions {format_mode(key.mode)}. ssh refuses private '
                    "keys that other users can read."
                ),
                affected_item=name,
                suggestion=f"Run: chmod 600 ~/.ssh/{name}",
                action=IssueAction(label="Fix permissions", type="fix"),
            )
        )

    return issues


def check_key_health(keys: Iterable[SSHKeyInfo]) -> list[KeyHealthResult]:
    """Grade each key by type, size, public-key presence and file mode."""
    return [KeyHealthResult(key=key, issues=_key_issues(key)) for key in keys]


# --- known_hosts -------------------------------------------------------------------


def analyze_known_hosts(entries: list[KnownHostEntry]) -> list[SecurityIssue]:
    """Flag weak host key algorithms per line and repeated (host, algorithm) pairs.

    The two passes are independent: a duplicated DSA line yields one duplicate
    warning and one algorithm warning per line. The same host with different
    algorithms is normal. Hashed entries can't be compared, so they are never
    reported as duplicates.
    """
    issues: list[SecurityIssue] = []

    for entry in entries:
        index = entry.line_number - 1
        host = entry.hosts[0]
        if entry.key_type in WARN_HOST_KEY_TYPES:
            issues.append(
                SecurityIssue(
                    id=f"known-host-dss-{index}",
                    severity=IssueSeverity.WARNING,
                    title="Weak Host Key",
                    description=f'Host "{host}" uses {entry.key_type}, which is deprecated.',
                    affected_item=host,
                    suggestion="The server should update its host key.",
                )
            )
        elif entry.key_type in INFO_HOST_KEY_TYPES:
            issues.append(
                SecurityIssue(
                    id=f"known-host-rsa-{index}",
                    severity=IssueSeverity.INFO,
                    title="Legacy RSA Host Key",
                    description=(
                        f'Host "{host}" uses {entry.key_type}. Modern servers use rsa-sha2 variants.'
                    ),
                    affected_item=host,
                )
            )

    counts: Counter[tuple[str, str]] = Counter()
    for entry in entries:
        if entry.is_hashed:
            continue
        for host in dict.fromkeys(entry.hosts):
            counts[(host, entry.key_type)] += 1

    for (host, key_type), count in counts.items():
        if count > 1:
            issues.append(
                SecurityIssue(
                    id=f"known-host-dup-{host}:{key_type}",
                    severity=IssueSeverity.WARNING,
                    title="Duplicate Host Entry",
                    description=f'"{host}" has {count} entries with the same key type ({key_type}).',
                    affected_item=host,
                    suggestion="Remove duplicate entries to avoid confusion.",
                    action=IssueAction(label="Clean up", type="fix"),
                )
            )

    return issues


async def check_known_hosts(path: Path | None = None) -> KnownHostsResult:
    """Read and analyse known_hosts. Missing or unreadable files become issues."""
    path = path or get_known_hosts_path()

    try:
        content = await fileio.read_text(path)
    except NotFoundError:
        return KnownHostsResult(
            path=path,
            issues=[
                SecurityIssue(
                    id="known-hosts-missing",
                    severity=IssueSeverity.INFO,
                    title="No Known Hosts",
                    description="The known_hosts file does not exist yet.",
                    suggestion="It will be created when you first connect to a server.",
                )
            ],
        )
    except SSHBuddyError as e:
        logger.warning("Cannot read known_hosts %s: %s", path, e)
        return KnownHostsResult(
            path=path,
            issues=[
                SecurityIssue(
                    id="known-hosts-error",
                    severity=IssueSeverity.ERROR,
                    title="Error Reading Known Hosts",
                    description=f"Failed to read known_hosts: {e}",
                )
            ],
        )

    entries = parse_known_hosts(content)
    logger.debug("Parsed %d known_hosts entries from %s", len(entries), path)
    return KnownHostsResult(entries=entries, issues=analyze_known_hosts(entries), path=path)


# --- Aggregate ---------------------------------------------------------------------


def compute_status(issues: Iterable[SecurityIssue]) -> ScanStatus:
    """error beats warning beats healthy."""
    severities = {issue.severity for issue in issues}
    if IssueSeverity.ERROR in severities:
        return ScanStatus.ERROR
    if IssueSeverity.WARNING in severities:
        return ScanStatus.WARNING
    return ScanStatus.HEALTHY


async def run_security_scan(
    keys: Iterable[SSHKeyInfo],
    known_hosts_path: Path | None = None,
) -> SecurityScanResult:
    """Run key health and known_hosts checks and summarise them."""
    key_health = check_key_health(keys)
    known_hosts = await check_known_hosts(known_hosts_path)

    findings = [issue for kh in key_health for issue in kh.issues]
    findings.extend(known_hosts.issues)
    status = compute_status(findings)

    error_count = sum(1 for i in findings if i.severity == IssueSeverity.ERROR)
    warning_count = sum(1 for i in findings if i.severity == IssueSeverity.WARNING)

    overall: list[SecurityIssue] = []
    if status != ScanStatus.HEALTHY:
        overall.append(
            SecurityIssue(
                id="scan-summary",
                severity=IssueSeverity(status.value),
                title="Security Issues Found",
                description=(
                    f"Found {error_count} errors and {warning_count} warnings "
                    "in your SSH setup."
                ),
                suggestion="Review the detailed findings below.",
            )
        )

    logger.info("Security scan finished: %s (%d findings)", status, len(findings))
    return SecurityScanResult(
        key_health=key_health,
        known_hosts=known_hosts,
        overall_issues=overall,
        status=status,
        timestamp=datetime.now(UTC),
    )


def get_scan_summary(result: SecurityScanResult) -> str:
    issues = result.all_issues
    error_count = sum(1 for i in issues if i.severity == IssueSeverity.ERROR)
    warning_count = sum(1 for i in issues if i.severity == IssueSeverity.WARNING)

    if error_count:
        return f"{error_count} security issue{'s' if error_count > 1 else ''} found"
    if warning_count:
        return f"{warning_count} warning{'s' if warning_count > 1 else ''} found"
    return "No issues found"
