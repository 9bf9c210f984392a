"""Key inventory: discover SSH key pairs and read their type and size."""

from __future__ import annotations

import asyncio
import base64
import binascii
import contextlib
import logging
import stat
import struct
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

KeyType = Literal["rsa", "ed25519", "ecdsa", "dsa", "unknown"]

_OPENSSH_MAGIC = b"openssh-key-v1\x00"

_ECDSA_CURVE_BITS = {"nistp256": 256, "nistp384": 384, "nistp521": 521}

# Files in ~/.ssh that are never private keys even if named oddly
_NOT_KEYS = {"config", "known_hosts", "known_hosts.old", "authorized_keys", "authorized_keys2"}


class SSHKeyInfo(BaseModel):
    """A private key found in the SSH directory."""

    name: str
    type: KeyType
    bit_size: int | None = None
    has_public_key: bool
    private_key_path: Path
    public_key_path: Path | None = None
    comment: str | None = None
    mode: int | None = None  # permission bits of the private key file


def _key_type_for_algorithm(algorithm: str) -> KeyType:
    if algorithm == "ssh-rsa" or algorithm.startswith("rsa-sha2"):
        return "rsa"
    if algorithm in ("ssh-ed25519", "sk-ssh-ed25519@openssh.com"):
        return "ed25519"
    if algorithm.startswith(("ecdsa-sha2-", "sk-ecdsa-sha2-")):
        return "ecdsa"
    if algorithm == "ssh-dss":
        return "dsa"
    return "unknown"


def _read_string(blob: bytes, offset: int) -> tuple[bytes, int]:
    (length,) = struct.unpack(">I", blob[offset : offset + 4])
    start = offset + 4
    end = start + length
    if end > len(blob):
        raise ValueError("truncated key blob")
    return blob[start:end], end


def key_info_from_blob(blob: bytes) -> tuple[KeyType, int | None]:
    """Read the key type and bit size from an SSH wire-format public key blob."""
    try:
        algorithm_raw, offset = _read_string(blob, 0)
        algorithm = algorithm_raw.decode("ascii")
        key_type = _key_type_for_algorithm(algorithm)

        if key_type == "rsa":
            _exponent, offset = _read_string(blob, offset)
            modulus, _ = _read_string(blob, offset)
            return key_type, int.from_bytes(modulus, "big").bit_length()
        if key_type == "dsa":
            prime, _ = _read_string(blob, offset)
            return key_type, int.from_bytes(prime, "big").bit_length()
        if key_type == "ecdsa":
            curve, _ = _read_string(blob, offset)
            return key_type, _ECDSA_CURVE_BITS.get(curve.decode("ascii"))
        if key_type == "ed25519":
            return key_type, 256
    except (ValueError, struct.error, UnicodeDecodeError):
        return "unknown", None
    return key_type, None


def parse_public_key_line(line: str) -> tuple[KeyType, int | None, str | None]:
    """Parse ``<algorithm> <base64> [comment]`` from a .pub file."""
    parts = line.strip().split(None, 2)
    if len(parts) < 2:
        return "unknown", None, None

    comment = parts[2] if len(parts) > 2 else None
    try:
        blob = base64.b64decode(parts[1], validate=True)
    except (binascii.Error, ValueError):
        return _key_type_for_algorithm(parts[0]), None, comment

    key_type, bits = key_info_from_blob(blob)
    if key_type == "unknown":
        key_type = _key_type_for_algorithm(parts[0])
    return key_type, bits, comment


def _public_blob_from_private(content: str) -> bytes | None:
    """Extract the (always unencrypted) public key from a new-format OpenSSH private key."""
    b64_data = ""
    in_key = False
    for line in content.strip().splitlines():
        if "BEGIN OPENSSH PRIVATE KEY" in line:
            in_key = True
            continue
        if "END OPENSSH PRIVATE KEY" in line:
            break
        if in_key:
            b64_data += line.strip()

    try:
        raw = base64.b64decode(b64_data)
        if not raw.startswith(_OPENSSH_MAGIC):
            return None
        offset = len(_OPENSSH_MAGIC)
        _cipher, offset = _read_string(raw, offset)
        _kdf, offset = _read_string(raw, offset)
        _kdf_options, offset = _read_string(raw, offset)
        (key_count,) = struct.unpack(">I", raw[offset : offset + 4])
        if key_count < 1:
            return None
        public_blob, _ = _read_string(raw, offset + 4)
        return public_blob
    except (binascii.Error, ValueError, struct.error):
        return None


def _detect_from_private(private_key_path: Path) -> tuple[KeyType, int | None]:
    """Detect the key type from the private key file when no .pub file exists."""
    try:
        content = private_key_path.read_text(encoding="utf-8", errors="replace")
    except (PermissionError, OSError):
        return "unknown", None

    first_line = content.strip().splitlines()[0] if content.strip() else ""

    if "BEGIN DSA PRIVATE KEY" in first_line:
        return "dsa", None
    if "BEGIN RSA PRIVATE KEY" in first_line:
        return "rsa", None
    if "BEGIN EC PRIVATE KEY" in first_line:
        return "ecdsa", None
    if "BEGIN OPENSSH PRIVATE KEY" in first_line:
        blob = _public_blob_from_private(content)
        if blob is not None:
            return key_info_from_blob(blob)

    return "unknown", None


def _looks_like_private_key(path: Path) -> bool:
    """Check if a file looks like an SSH private key based on its content."""
    try:
        with path.open(encoding="utf-8", errors="replace") as f:
            first_line = f.readline().strip()
        return "BEGIN" in first_line and "PRIVATE KEY" in first_line
    except (PermissionError, OSError):
        return False


def inspect_key(private_key_path: Path) -> SSHKeyInfo:
    """Build the inventory record for one private key file."""
    pub_path = private_key_path.with_name(private_key_path.name + ".pub")
    key_type: KeyType = "unknown"
    bits: int | None = None
    comment: str | None = None
    has_public_key = pub_path.exists()

    if has_public_key:
        with contextlib.suppress(PermissionError, OSError):
            key_type, bits, comment = parse_public_key_line(
                pub_path.read_text(encoding="utf-8", errors="replace")
            )

    if key_type == "unknown" or bits is None:
        private_type, private_bits = _detect_from_private(private_key_path)
        if key_type == "unknown":
            key_type = private_type
        if bits is None and private_type == key_type:
            bits = private_bits

    mode: int | None = None
    with contextlib.suppress(OSError):
        mode = stat.S_IMODE(private_key_path.stat().st_mode)

    return SSHKeyInfo(
        name=private_key_path.name,
        type=key_type,
        bit_size=bits,
        has_public_key=has_public_key,
        private_key_path=private_key_path,
        public_key_path=pub_path if has_public_key else None,
        comment=comment,
        mode=mode,
    )


def _scan(ssh_dir: Path) -> list[SSHKeyInfo]:
    if not ssh_dir.is_dir():
        logger.info("SSH directory %s does not exist", ssh_dir)
        return []

    keys: list[SSHKeyInfo] = []
    try:
        entries = sorted(ssh_dir.iterdir())
    except PermissionError:
        logger.warning("Permission denied listing %s", ssh_dir)
        return []

    for entry in entries:
        if (
            entry.is_file()
            and not entry.name.endswith(".pub")
            and entry.name not in _NOT_KEYS
            and (entry.name.startswith("id_") or _looks_like_private_key(entry))
        ):
            keys.append(inspect_key(entry))

    logger.debug("Found %d private keys in %s", len(keys), ssh_dir)
    return keys


async def discover_keys(ssh_dir: Path) -> list[SSHKeyInfo]:
    """List the private keys in ``ssh_dir`` sorted by file name."""
    return await asyncio.to_thread(_scan, Path(ssh_dir))
