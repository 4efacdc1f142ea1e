"""
Certificate and private key material given inline as PEM or as a file path.

Only the container format is checked here: PEM armour, base64 payload and
the outer DER SEQUENCE length. Deeper X.509 validation and chain building
belong to the TLS backend that consumes the material.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Type

from proxyconf.context import ConversionContext
from proxyconf.exceptions import (
    ConversionError,
    InvalidCertificateError,
    InvalidPrivateKeyError,
)
from proxyconf.node import DocNode

from .primitive import as_str

logger = logging.getLogger("proxyconf.value.tls")
logger.addHandler(logging.NullHandler())

__all__ = [
    "PemKind",
    "PemSource",
    "PemBlock",
    "Certificates",
    "PrivateKey",
    "parse_pem",
    "as_pem_certificates",
    "as_pem_private_key",
]

_PEM_MARKER = "-----BEGIN"
_PEM_RE = re.compile(r"-----BEGIN ([A-Z0-9 ]+)-----(.*?)-----END \1-----", re.DOTALL)

CERTIFICATE_LABELS = frozenset({"CERTIFICATE", "TRUSTED CERTIFICATE", "X509 CERTIFICATE"})
PRIVATE_KEY_LABELS = frozenset(
    {
        "PRIVATE KEY",
        "RSA PRIVATE KEY",
        "EC PRIVATE KEY",
        "DSA PRIVATE KEY",
        "ENCRYPTED PRIVATE KEY",
    }
)


class PemKind(str, Enum):
    INLINE = "inline"
    FILE = "file"


@dataclass(frozen=True)
class PemSource:
    kind: PemKind
    path: Optional[Path] = None
    text: str = field(default="", repr=False)

    def describe(self) -> str:
        return str(self.path) if self.kind is PemKind.FILE else "<inline>"


@dataclass(frozen=True)
class PemBlock:
    label: str
    der: bytes = field(repr=False)
    encrypted: bool = False


@dataclass(frozen=True)
class Certificates:
    source: PemSource
    der: Tuple[bytes, ...] = field(repr=False)

    def __len__(self) -> int:
        return len(self.der)


@dataclass(frozen=True)
class PrivateKey:
    source: PemSource
    label: str
    der: bytes = field(repr=False)
    encrypted: bool = False


def _der_sequence_ok(der: bytes) -> bool:
    if len(der) < 2 or der[0] != 0x30:
        return False
    first = der[1]
    if first < 0x80:
        return 2 + first == len(der)
    n = first & 0x7F
    if n == 0 or n > 4 or len(der) < 2 + n:
        return False
    length = int.from_bytes(der[2 : 2 + n], "big")
    return 2 + n + length == len(der)


def _decode_body(body: str) -> Tuple[bytes, bool]:
    lines = [line.strip() for line in body.strip().splitlines()]
    encrypted = False
    # RFC 1421 style headers (Proc-Type, DEK-Info) precede a blank line
    if lines and ":" in lines[0]:
        headers: List[str] = []
        while lines and lines[0]:
            headers.append(lines.pop(0))
        encrypted = any(h.startswith("Proc-Type:") and "ENCRYPTED" in h for h in headers)
    payload = "".join(lines)
    return base64.b64decode(payload, validate=True), encrypted


def parse_pem(text: str) -> List[PemBlock]:
    """Return every PEM block in ``text``; raises ValueError on a damaged block."""
    blocks: List[PemBlock] = []
    for m in _PEM_RE.finditer(text):
        label = m.group(1)
        try:
            der, encrypted = _decode_body(m.group(2))
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid base64 payload in {label} block") from e
        if not _der_sequence_ok(der):
            raise ValueError(f"malformed DER structure in {label} block")
        blocks.append(PemBlock(label, der, encrypted or label == "ENCRYPTED PRIVATE KEY"))
    if not blocks and _PEM_MARKER in text:
        raise ValueError("unterminated PEM block")
    return blocks


def _read_source(
    node: DocNode, ctx: ConversionContext, error: Type[ConversionError]
) -> PemSource:
    text = as_str(node, ctx)
    if _PEM_MARKER in text:
        return PemSource(PemKind.INLINE, None, text)
    if not text.strip():
        raise error("empty path", node.location)
    path = ctx.resolve_path(text.strip())
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise error(f"unable to read {path}: {e}", node.location) from e
    logger.debug("Read PEM material from %s", path)
    return PemSource(PemKind.FILE, path, content)


def as_pem_certificates(node: DocNode, ctx: ConversionContext) -> Certificates:
    source = _read_source(node, ctx, InvalidCertificateError)
    try:
        blocks = parse_pem(source.text)
    except ValueError as e:
        raise InvalidCertificateError(f"{source.describe()}: {e}", node.location) from e
    certs = tuple(b.der for b in blocks if b.label in CERTIFICATE_LABELS)
    if not certs:
        raise InvalidCertificateError(
            f"{source.describe()}: no certificate found", node.location
        )
    logger.debug("Loaded %d certificate(s) from %s", len(certs), source.describe())
    return Certificates(source, certs)


def as_pem_private_key(node: DocNode, ctx: ConversionContext) -> PrivateKey:
    source = _read_source(node, ctx, InvalidPrivateKeyError)
    try:
        blocks = parse_pem(source.text)
    except ValueError as e:
        raise InvalidPrivateKeyError(f"{source.describe()}: {e}", node.location) from e
    keys = [b for b in blocks if b.label in PRIVATE_KEY_LABELS]
    if not keys:
        raise InvalidPrivateKeyError(f"{source.describe()}: no private key found", node.location)
    if len(keys) > 1:
        raise InvalidPrivateKeyError(
            f"{source.describe()}: expected exactly one private key, found {len(keys)}",
            node.location,
        )
    key = keys[0]
    return PrivateKey(source, key.label, key.der, key.encrypted)
