# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""EC P-256 key loading from PEM data or files.

Public keys may be given either as a ``PUBLIC KEY`` block or as an X.509
``CERTIFICATE``; the certificate's subject key is used in that case.
"""

from __future__ import annotations

from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    load_pem_private_key,
    load_pem_public_key,
)

from stirshaken.stir.exceptions import KeyParseError, STIRError

__all__ = [
    "load_private_key",
    "load_public_key",
    "parse_private_key_pem",
    "parse_public_key_pem",
    "read_file",
]


def read_file(path: str) -> bytes:
    """Read *path* fully, raising :class:`STIRError` with the file-read code."""
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise STIRError.file_read(path, exc.strerror or str(exc)) from exc


def _require_p256(key: object) -> bool:
    return isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)) and isinstance(
        key.curve, ec.SECP256R1
    )


def parse_private_key_pem(data: bytes) -> ec.EllipticCurvePrivateKey:
    """Parse an unencrypted SEC1 or PKCS#8 EC P-256 private key."""
    try:
        key = load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as exc:
        raise KeyParseError.private_format(str(exc)) from exc
    if not _require_p256(key):
        raise KeyParseError.private_not_ec()
    return key


def parse_public_key_pem(data: bytes) -> ec.EllipticCurvePublicKey:
    """Parse an EC P-256 public key from a ``PUBLIC KEY`` or ``CERTIFICATE`` PEM."""
    try:
        if b"-----BEGIN CERTIFICATE-----" in data:
            key = x509.load_pem_x509_certificate(data).public_key()
        else:
            key = load_pem_public_key(data)
    except (ValueError, TypeError) as exc:
        raise KeyParseError.public_format(str(exc)) from exc
    if not _require_p256(key):
        raise KeyParseError.public_not_ec()
    return key


def load_private_key(path: str) -> ec.EllipticCurvePrivateKey:
    return parse_private_key_pem(read_file(path))


def load_public_key(path: str) -> ec.EllipticCurvePublicKey:
    return parse_public_key_pem(read_file(path))
