# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared test fixtures for the stirshaken test suite.

Provides freshly generated EC P-256 key pairs written to PEM files,
X.509 certificate factories for trust-chain tests, and a ``Config``
factory. Engine options and root logging are reset around every test.
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import Callable, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from stirshaken.config import Config
from stirshaken.stir.options import reset_options


# =========================================================================
# Global state
# =========================================================================

@pytest.fixture(autouse=True)
def _reset_engine_options():
    reset_options()
    yield
    reset_options()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo handler changes made by ``configure_logging`` during a test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# =========================================================================
# EC P-256 keys
# =========================================================================

@pytest.fixture
def ec_keypair() -> Tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """Generate a fresh EC P-256 key pair."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


@pytest.fixture
def key_files(tmp_path: Path, ec_keypair) -> Tuple[str, str]:
    """Write the key pair as PEM files.

    Returns:
        Tuple of (private_key_path, public_key_path).
    """
    private_key, public_key = ec_keypair
    prv = tmp_path / "prv.pem"
    pub = tmp_path / "pub.pem"
    prv.write_bytes(
        private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    pub.write_bytes(
        public_key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return str(prv), str(pub)


# =========================================================================
# X.509 certificates
# =========================================================================

@pytest.fixture
def make_cert() -> Callable[..., x509.Certificate]:
    """Factory fixture: build a certificate for an EC public key.

    Keyword arguments:
        subject_key:   Private key whose public half is certified.
        issuer_key:    Signing key (defaults to *subject_key*: self-signed).
        issuer_cert:   Issuer certificate; its subject becomes the issuer name.
        common_name:   Subject CN.
        not_before / not_after:  Validity window (defaults: now-1d .. now+30d).
        serial:        Serial number.
        ca:            Mark as a CA certificate.
    """

    def _make(
        subject_key: ec.EllipticCurvePrivateKey,
        issuer_key: Optional[ec.EllipticCurvePrivateKey] = None,
        issuer_cert: Optional[x509.Certificate] = None,
        common_name: str = "SHAKEN test",
        not_before: Optional[datetime.datetime] = None,
        not_after: Optional[datetime.datetime] = None,
        serial: Optional[int] = None,
        ca: bool = False,
    ) -> x509.Certificate:
        now = datetime.datetime.now(datetime.timezone.utc)
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        issuer = issuer_cert.subject if issuer_cert is not None else subject
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(subject_key.public_key())
            .serial_number(serial if serial is not None else x509.random_serial_number())
            .not_valid_before(not_before or now - datetime.timedelta(days=1))
            .not_valid_after(not_after or now + datetime.timedelta(days=30))
            .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        )
        return builder.sign(issuer_key or subject_key, hashes.SHA256())

    return _make


@pytest.fixture
def write_pem(tmp_path: Path) -> Callable[..., str]:
    """Factory fixture: write certificates to one PEM file, returning its path."""

    def _write(name: str, *certs: x509.Certificate) -> str:
        path = tmp_path / name
        path.write_bytes(b"".join(c.public_bytes(serialization.Encoding.PEM) for c in certs))
        return str(path)

    return _write


# =========================================================================
# Configuration
# =========================================================================

@pytest.fixture
def make_config() -> Callable[..., Config]:
    """Factory fixture: build a ``Config`` with keyword overrides."""

    def _make(**overrides) -> Config:
        return Config(**overrides)

    return _make
