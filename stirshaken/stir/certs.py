# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Certificate retrieval, on-disk caching and trust verification.

The certificate named by a PASSporT's ``x5u`` (or the Identity header's
``info`` parameter) is fetched over HTTP(S), or read locally for
``file://`` URIs, and optionally kept in a cache directory so repeated
checks against the same signer skip the network.

Cache entries are plain PEM files named after their URL. An entry is
fresh while its modification time plus the configured expiry lies in
the future. Writes go to a temporary file first and are moved into place
with :func:`os.replace`, so concurrent readers only ever observe whole
files.

Verification is controlled by the ``cert_verify`` bitmask of
:class:`~stirshaken.stir.options.EngineOptions`:

* ``1``: validity period (``notBefore`` / ``notAfter``).
* ``2``: chain to the system roots (the ``certifi`` bundle).
* ``4``: chain to the roots in ``ca_file``.
* ``8``: use the intermediates in ``ca_inter`` while building the chain.
* ``16``: reject certificates listed in ``crl_file``.
"""

from __future__ import annotations

import asyncio
import datetime
import functools
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

import certifi
import httpx
from cryptography import x509
from cryptography.exceptions import InvalidSignature

from stirshaken.stir.exceptions import CertificateError, FetchError, STIRError
from stirshaken.stir.options import (
    CERT_VERIFY_CA_FILE,
    CERT_VERIFY_CA_INTER,
    CERT_VERIFY_CRL,
    CERT_VERIFY_SYSTEM_CA,
    CERT_VERIFY_TIME,
    EngineOptions,
    get_options,
)

logger = logging.getLogger(__name__)

__all__ = [
    "cache_path",
    "fetch_certificate",
    "get_certificate",
    "load_certificate",
    "read_cached",
    "verify_certificate",
    "write_cached",
]

# Longest issuer chain walked before giving up.
_MAX_CHAIN_DEPTH = 8

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


# ======================================================================
# Fetching
# ======================================================================


def _build_client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)


async def fetch_certificate(url: str, timeout: float) -> bytes:
    """Retrieve the certificate at *url*.

    Parameters
    ----------
    url : str
        ``http://``, ``https://`` or ``file://`` URI.
    timeout : float
        Network timeout in seconds.

    Raises
    ------
    FetchError
        On an unsupported URI, network failure, non-2xx status or empty body.
    STIRError
        With the file-read code when a ``file://`` URI cannot be read.
    """
    parsed = urlparse(url)

    if parsed.scheme == "file":
        path = unquote(parsed.path)
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise STIRError.file_read(path, exc.strerror or str(exc)) from exc

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise FetchError.invalid_url(url)

    logger.debug("Fetching certificate from %s (timeout=%ss)", url, timeout)

    try:
        async with _build_client(timeout) as client:
            response = await client.get(url)
    except httpx.TimeoutException as exc:
        raise FetchError.get_failed(url, f"timed out after {timeout}s") from exc
    except httpx.HTTPError as exc:
        raise FetchError.get_failed(url, str(exc)) from exc

    if response.status_code < 200 or response.status_code >= 300:
        raise FetchError.bad_status(url, response.status_code)

    body = response.content
    if not body:
        raise FetchError.empty_body(url)
    return body


# ======================================================================
# On-disk cache
# ======================================================================


def cache_path(cache_dir: str, url: str) -> Path:
    """Return the cache file for *url* (scheme dropped, path separators flattened)."""
    parsed = urlparse(url)
    name = f"{parsed.netloc}{parsed.path}"
    if parsed.query:
        name = f"{name}?{parsed.query}"
    return Path(cache_dir) / _UNSAFE_NAME_CHARS.sub("_", name.replace("/", "_"))


def read_cached(cache_dir: str, url: str, expire: int, now: Optional[float] = None) -> Optional[bytes]:
    """Return the cached certificate for *url*, or ``None`` if absent or stale."""
    path = cache_path(cache_dir, url)
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Cannot stat cached certificate %s: %s", path, exc)
        return None

    if now is None:
        now = time.time()
    if mtime + expire <= now:
        logger.debug("Cached certificate %s expired", path)
        return None

    try:
        return path.read_bytes()
    except OSError as exc:
        logger.warning("Cannot read cached certificate %s: %s", path, exc)
        return None


def write_cached(cache_dir: str, url: str, data: bytes) -> Path:
    """Atomically store *data* as the cached certificate for *url*."""
    path = cache_path(cache_dir, url)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".cert-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
    return path


async def get_certificate(
    url: str,
    timeout: float,
    options: Optional[EngineOptions] = None,
) -> bytes:
    """Return the certificate PEM for *url*, going through the cache when enabled."""
    opts = options or get_options()

    if opts.cache_dir:
        cached = await asyncio.to_thread(read_cached, opts.cache_dir, url, opts.cache_expire)
        if cached is not None:
            logger.debug("Certificate cache hit for %s", url)
            return cached

    data = await fetch_certificate(url, timeout)

    if opts.cache_dir:
        try:
            await asyncio.to_thread(write_cached, opts.cache_dir, url, data)
        except OSError as exc:
            # Cache write failures leave the check result unchanged.
            logger.warning("Cannot cache certificate for %s: %s", url, exc)

    return data


# ======================================================================
# Parsing and verification
# ======================================================================


def load_certificate(data: bytes) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(data)
    except ValueError as exc:
        raise CertificateError.invalid_format(str(exc)) from exc


def _load_bundle(path: str, missing: CertificateError, unreadable) -> List[x509.Certificate]:
    if not path:
        raise missing
    try:
        return x509.load_pem_x509_certificates(Path(path).read_bytes())
    except (OSError, ValueError) as exc:
        raise unreadable(path, str(exc)) from exc


@functools.lru_cache(maxsize=None)
def _system_roots(bundle: str) -> Tuple[x509.Certificate, ...]:
    return tuple(x509.load_pem_x509_certificates(Path(bundle).read_bytes()))


def _load_crl(path: str) -> x509.CertificateRevocationList:
    if not path:
        raise CertificateError.no_crl_file()
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise CertificateError.read_crl_file(path, exc.strerror or str(exc)) from exc
    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_crl(data)
        return x509.load_der_x509_crl(data)
    except ValueError as exc:
        raise CertificateError.read_crl_file(path, str(exc)) from exc


def _issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    if cert.issuer != issuer.subject:
        return False
    try:
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _verify_chain(
    cert: x509.Certificate,
    roots: List[x509.Certificate],
    intermediates: List[x509.Certificate],
) -> None:
    current = cert
    for _ in range(_MAX_CHAIN_DEPTH):
        if any(_issued_by(current, root) for root in roots):
            return
        if any(current == root for root in roots):
            return
        parent = next((c for c in intermediates if c != current and _issued_by(current, c)), None)
        if parent is None:
            raise CertificateError.untrusted(
                f"no trusted issuer found for {current.subject.rfc4514_string()}"
            )
        current = parent
    raise CertificateError.untrusted("issuer chain too long")


def verify_certificate(
    cert: x509.Certificate,
    options: Optional[EngineOptions] = None,
    now: Optional[datetime.datetime] = None,
) -> None:
    """Apply the checks selected by ``options.cert_verify`` to *cert*.

    Raises
    ------
    CertificateError
        On the first failed check, or when a selected check needs a file
        that is not configured or cannot be loaded.
    """
    opts = options or get_options()
    mode = opts.cert_verify
    if mode <= 0:
        return

    if mode & CERT_VERIFY_TIME:
        if now is None:
            now = datetime.datetime.now(datetime.timezone.utc)
        if now < cert.not_valid_before_utc:
            raise CertificateError.not_yet_valid(cert.not_valid_before_utc.isoformat())
        if now > cert.not_valid_after_utc:
            raise CertificateError.expired(cert.not_valid_after_utc.isoformat())

    if mode & (CERT_VERIFY_SYSTEM_CA | CERT_VERIFY_CA_FILE):
        roots: List[x509.Certificate] = []
        if mode & CERT_VERIFY_SYSTEM_CA:
            roots.extend(_system_roots(certifi.where()))
        if mode & CERT_VERIFY_CA_FILE:
            roots.extend(
                _load_bundle(opts.ca_file, CertificateError.no_ca_file(), CertificateError.read_ca_file)
            )
        intermediates: List[x509.Certificate] = []
        if mode & CERT_VERIFY_CA_INTER:
            intermediates = _load_bundle(
                opts.ca_inter, CertificateError.no_ca_inter(), CertificateError.read_ca_inter
            )
        _verify_chain(cert, roots, intermediates)

    if mode & CERT_VERIFY_CRL:
        crl = _load_crl(opts.crl_file)
        if crl.get_revoked_certificate_by_serial_number(cert.serial_number) is not None:
            raise CertificateError.revoked(cert.serial_number)
