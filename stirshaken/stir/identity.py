# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""SIP Identity header building and checking per RFC 8224.

The header value is the compact PASSporT followed by parameters::

    <token>;info=<https://cert.example.org/cert.pem>;alg=ES256;ppt=shaken

:func:`get_identity` builds a complete value from the five scalar call
fields; :func:`check_full_identity` takes such a value and verifies it,
retrieving the signer certificate when no local public key is given.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from cryptography.hazmat.primitives.asymmetric import ec

from stirshaken.stir.certs import get_certificate, load_certificate, verify_certificate
from stirshaken.stir.exceptions import RET_OK, CertificateError, IdentityHeaderError
from stirshaken.stir.keys import load_private_key, load_public_key
from stirshaken.stir.options import get_options
from stirshaken.stir.passport import (
    ALG_ES256,
    PPT_SHAKEN,
    TYP_PASSPORT,
    PassportHeader,
    PassportPayload,
    decode_with_public_key,
    encode,
    split_token,
)

logger = logging.getLogger(__name__)

__all__ = [
    "IdentityHeader",
    "build_identity_header",
    "check_full_identity",
    "get_identity",
    "parse_identity_header",
]


@dataclass(frozen=True)
class IdentityHeader:
    """Parsed SIP Identity header value.

    Attributes:
        token:   The compact PASSporT.
        info:    Certificate URI from the ``info`` parameter (brackets removed).
        alg:     ``alg`` parameter, empty when absent.
        ppt:     ``ppt`` parameter, empty when absent.
    """

    token: str
    info: str = ""
    alg: str = ""
    ppt: str = ""


def build_identity_header(token: str, x5u: str, alg: str = ALG_ES256, ppt: str = PPT_SHAKEN) -> str:
    return f"{token};info=<{x5u}>;alg={alg};ppt={ppt}"


def parse_identity_header(value: Optional[str]) -> IdentityHeader:
    """Split an Identity header value into token and parameters.

    Raises:
        IdentityHeaderError: If the value is empty or a parameter is malformed.
    """
    if not value or not value.strip():
        raise IdentityHeaderError.empty()

    token, *raw_params = value.strip().split(";")
    token = token.strip()
    if not token:
        raise IdentityHeaderError.malformed("missing token before parameters")

    params: Dict[str, str] = {}
    for raw in raw_params:
        raw = raw.strip()
        if not raw:
            continue
        name, sep, param_value = raw.partition("=")
        if not sep:
            raise IdentityHeaderError.malformed(f"parameter without value: {raw!r}")
        params[name.strip().lower()] = param_value.strip().strip('"')

    info = params.get("info", "")
    if info.startswith("<") and info.endswith(">"):
        info = info[1:-1].strip()

    return IdentityHeader(
        token=token,
        info=info,
        alg=params.get("alg", ""),
        ppt=params.get("ppt", ""),
    )


def get_identity(
    orig_tn: str,
    dest_tn: str,
    attest: str,
    orig_id: str,
    x5u: str,
    private_key_path: str,
    now: Optional[int] = None,
) -> str:
    """Build and sign a complete Identity header value from scalar fields.

    An empty *orig_id* is replaced with a fresh UUID; an empty *x5u* falls
    back to the engine's default certificate URI.
    """
    private_key = load_private_key(private_key_path)

    if not x5u:
        x5u = get_options().x5u
    if not orig_id:
        orig_id = str(uuid.uuid4())
    if now is None:
        now = int(time.time())

    header = PassportHeader(alg=ALG_ES256, ppt=PPT_SHAKEN, typ=TYP_PASSPORT, x5u=x5u)
    payload = PassportPayload(
        attest=attest,
        dest_tn=[dest_tn],
        iat=now,
        orig_tn=orig_tn,
        orig_id=orig_id,
    )
    token = encode(header, payload, private_key)
    logger.debug("Built identity for orig=%s dest=%s attest=%s", orig_tn, dest_tn, attest)
    return build_identity_header(token, x5u)


async def _certificate_key(url: str, timeout: float) -> ec.EllipticCurvePublicKey:
    cert = load_certificate(await get_certificate(url, timeout))
    await asyncio.to_thread(verify_certificate, cert)
    key = cert.public_key()
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(key.curve, ec.SECP256R1):
        raise CertificateError.not_ec()
    return key


async def check_full_identity(
    identity: str,
    expire: int,
    public_key_path: str,
    timeout: float,
) -> int:
    """Verify a complete Identity header value.

    Parameters:
        identity:         Header value (token plus optional parameters).
        expire:           Maximum token age in seconds; ``0`` disables the check.
        public_key_path:  Local public key or certificate PEM. When empty the
                          certificate is retrieved from the ``info`` URI, or
                          the token's ``x5u`` if ``info`` is absent.
        timeout:          Certificate fetch timeout in seconds.

    Returns:
        ``0`` on success.

    Raises:
        STIRError: Subclass carrying the engine return code on any failure.
    """
    parsed = parse_identity_header(identity)

    if parsed.alg and parsed.alg != ALG_ES256:
        raise IdentityHeaderError.bad_alg(parsed.alg)

    header, _, _, _ = split_token(parsed.token)
    if parsed.ppt and parsed.ppt != header.get("ppt"):
        raise IdentityHeaderError.bad_ppt(parsed.ppt)

    if public_key_path:
        public_key = await asyncio.to_thread(load_public_key, public_key_path)
    else:
        url = parsed.info or header.get("x5u") or ""
        if not isinstance(url, str) or not url:
            raise IdentityHeaderError.no_info()
        public_key = await _certificate_key(url, timeout)

    await asyncio.to_thread(decode_with_public_key, parsed.token, expire, public_key)
    return RET_OK
