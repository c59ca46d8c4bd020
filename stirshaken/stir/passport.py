# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""SHAKEN PASSporT encoding and decoding (RFC 8225 / RFC 8588).

Produces and consumes compact-serialised JWS tokens signed with ES256.
The header and payload records mirror the JSON wire objects field for
field::

    header:  {"alg": "ES256", "ppt": "shaken", "typ": "passport", "x5u": "..."}
    payload: {"attest": "A", "dest": {"tn": ["..."]}, "iat": 0,
              "orig": {"tn": "..."}, "origid": "..."}

Two signing shapes exist: :func:`encode` serialises typed records, while
:func:`encode_text` signs caller-provided JSON text byte-for-byte.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from stirshaken.stir.exceptions import PassportError, SignatureError
from stirshaken.stir.keys import load_private_key

ALG_ES256 = "ES256"
PPT_SHAKEN = "shaken"
TYP_PASSPORT = "passport"

# ES256 signatures are the raw 32-byte r and s values concatenated.
_ES256_COORD_SIZE = 32


@dataclass(frozen=True)
class PassportHeader:
    """JOSE header of a SHAKEN PASSporT.

    Attributes:
        alg:  Signature algorithm (``"ES256"``).
        ppt:  PASSporT extension (``"shaken"``).
        typ:  Token type (``"passport"``).
        x5u:  URI of the certificate holding the verification key.
    """

    alg: str = ALG_ES256
    ppt: str = PPT_SHAKEN
    typ: str = TYP_PASSPORT
    x5u: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"alg": self.alg, "ppt": self.ppt, "typ": self.typ, "x5u": self.x5u}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PassportHeader":
        """Build a header from a decoded JSON object.

        Absent fields take the empty string; present fields must be strings.
        """
        if not isinstance(data, dict):
            raise TypeError(f"header must be a JSON object, got {type(data).__name__}")
        return cls(
            alg=_optional_str(data, "alg"),
            ppt=_optional_str(data, "ppt"),
            typ=_optional_str(data, "typ"),
            x5u=_optional_str(data, "x5u"),
        )


@dataclass(frozen=True)
class PassportPayload:
    """Claims of a SHAKEN PASSporT.

    Attributes:
        attest:   Attestation level (``A``, ``B`` or ``C``).
        dest_tn:  Destination telephone numbers.
        iat:      Issued-at timestamp (UNIX epoch seconds).
        orig_tn:  Originating telephone number.
        orig_id:  Origination identifier (conventionally a UUID).
    """

    attest: str = ""
    dest_tn: List[str] = field(default_factory=list)
    iat: int = 0
    orig_tn: str = ""
    orig_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attest": self.attest,
            "dest": {"tn": list(self.dest_tn)},
            "iat": self.iat,
            "orig": {"tn": self.orig_tn},
            "origid": self.orig_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PassportPayload":
        """Build a payload from a decoded JSON object.

        Absent fields take their zero value; present fields must have the
        wire type (string, integer, ``{"tn": [...]}`` / ``{"tn": "..."}``).
        """
        if not isinstance(data, dict):
            raise TypeError(f"payload must be a JSON object, got {type(data).__name__}")

        dest_tn: List[str] = []
        dest = data.get("dest")
        if dest is not None:
            if not isinstance(dest, dict):
                raise TypeError("'dest' must be a JSON object")
            tns = dest.get("tn")
            if tns is not None:
                if not isinstance(tns, list) or not all(isinstance(tn, str) for tn in tns):
                    raise TypeError("'dest.tn' must be an array of strings")
                dest_tn = list(tns)

        orig_tn = ""
        orig = data.get("orig")
        if orig is not None:
            if not isinstance(orig, dict):
                raise TypeError("'orig' must be a JSON object")
            orig_tn = _optional_str(orig, "tn", label="orig.tn")

        iat = data.get("iat", 0)
        if iat is None:
            iat = 0
        if (
            isinstance(iat, bool)
            or not isinstance(iat, (int, float))
            or (isinstance(iat, float) and not math.isfinite(iat))
            or iat != int(iat)
        ):
            raise TypeError(f"'iat' must be an integer, got {iat!r}")

        return cls(
            attest=_optional_str(data, "attest"),
            dest_tn=dest_tn,
            iat=int(iat),
            orig_tn=orig_tn,
            orig_id=_optional_str(data, "origid"),
        )


def _optional_str(data: Dict[str, Any], key: str, label: Optional[str] = None) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"'{label or key}' must be a string, got {type(value).__name__}")
    return value


# ---------------------------------------------------------------------------
# base64url / JSON helpers
# ---------------------------------------------------------------------------

def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _compact_json(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _decode_segment(segment: str, label: str) -> Dict[str, Any]:
    try:
        obj = json.loads(_b64url_decode(segment))
    except (binascii.Error, ValueError, UnicodeError) as exc:
        if label == "header":
            raise PassportError.header_parse(str(exc)) from exc
        raise PassportError.payload_parse(str(exc)) from exc
    if not isinstance(obj, dict):
        reason = f"expected JSON object, got {type(obj).__name__}"
        if label == "header":
            raise PassportError.header_parse(reason)
        raise PassportError.payload_parse(reason)
    return obj


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------

def _sign(signing_input: bytes, private_key: ec.EllipticCurvePrivateKey) -> str:
    try:
        der = private_key.sign(signing_input, ec.ECDSA(hashes.SHA256()))
    except Exception as exc:
        raise SignatureError.failure(str(exc)) from exc
    r, s = decode_dss_signature(der)
    raw = r.to_bytes(_ES256_COORD_SIZE, "big") + s.to_bytes(_ES256_COORD_SIZE, "big")
    return _b64url_encode(raw)


def encode(
    header: PassportHeader,
    payload: PassportPayload,
    private_key: ec.EllipticCurvePrivateKey,
) -> str:
    """Sign typed header and payload records, returning the compact token."""
    signing_input = (
        _b64url_encode(_compact_json(header.to_dict()))
        + "."
        + _b64url_encode(_compact_json(payload.to_dict()))
    )
    return f"{signing_input}.{_sign(signing_input.encode('ascii'), private_key)}"


def encode_text(header_json: str, payload_json: str, private_key_path: str) -> str:
    """Sign JSON text exactly as given, returning the compact token.

    The texts are not parsed or re-serialised; what the caller supplied is
    what gets signed.
    """
    private_key = load_private_key(private_key_path)
    signing_input = (
        _b64url_encode(header_json.encode("utf-8"))
        + "."
        + _b64url_encode(payload_json.encode("utf-8"))
    )
    return f"{signing_input}.{_sign(signing_input.encode('ascii'), private_key)}"


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def split_token(token: str) -> Tuple[Dict[str, Any], Dict[str, Any], bytes, bytes]:
    """Split a compact token into ``(header, payload, signature, signing_input)``.

    Raises:
        PassportError: If the token is structurally invalid.
        SignatureError: If the signature segment is not base64url.
    """
    parts = token.strip().split(".")
    if len(parts) != 3:
        raise PassportError.malformed(f"token must have 3 dot-separated parts, got {len(parts)}")

    raw_header, raw_payload, raw_signature = parts
    header = _decode_segment(raw_header, "header")
    payload = _decode_segment(raw_payload, "payload")
    try:
        signature = _b64url_decode(raw_signature)
    except (binascii.Error, ValueError) as exc:
        raise SignatureError.not_base64(str(exc)) from exc

    return header, payload, signature, f"{raw_header}.{raw_payload}".encode("ascii")


def verify_signature(
    signature: bytes,
    signing_input: bytes,
    public_key: ec.EllipticCurvePublicKey,
) -> None:
    if len(signature) != 2 * _ES256_COORD_SIZE:
        raise SignatureError.bad_size(len(signature))
    r = int.from_bytes(signature[:_ES256_COORD_SIZE], "big")
    s = int.from_bytes(signature[_ES256_COORD_SIZE:], "big")
    try:
        public_key.verify(encode_dss_signature(r, s), signing_input, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature as exc:
        raise SignatureError.invalid() from exc


def decode_with_public_key(
    token: str,
    expire: int,
    public_key: ec.EllipticCurvePublicKey,
    now: Optional[int] = None,
) -> PassportPayload:
    """Verify *token* with *public_key* and return its payload.

    When *expire* is positive the token is rejected once
    ``iat + expire`` lies in the past.
    """
    header, payload, signature, signing_input = split_token(token)

    alg = header.get("alg")
    if alg != ALG_ES256:
        raise PassportError.bad_alg(alg)

    verify_signature(signature, signing_input, public_key)

    try:
        record = PassportPayload.from_dict(payload)
    except TypeError as exc:
        raise PassportError.payload_parse(str(exc)) from exc

    if expire > 0:
        if now is None:
            now = int(time.time())
        if record.iat + expire < now:
            raise PassportError.expired(record.iat, expire, now)

    return record
