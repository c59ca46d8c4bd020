# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the SHAKEN PASSporT encoder/decoder (stirshaken.stir.passport).

Covers record encoding, verbatim text encoding, interoperability with
PyJWT's ES256 implementation, structural errors, signature failures,
expiry handling and the typed record conversions.
"""

from __future__ import annotations

import base64
import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from stirshaken.stir.exceptions import (
    RET_ERR_JSON_HDR_ALG,
    RET_ERR_JSON_HDR_PARSE,
    RET_ERR_JSON_PAYLOAD_IAT_EXPIRED,
    RET_ERR_JSON_PAYLOAD_PARSE,
    RET_ERR_SIGNATURE_INVALID,
    RET_ERR_SIGNATURE_SIZE,
    PassportError,
    SignatureError,
)
from stirshaken.stir.passport import (
    PassportHeader,
    PassportPayload,
    decode_with_public_key,
    encode,
    encode_text,
    split_token,
)


HEADER = PassportHeader(
    alg="ES256",
    ppt="shaken",
    typ="passport",
    x5u="https://certs.example.org/cert.pem",
)


def _payload(iat: int = None) -> PassportPayload:
    return PassportPayload(
        attest="A",
        dest_tn=["493044444444"],
        iat=int(time.time()) if iat is None else iat,
        orig_tn="493055555555",
        orig_id="32c7e392-33fc-11ea-840b-784f435c76a8",
    )


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


class TestEncode:
    """Signing typed records."""

    def test_round_trip(self, ec_keypair):
        private_key, public_key = ec_keypair
        payload = _payload()
        token = encode(HEADER, payload, private_key)

        assert token.count(".") == 2
        assert decode_with_public_key(token, 0, public_key) == payload

    def test_wire_format(self, ec_keypair):
        """Claims use the SHAKEN wire names (dest.tn list, orig.tn, origid)."""
        private_key, _ = ec_keypair
        header, payload, signature, _ = split_token(encode(HEADER, _payload(iat=1600000000), private_key))

        assert header == {
            "alg": "ES256",
            "ppt": "shaken",
            "typ": "passport",
            "x5u": "https://certs.example.org/cert.pem",
        }
        assert payload == {
            "attest": "A",
            "dest": {"tn": ["493044444444"]},
            "iat": 1600000000,
            "orig": {"tn": "493055555555"},
            "origid": "32c7e392-33fc-11ea-840b-784f435c76a8",
        }
        assert len(signature) == 64

    def test_verifies_with_pyjwt(self, ec_keypair):
        private_key, public_key = ec_keypair
        token = encode(HEADER, _payload(), private_key)

        claims = jwt.decode(token, public_key, algorithms=["ES256"])
        assert claims["orig"] == {"tn": "493055555555"}
        assert jwt.get_unverified_header(token)["ppt"] == "shaken"

    def test_decodes_pyjwt_token(self, ec_keypair):
        private_key, public_key = ec_keypair
        claims = _payload().to_dict()
        token = jwt.encode(
            claims,
            private_key,
            algorithm="ES256",
            headers={"ppt": "shaken", "typ": "passport", "x5u": HEADER.x5u},
        )

        decoded = decode_with_public_key(token, 0, public_key)
        assert decoded.orig_id == claims["origid"]
        assert decoded.dest_tn == ["493044444444"]


class TestEncodeText:
    """Signing raw JSON text."""

    def test_text_signed_verbatim(self, ec_keypair, key_files):
        _, public_key = ec_keypair
        prv, _ = key_files
        header_json = '{ "alg": "ES256", "ppt": "shaken", "typ": "passport", "x5u": "https://x/c.pem" }'
        payload_json = '{"attest":"B","dest":{"tn":["1"]},"iat":1,"orig":{"tn":"2"},"origid":"x"}\n'

        token = encode_text(header_json, payload_json, prv)
        raw_header, raw_payload, _ = token.split(".")

        assert raw_header == _b64(header_json.encode("utf-8"))
        assert raw_payload == _b64(payload_json.encode("utf-8"))
        assert decode_with_public_key(token, 0, public_key).attest == "B"


class TestDecodeErrors:
    """Structural, algorithm and signature failures."""

    def test_wrong_part_count(self, ec_keypair):
        _, public_key = ec_keypair
        with pytest.raises(PassportError) as exc_info:
            decode_with_public_key("a.b", 0, public_key)
        assert exc_info.value.code == RET_ERR_JSON_HDR_PARSE

    def test_bad_header_json(self, ec_keypair):
        _, public_key = ec_keypair
        token = f"{_b64(b'not json')}.{_b64(b'{}')}.{_b64(bytes(64))}"
        with pytest.raises(PassportError) as exc_info:
            decode_with_public_key(token, 0, public_key)
        assert exc_info.value.code == RET_ERR_JSON_HDR_PARSE

    def test_wrong_alg(self, ec_keypair):
        _, public_key = ec_keypair
        token = f"{_b64(json.dumps({'alg': 'EdDSA'}).encode())}.{_b64(b'{}')}.{_b64(bytes(64))}"
        with pytest.raises(PassportError) as exc_info:
            decode_with_public_key(token, 0, public_key)
        assert exc_info.value.code == RET_ERR_JSON_HDR_ALG

    def test_wrong_key(self, ec_keypair):
        private_key, _ = ec_keypair
        other = ec.generate_private_key(ec.SECP256R1()).public_key()
        token = encode(HEADER, _payload(), private_key)
        with pytest.raises(SignatureError) as exc_info:
            decode_with_public_key(token, 0, other)
        assert exc_info.value.code == RET_ERR_SIGNATURE_INVALID

    def test_truncated_signature(self, ec_keypair):
        private_key, public_key = ec_keypair
        head, body, _ = encode(HEADER, _payload(), private_key).split(".")
        with pytest.raises(SignatureError) as exc_info:
            decode_with_public_key(f"{head}.{body}.{_b64(bytes(10))}", 0, public_key)
        assert exc_info.value.code == RET_ERR_SIGNATURE_SIZE

    def test_non_finite_iat(self, ec_keypair, key_files):
        _, public_key = ec_keypair
        prv, _ = key_files
        token = encode_text('{"alg":"ES256","ppt":"shaken","typ":"passport"}', '{"iat":1e400}', prv)
        with pytest.raises(PassportError) as exc_info:
            decode_with_public_key(token, 0, public_key)
        assert exc_info.value.code == RET_ERR_JSON_PAYLOAD_PARSE


class TestExpiry:
    """The ``expire`` window applied to ``iat``."""

    def test_zero_disables_check(self, ec_keypair):
        private_key, public_key = ec_keypair
        token = encode(HEADER, _payload(iat=1000), private_key)
        assert decode_with_public_key(token, 0, public_key, now=10**9).iat == 1000

    def test_within_window(self, ec_keypair):
        private_key, public_key = ec_keypair
        token = encode(HEADER, _payload(iat=1000), private_key)
        assert decode_with_public_key(token, 60, public_key, now=1060).iat == 1000

    def test_expired(self, ec_keypair):
        private_key, public_key = ec_keypair
        token = encode(HEADER, _payload(iat=1000), private_key)
        with pytest.raises(PassportError) as exc_info:
            decode_with_public_key(token, 60, public_key, now=1061)
        assert exc_info.value.code == RET_ERR_JSON_PAYLOAD_IAT_EXPIRED


class TestRecords:
    """Typed record conversion from decoded JSON."""

    def test_header_from_dict(self):
        header = PassportHeader.from_dict({"alg": "ES256", "x5u": "https://x"})
        assert header == PassportHeader(alg="ES256", ppt="", typ="", x5u="https://x")

    def test_header_wrong_type(self):
        with pytest.raises(TypeError):
            PassportHeader.from_dict({"alg": 256})

    def test_payload_from_dict(self):
        data = _payload(iat=5).to_dict()
        assert PassportPayload.from_dict(data) == _payload(iat=5)

    @pytest.mark.parametrize(
        "data",
        [
            {"dest": {"tn": "493044444444"}},
            {"orig": "493055555555"},
            {"iat": "now"},
            {"iat": True},
            {"iat": float("inf")},
            {"iat": 1.5},
            [],
        ],
    )
    def test_payload_wrong_types(self, data):
        with pytest.raises(TypeError):
            PassportPayload.from_dict(data)
