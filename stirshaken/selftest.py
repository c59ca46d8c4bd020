# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Local self-test against the packaged test key pair.

Signs a fixed PASSporT with the record encoder, decodes it again with the
matching public key, then signs the same header and payload as JSON text.
"""

import json
import logging
import time
from importlib import resources
from typing import Callable

from stirshaken.stir.exceptions import STIRError
from stirshaken.stir.keys import parse_private_key_pem, parse_public_key_pem
from stirshaken.stir.passport import (
    PassportHeader,
    PassportPayload,
    decode_with_public_key,
    encode,
    encode_text,
)

logger = logging.getLogger(__name__)

TEST_HEADER = PassportHeader(
    alg="ES256",
    ppt="shaken",
    typ="passport",
    x5u="https://certs.example.org/stir-shaken/cert01.crt",
)
TEST_ORIG_TN = "493055555555"
TEST_DEST_TN = "493044444444"
TEST_ORIG_ID = "32c7e392-33fc-11ea-840b-784f435c76a8"

_PRIVATE_KEY = "ec256-private.pem"
_PUBLIC_KEY = "ec256-public.pem"


def _testdata():
    return resources.files("stirshaken") / "testdata"


def run_local_test(expire: int = 0, echo: Callable[[str], None] = print) -> bool:
    """Run the self-test, writing results through *echo*.

    Returns:
        ``True`` when every step succeeded.
    """
    payload = PassportPayload(
        attest="A",
        dest_tn=[TEST_DEST_TN],
        iat=int(time.time()),
        orig_tn=TEST_ORIG_TN,
        orig_id=TEST_ORIG_ID,
    )

    try:
        private_key = parse_private_key_pem((_testdata() / _PRIVATE_KEY).read_bytes())
    except STIRError as exc:
        echo(f"Unable to parse ECDSA private key: {exc.message}")
        return False
    try:
        public_key = parse_public_key_pem((_testdata() / _PUBLIC_KEY).read_bytes())
    except STIRError as exc:
        echo(f"Unable to parse ECDSA public key: {exc.message}")
        return False

    try:
        token = encode(TEST_HEADER, payload, private_key)
        echo(f"Result: {token}")

        decoded = decode_with_public_key(token, expire, public_key)
        echo(f"Payload: {json.dumps(decoded.to_dict(), separators=(',', ':'))}")

        header_json = json.dumps(TEST_HEADER.to_dict(), separators=(",", ":"))
        payload_json = json.dumps(payload.to_dict(), separators=(",", ":"))
        with resources.as_file(_testdata() / _PRIVATE_KEY) as key_path:
            signature = encode_text(header_json, payload_json, str(key_path))
        echo(f"Signature: {signature}")
    except STIRError as exc:
        logger.error("self-test failed: %s (code %d)", exc.message, exc.code)
        echo(f"error: {exc.message}")
        return False

    return True
