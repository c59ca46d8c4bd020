# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""STIR/SHAKEN signing and verification engine.

Encodes and decodes ES256 PASSporTs, builds and checks SIP Identity
header values, and retrieves, caches and verifies signer certificates.
"""

from .exceptions import STIRError
from .identity import check_full_identity, get_identity, parse_identity_header
from .keys import load_private_key, load_public_key
from .options import EngineOptions, configure, get_options
from .passport import (
    PassportHeader,
    PassportPayload,
    decode_with_public_key,
    encode,
    encode_text,
)

__all__ = [
    "EngineOptions",
    "PassportHeader",
    "PassportPayload",
    "STIRError",
    "check_full_identity",
    "configure",
    "decode_with_public_key",
    "encode",
    "encode_text",
    "get_identity",
    "get_options",
    "load_private_key",
    "load_public_key",
    "parse_identity_header",
]
