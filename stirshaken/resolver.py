# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Request input resolution.

The configuration can describe the PASSporT header and payload in three
overlapping ways: a file path, an inline JSON literal, or individual
scalar fields. This module settles each side on exactly one source, in
that precedence order, and decides the signing call shape:

* :class:`StructuredSign`: both sides are typed records, signed through
  the engine's record encoder.
* :class:`RawTextSign`: both sides are JSON text, signed exactly as
  supplied.

A file or literal is kept as raw text unless ``json_parse`` is set, in
which case it is decoded into a typed record. Scalar fields always yield
a typed record. A raw-text side paired with a record side is rejected
with :class:`MixedRepresentationError`; nothing is ever coerced.

The scalar fast path (``sign-full`` and ``POST /v1/sign-csv``) is
described by :class:`ScalarSign`, and identity checks by
:class:`CheckRequest`.

All resolution completes before the engine is called, so input errors
never leave a partial signing attempt behind.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from stirshaken.config import PLACEHOLDER_X5U, Config
from stirshaken.exceptions import (
    CSVFieldsError,
    FileReadError,
    JSONParseError,
    MissingInputError,
    MixedRepresentationError,
)
from stirshaken.stir import identity as stir_identity
from stirshaken.stir import passport as stir_passport
from stirshaken.stir.keys import load_private_key

__all__ = [
    "CSV_FIELD_COUNT",
    "CheckRequest",
    "RawTextSign",
    "ScalarSign",
    "SignPlan",
    "SignRequest",
    "StructuredSign",
    "check_request_for",
    "parse_sign_csv",
    "read_source",
    "resolve_check",
    "resolve_header",
    "resolve_payload",
    "resolve_scalar_sign",
    "resolve_sign",
]

# origTN, destTN, attest, origID, x5u
CSV_FIELD_COUNT = 5


# ---------------------------------------------------------------------------
# Request shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StructuredSign:
    """Typed header and payload records."""

    header: stir_passport.PassportHeader
    payload: stir_passport.PassportPayload

    def sign(self, private_key_path: str) -> str:
        private_key = load_private_key(private_key_path)
        return stir_passport.encode(self.header, self.payload, private_key)


@dataclass(frozen=True)
class RawTextSign:
    """Header and payload JSON text, signed verbatim."""

    header: str
    payload: str

    def sign(self, private_key_path: str) -> str:
        return stir_passport.encode_text(self.header, self.payload, private_key_path)


SignPlan = Union[StructuredSign, RawTextSign]


@dataclass(frozen=True)
class SignRequest:
    """A fully resolved ``sign`` call."""

    plan: SignPlan
    private_key_path: str

    @property
    def structured(self) -> bool:
        return isinstance(self.plan, StructuredSign)

    def execute(self) -> str:
        return self.plan.sign(self.private_key_path)


@dataclass(frozen=True)
class ScalarSign:
    """Arguments of the engine's build-identity-from-scalars call."""

    orig_tn: str
    dest_tn: str
    attest: str
    orig_id: str
    x5u: str
    private_key_path: str

    def execute(self) -> str:
        return stir_identity.get_identity(
            self.orig_tn,
            self.dest_tn,
            self.attest,
            self.orig_id,
            self.x5u,
            self.private_key_path,
        )


@dataclass(frozen=True)
class CheckRequest:
    """Arguments of the engine's identity check call."""

    identity: str
    expire: int
    public_key_path: str
    timeout: int

    async def execute(self) -> int:
        return await stir_identity.check_full_identity(
            self.identity, self.expire, self.public_key_path, self.timeout
        )


# ---------------------------------------------------------------------------
# Source selection
# ---------------------------------------------------------------------------

def read_source(path: str, literal: str) -> Optional[str]:
    """Return the source text: file contents first, else the literal, else ``None``.

    File contents are returned exactly as stored (no newline translation).

    Raises:
        FileReadError: If *path* is set but cannot be read as UTF-8 text.
    """
    if path:
        try:
            return Path(path).read_bytes().decode("utf-8")
        except OSError as exc:
            raise FileReadError(path, exc.strerror or str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise FileReadError(path, f"not UTF-8 text: {exc}") from exc
    if literal:
        return literal
    return None


def _parse_record(text: str, part: str, factory):
    try:
        return factory(json.loads(text))
    except (ValueError, TypeError) as exc:
        raise JSONParseError(part, str(exc)) from exc


def resolve_header(config: Config) -> Union[str, stir_passport.PassportHeader]:
    """Resolve the header to raw JSON text or a typed record."""
    source = read_source(config.fheader, config.header)
    if source is not None:
        if config.json_parse:
            return _parse_record(source, "header", stir_passport.PassportHeader.from_dict)
        return source

    return stir_passport.PassportHeader(
        alg=config.alg,
        ppt=config.ppt,
        typ=config.typ,
        x5u=config.x5u or PLACEHOLDER_X5U,
    )


def resolve_payload(
    config: Config,
    now: Optional[int] = None,
) -> Union[str, stir_passport.PassportPayload]:
    """Resolve the payload to raw JSON text or a typed record.

    A scalar-built payload with no ``iat`` is stamped with the current time.
    """
    source = read_source(config.fpayload, config.payload)
    if source is not None:
        if config.json_parse:
            return _parse_record(source, "payload", stir_passport.PassportPayload.from_dict)
        return source

    iat = config.iat
    if iat == 0:
        iat = now if now is not None else int(time.time())
    return stir_passport.PassportPayload(
        attest=config.attest,
        dest_tn=[config.dest_tn],
        iat=iat,
        orig_tn=config.orig_tn,
        orig_id=config.orig_id,
    )


def resolve_sign(config: Config, now: Optional[int] = None) -> SignRequest:
    """Resolve a ``sign`` call.

    Raises:
        MissingInputError: If no private key path is configured.
        FileReadError: If a header or payload file cannot be read.
        JSONParseError: If ``json_parse`` is set and a text is not valid.
        MixedRepresentationError: If only one side is raw text.
    """
    if not config.fprvkey:
        raise MissingInputError.private_key()

    header = resolve_header(config)
    payload = resolve_payload(config, now=now)

    header_is_text = isinstance(header, str)
    payload_is_text = isinstance(payload, str)

    if header_is_text and payload_is_text:
        plan: SignPlan = RawTextSign(header=header, payload=payload)
    elif not header_is_text and not payload_is_text:
        plan = StructuredSign(header=header, payload=payload)
    elif header_is_text:
        raise MixedRepresentationError("header", "payload")
    else:
        raise MixedRepresentationError("payload", "header")

    return SignRequest(plan=plan, private_key_path=config.fprvkey)


def resolve_scalar_sign(config: Config) -> ScalarSign:
    """Resolve a ``sign-full`` call straight from the scalar fields.

    Raises:
        MissingInputError: If no private key path is configured.
    """
    if not config.fprvkey:
        raise MissingInputError.private_key()
    return ScalarSign(
        orig_tn=config.orig_tn,
        dest_tn=config.dest_tn,
        attest=config.attest,
        orig_id=config.orig_id,
        x5u=config.x5u,
        private_key_path=config.fprvkey,
    )


def parse_sign_csv(body: str, private_key_path: str) -> ScalarSign:
    """Resolve ``origTN,destTN,attest,origID,x5u`` into a scalar signing call.

    Surrounding whitespace is trimmed before splitting; fields beyond the
    fifth are ignored.

    Raises:
        CSVFieldsError: If fewer than five fields are present.
    """
    fields = body.strip().split(",")
    if len(fields) < CSV_FIELD_COUNT:
        raise CSVFieldsError(len(fields), CSV_FIELD_COUNT)
    orig_tn, dest_tn, attest, orig_id, x5u = fields[:CSV_FIELD_COUNT]
    return ScalarSign(
        orig_tn=orig_tn,
        dest_tn=dest_tn,
        attest=attest,
        orig_id=orig_id,
        x5u=x5u,
        private_key_path=private_key_path,
    )


def resolve_check(config: Config) -> CheckRequest:
    """Resolve a ``check`` call: identity file first, else the literal.

    Raises:
        MissingInputError: If neither identity source is configured.
        FileReadError: If the identity file cannot be read.
    """
    identity = read_source(config.fidentity, config.identity)
    if identity is None:
        raise MissingInputError.identity()
    return check_request_for(identity, config)


def check_request_for(identity: str, config: Config) -> CheckRequest:
    return CheckRequest(
        identity=identity,
        expire=config.expire,
        public_key_path=config.fpubkey,
        timeout=config.timeout,
    )
