# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Signing/verification engine exceptions mapped to numeric return codes.

Every failure carries a stable negative ``code`` so one-shot CLI callers
can surface it as the process exit status.
"""

# Generic
RET_OK = 0
RET_ERR = -1

# SIP Identity header
RET_ERR_SIP_HDR_PARSE = -110
RET_ERR_SIP_HDR_ALG = -111
RET_ERR_SIP_HDR_PPT = -112
RET_ERR_SIP_HDR_EMPTY = -113
RET_ERR_SIP_HDR_INFO = -114

# JSON header / payload
RET_ERR_JSON_HDR_PARSE = -120
RET_ERR_JSON_HDR_ALG = -121
RET_ERR_JSON_HDR_PPT = -122
RET_ERR_JSON_HDR_TYP = -123
RET_ERR_JSON_HDR_X5U = -124
RET_ERR_JSON_PAYLOAD_PARSE = -130
RET_ERR_JSON_PAYLOAD_IAT_EXPIRED = -131

# Signature
RET_ERR_SIGNATURE_INVALID = -140
RET_ERR_SIGNATURE_HASHING = -141
RET_ERR_SIGNATURE_SIZE = -142
RET_ERR_SIGNATURE_FAILURE = -143
RET_ERR_SIGNATURE_NOB64 = -144

# Certificate
RET_ERR_CERT_INVALID = -150
RET_ERR_CERT_INVALID_FORMAT = -151
RET_ERR_CERT_EXPIRED = -152
RET_ERR_CERT_BEFORE_VALIDITY = -153
RET_ERR_CERT_PROCESSING = -154
RET_ERR_CERT_NO_CA_FILE = -155
RET_ERR_CERT_READ_CA_FILE = -156
RET_ERR_CERT_NO_CA_INTER = -157
RET_ERR_CERT_READ_CA_INTER = -158
RET_ERR_CERT_NO_CRL_FILE = -159
RET_ERR_CERT_READ_CRL_FILE = -160
RET_ERR_CERT_REVOKED = -161
RET_ERR_CERT_INVALID_EC = -162

# Public key
RET_ERR_PUBKEY_INVALID = -170
RET_ERR_PUBKEY_INVALID_FORMAT = -171
RET_ERR_PUBKEY_INVALID_EC = -172

# Private key
RET_ERR_PRVKEY_INVALID = -180
RET_ERR_PRVKEY_INVALID_FORMAT = -181
RET_ERR_PRVKEY_INVALID_EC = -182

# File operations
RET_ERR_FILE_READ = -190
RET_ERR_FILE_WRITE = -191
RET_ERR_FILE_STAT = -192
RET_ERR_FILE_EXISTS = -193
RET_ERR_FILE_NOT_EXISTS = -194

# HTTP operations
RET_ERR_HTTP_INVALID_URL = -200
RET_ERR_HTTP_GET = -201
RET_ERR_HTTP_STATUS_CODE = -202
RET_ERR_HTTP_READ_BODY = -203


class STIRError(Exception):
    """Base exception for engine failures."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @classmethod
    def file_read(cls, path: str, reason: str) -> "STIRError":
        return cls(code=RET_ERR_FILE_READ, message=f"failed to read file {path}: {reason}")


class IdentityHeaderError(STIRError):
    """SIP Identity header parsing error."""

    @classmethod
    def empty(cls) -> "IdentityHeaderError":
        return cls(code=RET_ERR_SIP_HDR_EMPTY, message="identity header value is empty")

    @classmethod
    def malformed(cls, reason: str) -> "IdentityHeaderError":
        return cls(code=RET_ERR_SIP_HDR_PARSE, message=f"identity header is malformed: {reason}")

    @classmethod
    def bad_alg(cls, alg: str) -> "IdentityHeaderError":
        return cls(code=RET_ERR_SIP_HDR_ALG, message=f"identity header has unsupported alg: {alg}")

    @classmethod
    def bad_ppt(cls, ppt: str) -> "IdentityHeaderError":
        return cls(code=RET_ERR_SIP_HDR_PPT, message=f"identity header has unsupported ppt: {ppt}")

    @classmethod
    def no_info(cls) -> "IdentityHeaderError":
        return cls(
            code=RET_ERR_SIP_HDR_INFO,
            message="identity header has no info parameter and token has no x5u",
        )


class PassportError(STIRError):
    """PASSporT encode/decode error."""

    @classmethod
    def malformed(cls, reason: str) -> "PassportError":
        return cls(code=RET_ERR_JSON_HDR_PARSE, message=f"PASSporT is malformed: {reason}")

    @classmethod
    def header_parse(cls, reason: str) -> "PassportError":
        return cls(code=RET_ERR_JSON_HDR_PARSE, message=f"PASSporT header parse failed: {reason}")

    @classmethod
    def bad_alg(cls, alg: object) -> "PassportError":
        return cls(code=RET_ERR_JSON_HDR_ALG, message=f"PASSporT uses unsupported algorithm: {alg!r}")

    @classmethod
    def payload_parse(cls, reason: str) -> "PassportError":
        return cls(code=RET_ERR_JSON_PAYLOAD_PARSE, message=f"PASSporT payload parse failed: {reason}")

    @classmethod
    def expired(cls, iat: int, expire: int, now: int) -> "PassportError":
        return cls(
            code=RET_ERR_JSON_PAYLOAD_IAT_EXPIRED,
            message=f"PASSporT expired: iat={iat}, expire={expire}s, now={now}",
        )


class SignatureError(STIRError):
    """ES256 signature creation or verification failure."""

    @classmethod
    def not_base64(cls, reason: str) -> "SignatureError":
        return cls(code=RET_ERR_SIGNATURE_NOB64, message=f"signature is not base64url: {reason}")

    @classmethod
    def bad_size(cls, size: int) -> "SignatureError":
        return cls(code=RET_ERR_SIGNATURE_SIZE, message=f"ES256 signature must be 64 bytes, got {size}")

    @classmethod
    def invalid(cls) -> "SignatureError":
        return cls(code=RET_ERR_SIGNATURE_INVALID, message="signature verification failed")

    @classmethod
    def failure(cls, reason: str) -> "SignatureError":
        return cls(code=RET_ERR_SIGNATURE_FAILURE, message=f"signing failed: {reason}")


class KeyParseError(STIRError):
    """PEM key parsing failure (public or private)."""

    @classmethod
    def private_format(cls, reason: str) -> "KeyParseError":
        return cls(code=RET_ERR_PRVKEY_INVALID_FORMAT, message=f"unable to parse private key: {reason}")

    @classmethod
    def private_not_ec(cls) -> "KeyParseError":
        return cls(code=RET_ERR_PRVKEY_INVALID_EC, message="private key is not an EC P-256 key")

    @classmethod
    def public_format(cls, reason: str) -> "KeyParseError":
        return cls(code=RET_ERR_PUBKEY_INVALID_FORMAT, message=f"unable to parse public key: {reason}")

    @classmethod
    def public_not_ec(cls) -> "KeyParseError":
        return cls(code=RET_ERR_PUBKEY_INVALID_EC, message="public key is not an EC P-256 key")


class CertificateError(STIRError):
    """Certificate retrieval, parsing or verification failure."""

    @classmethod
    def invalid_format(cls, reason: str) -> "CertificateError":
        return cls(code=RET_ERR_CERT_INVALID_FORMAT, message=f"certificate is not valid PEM: {reason}")

    @classmethod
    def not_ec(cls) -> "CertificateError":
        return cls(code=RET_ERR_CERT_INVALID_EC, message="certificate public key is not EC P-256")

    @classmethod
    def expired(cls, not_after: str) -> "CertificateError":
        return cls(code=RET_ERR_CERT_EXPIRED, message=f"certificate expired at {not_after}")

    @classmethod
    def not_yet_valid(cls, not_before: str) -> "CertificateError":
        return cls(code=RET_ERR_CERT_BEFORE_VALIDITY, message=f"certificate not valid before {not_before}")

    @classmethod
    def untrusted(cls, reason: str) -> "CertificateError":
        return cls(code=RET_ERR_CERT_INVALID, message=f"certificate chain verification failed: {reason}")

    @classmethod
    def revoked(cls, serial: int) -> "CertificateError":
        return cls(code=RET_ERR_CERT_REVOKED, message=f"certificate serial {serial:x} is revoked")

    @classmethod
    def no_ca_file(cls) -> "CertificateError":
        return cls(code=RET_ERR_CERT_NO_CA_FILE, message="CA file verification requested but no CA file set")

    @classmethod
    def read_ca_file(cls, path: str, reason: str) -> "CertificateError":
        return cls(code=RET_ERR_CERT_READ_CA_FILE, message=f"failed to load CA file {path}: {reason}")

    @classmethod
    def no_ca_inter(cls) -> "CertificateError":
        return cls(
            code=RET_ERR_CERT_NO_CA_INTER,
            message="intermediate CA verification requested but no intermediate CA file set",
        )

    @classmethod
    def read_ca_inter(cls, path: str, reason: str) -> "CertificateError":
        return cls(code=RET_ERR_CERT_READ_CA_INTER, message=f"failed to load intermediate CA file {path}: {reason}")

    @classmethod
    def no_crl_file(cls) -> "CertificateError":
        return cls(code=RET_ERR_CERT_NO_CRL_FILE, message="CRL verification requested but no CRL file set")

    @classmethod
    def read_crl_file(cls, path: str, reason: str) -> "CertificateError":
        return cls(code=RET_ERR_CERT_READ_CRL_FILE, message=f"failed to load CRL file {path}: {reason}")


class FetchError(STIRError):
    """Certificate URL retrieval failure."""

    @classmethod
    def invalid_url(cls, url: str) -> "FetchError":
        return cls(code=RET_ERR_HTTP_INVALID_URL, message=f"invalid certificate URL: {url!r}")

    @classmethod
    def get_failed(cls, url: str, reason: str) -> "FetchError":
        return cls(code=RET_ERR_HTTP_GET, message=f"HTTP GET failed for {url}: {reason}")

    @classmethod
    def bad_status(cls, url: str, status: int) -> "FetchError":
        return cls(code=RET_ERR_HTTP_STATUS_CODE, message=f"HTTP GET returned {status} for {url}")

    @classmethod
    def empty_body(cls, url: str) -> "FetchError":
        return cls(code=RET_ERR_HTTP_READ_BODY, message=f"HTTP GET returned an empty body for {url}")
