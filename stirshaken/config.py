# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""stirshaken configuration.

Run options come from the command line and are frozen into a single
:class:`Config` before any mode runs. Logging defaults may be overridden
via environment variables.
"""

import os
from dataclasses import dataclass

# =============================================================================
# VERSION
# =============================================================================

VERSION: str = "1.0.0"

# =============================================================================
# FIXED DEFAULTS
# =============================================================================

DEFAULT_ALG: str = "ES256"
DEFAULT_PPT: str = "shaken"
DEFAULT_TYP: str = "passport"
DEFAULT_ATTEST: str = "C"
DEFAULT_TIMEOUT: int = 3
DEFAULT_CACHE_EXPIRE: int = 3600

# x5u used for scalar-built headers when none is given
PLACEHOLDER_X5U: str = "https://127.0.0.1/cert.pem"

# Path prefix for the optional static file server
PUBLIC_FILES_PREFIX: str = "/v1/pub"

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: str = os.getenv("STIRSHAKEN_LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("STIRSHAKEN_LOG_FORMAT", "json")


@dataclass(frozen=True)
class Config:
    """Run options, read-only once built.

    Field names follow the command-line flags (``--dest-tn`` is
    ``dest_tn``, ``--fprvkey`` is ``fprvkey``). The instance is shared by
    reference with every request handler.
    """

    # HTTP / HTTPS service
    http_srv: str = ""
    https_srv: str = ""
    https_pubkey: str = ""
    https_prvkey: str = ""
    http_dir: str = ""

    # keys
    fprvkey: str = ""
    fpubkey: str = ""

    # full JSON header / payload / identity inputs
    header: str = ""
    fheader: str = ""
    payload: str = ""
    fpayload: str = ""
    identity: str = ""
    fidentity: str = ""

    # individual header fields
    alg: str = DEFAULT_ALG
    ppt: str = DEFAULT_PPT
    typ: str = DEFAULT_TYP
    x5u: str = ""

    # individual payload fields
    attest: str = DEFAULT_ATTEST
    dest_tn: str = ""
    orig_tn: str = ""
    iat: int = 0
    orig_id: str = ""

    # commands
    check: bool = False
    sign: bool = False
    sign_full: bool = False
    json_parse: bool = False
    ltest: bool = False
    version: bool = False

    # checking
    expire: int = 0
    timeout: int = DEFAULT_TIMEOUT

    # certificate handling
    cache_dir: str = ""
    cache_expire: int = DEFAULT_CACHE_EXPIRE
    ca_file: str = ""
    ca_inter: str = ""
    crl_file: str = ""
    cert_verify: int = 0

    verbosity: int = 0

    @property
    def http_enabled(self) -> bool:
        return bool(self.http_srv)

    @property
    def https_enabled(self) -> bool:
        """HTTPS needs a bind address, a certificate and a key."""
        return bool(self.https_srv and self.https_pubkey and self.https_prvkey)

    @property
    def serve_enabled(self) -> bool:
        return self.http_enabled or self.https_enabled

    @property
    def verbose(self) -> bool:
        return self.verbosity > 0
