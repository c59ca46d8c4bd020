# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Process-wide engine options.

Certificate caching, CA/CRL verification and the default ``x5u`` are
engine-global settings. They are installed once at startup with
:func:`configure` and read by every signing and checking call through
:func:`get_options`. The snapshot is immutable, so concurrent request
handlers can read it without locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

__all__ = [
    "CERT_VERIFY_TIME",
    "CERT_VERIFY_SYSTEM_CA",
    "CERT_VERIFY_CA_FILE",
    "CERT_VERIFY_CA_INTER",
    "CERT_VERIFY_CRL",
    "DEFAULT_X5U",
    "EngineOptions",
    "configure",
    "get_options",
    "reset_options",
]

# cert_verify bitmask
CERT_VERIFY_TIME = 1 << 0
CERT_VERIFY_SYSTEM_CA = 1 << 1
CERT_VERIFY_CA_FILE = 1 << 2
CERT_VERIFY_CA_INTER = 1 << 3
CERT_VERIFY_CRL = 1 << 4

DEFAULT_X5U = "https://127.0.0.1/cert.pem"
DEFAULT_CACHE_EXPIRE = 3600


@dataclass(frozen=True)
class EngineOptions:
    """Snapshot of engine-global settings.

    Attributes:
        cache_dir:     Directory for cached certificates; empty disables caching.
        cache_expire:  Lifetime of a cached certificate in seconds.
        ca_file:       PEM bundle of trusted root certificates.
        ca_inter:      PEM bundle of intermediate certificates.
        crl_file:      PEM certificate revocation list.
        cert_verify:   Verification bitmask (``CERT_VERIFY_*``).
        x5u:           Certificate URI used when a signing call gives none.
    """

    cache_dir: str = ""
    cache_expire: int = DEFAULT_CACHE_EXPIRE
    ca_file: str = ""
    ca_inter: str = ""
    crl_file: str = ""
    cert_verify: int = 0
    x5u: str = DEFAULT_X5U


_options: Optional[EngineOptions] = None


def configure(options: EngineOptions) -> EngineOptions:
    """Install *options* as the engine-global settings."""
    global _options
    _options = options
    logger.debug(
        "Engine options: cache_dir=%r cache_expire=%d cert_verify=%d ca_file=%r ca_inter=%r crl_file=%r",
        options.cache_dir,
        options.cache_expire,
        options.cert_verify,
        options.ca_file,
        options.ca_inter,
        options.crl_file,
    )
    return options


def get_options() -> EngineOptions:
    """Return the installed settings, or the defaults if none were installed."""
    if _options is None:
        return EngineOptions()
    return _options


def reset_options() -> None:
    """Drop installed settings (for testing)."""
    global _options
    _options = None
