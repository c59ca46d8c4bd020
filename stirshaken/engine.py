# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Engine option propagation.

Translates the certificate-handling subset of :class:`Config` into the
engine-global :class:`~stirshaken.stir.options.EngineOptions`. Only
options that were actually given (non-empty strings, positive integers)
replace the engine defaults.
"""

import logging

from stirshaken.config import Config
from stirshaken.stir import options as engine_options

logger = logging.getLogger(__name__)


def engine_options_from(config: Config) -> engine_options.EngineOptions:
    defaults = engine_options.EngineOptions()
    return engine_options.EngineOptions(
        cache_dir=config.cache_dir or defaults.cache_dir,
        cache_expire=config.cache_expire if config.cache_dir else defaults.cache_expire,
        ca_file=config.ca_file or defaults.ca_file,
        ca_inter=config.ca_inter or defaults.ca_inter,
        crl_file=config.crl_file or defaults.crl_file,
        cert_verify=config.cert_verify if config.cert_verify > 0 else defaults.cert_verify,
        x5u=config.x5u or defaults.x5u,
    )


def propagate(config: Config) -> engine_options.EngineOptions:
    """Install engine options derived from *config*.

    Must run once, before the first listener starts or the first one-shot
    engine call is made.
    """
    options = engine_options.configure(engine_options_from(config))
    if options.cache_dir:
        logger.info(
            "Certificate cache: dir=%s expire=%ds", options.cache_dir, options.cache_expire
        )
    return options
