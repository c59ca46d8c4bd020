# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Run-mode selection and execution.

Exactly one :class:`RunMode` runs per process. It is picked by the first
matching rule in :data:`MODE_RULES`, checked top to bottom:

====================  ==========================================
Mode                  Selected when
====================  ==========================================
``version``           ``--version``
``local-test``        ``--ltest``
``serve``             an HTTP bind address, or an HTTPS bind
                      address with certificate and key
``check``             ``--check``
``sign-full``         ``--sign-full``
``sign``              ``--sign``
``help``              nothing else matched
====================  ==========================================

The order is the precedence: a configured listener overrides the
one-shot ``check`` / ``sign-full`` / ``sign`` commands, and ``--version``
overrides everything.

Each runner returns the process exit status. ``check`` returns the
engine status code unchanged, input errors give ``-1``, and ``version``,
``local-test`` and a failed ``serve`` give ``1``.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, Tuple

import typer

from stirshaken import engine
from stirshaken.config import LOG_FORMAT, LOG_LEVEL, VERSION, Config
from stirshaken.exceptions import InputError, ListenerError
from stirshaken.resolver import resolve_check, resolve_scalar_sign, resolve_sign
from stirshaken.selftest import run_local_test
from stirshaken.stir.exceptions import RET_ERR, RET_OK, STIRError

logger = logging.getLogger(__name__)

__all__ = [
    "EXIT_FAILURE",
    "EXIT_INPUT_ERROR",
    "EXIT_SUCCESS",
    "MODE_RULES",
    "PROG_NAME",
    "RunMode",
    "run",
    "select_run_mode",
]

PROG_NAME = "stirshaken"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INPUT_ERROR = RET_ERR


class RunMode(str, Enum):
    VERSION = "version"
    LOCAL_TEST = "local-test"
    SERVE = "serve"
    CHECK = "check"
    SIGN_FULL = "sign-full"
    SIGN = "sign"
    HELP = "help"


MODE_RULES: Tuple[Tuple[RunMode, Callable[[Config], bool]], ...] = (
    (RunMode.VERSION, lambda config: config.version),
    (RunMode.LOCAL_TEST, lambda config: config.ltest),
    (RunMode.SERVE, lambda config: config.serve_enabled),
    (RunMode.CHECK, lambda config: config.check),
    (RunMode.SIGN_FULL, lambda config: config.sign_full),
    (RunMode.SIGN, lambda config: config.sign),
)


def select_run_mode(config: Config) -> RunMode:
    for mode, applies in MODE_RULES:
        if applies(config):
            return mode
    return RunMode.HELP


def _verbose(config: Config, message: str) -> None:
    if config.verbose:
        typer.echo(message, err=True)


# ======================================================================
# Runners
# ======================================================================


def _run_version(config: Config) -> int:
    typer.echo(f"{PROG_NAME} v{VERSION}")
    return EXIT_FAILURE


def _run_local_test(config: Config) -> int:
    run_local_test(expire=config.expire, echo=typer.echo)
    return EXIT_FAILURE


def _run_serve(config: Config) -> int:
    from stirshaken.main import configure_logging, create_app
    from stirshaken.server import listeners_for, run_listeners

    configure_logging(level="DEBUG" if config.verbose else LOG_LEVEL, json_format=LOG_FORMAT == "json")

    try:
        listeners = listeners_for(config)
        app = create_app(config)
    except (ListenerError, RuntimeError) as exc:
        logger.error("unable to start http services due to (error: %s)", exc)
        return EXIT_FAILURE

    logger.info("starting http services ...")
    error = asyncio.run(run_listeners(app, listeners))
    logger.error("unable to start http services due to (error: %s)", error)
    return EXIT_FAILURE


def _run_check(config: Config) -> int:
    _verbose(config, "Running with check command")
    try:
        request = resolve_check(config)
        ret = asyncio.run(request.execute())
    except InputError as exc:
        typer.echo(exc.message, err=True)
        ret = EXIT_INPUT_ERROR
    except STIRError as exc:
        typer.echo(f"error message: {exc.message}", err=True)
        ret = exc.code

    typer.echo("ok" if ret == RET_OK else "not-ok")
    return ret


def _run_sign_full(config: Config) -> int:
    _verbose(config, "Running with sign-full command")
    try:
        scalar = resolve_scalar_sign(config)
    except InputError as exc:
        typer.echo(exc.message, err=True)
        return EXIT_INPUT_ERROR
    try:
        identity = scalar.execute()
    except STIRError as exc:
        typer.echo(f"error: {exc.message}", err=True)
        return EXIT_INPUT_ERROR
    typer.echo(identity)
    return EXIT_SUCCESS


def _run_sign(config: Config) -> int:
    _verbose(config, "Running with sign command")
    try:
        request = resolve_sign(config)
    except InputError as exc:
        typer.echo(exc.message, err=True)
        return EXIT_INPUT_ERROR

    if request.structured:
        _verbose(config, "Signing using the structures built from parameter values")
    else:
        _verbose(config, "Signing using the JSON documents from parameters")

    try:
        token = request.execute()
    except STIRError as exc:
        typer.echo(f"error: {exc.message}", err=True)
        return EXIT_INPUT_ERROR
    typer.echo(token)
    return EXIT_SUCCESS


def _run_help(config: Config) -> int:
    typer.echo(f"{PROG_NAME} v{VERSION}")
    typer.echo(f"run '{PROG_NAME} --help' to see the options")
    return EXIT_SUCCESS


_RUNNERS: Dict[RunMode, Callable[[Config], int]] = {
    RunMode.VERSION: _run_version,
    RunMode.LOCAL_TEST: _run_local_test,
    RunMode.SERVE: _run_serve,
    RunMode.CHECK: _run_check,
    RunMode.SIGN_FULL: _run_sign_full,
    RunMode.SIGN: _run_sign,
    RunMode.HELP: _run_help,
}

# Modes that run before engine options are installed.
_PRE_ENGINE_MODES = frozenset({RunMode.VERSION, RunMode.LOCAL_TEST})


def run(config: Config) -> int:
    """Select and run the mode for *config*, returning the exit status."""
    mode = select_run_mode(config)
    logger.debug("Selected run mode: %s", mode.value)

    if mode not in _PRE_ENGINE_MODES:
        engine.propagate(config)

    return _RUNNERS[mode](config)
