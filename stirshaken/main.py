# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""FastAPI application for the signing and checking service.

**HTTP Endpoints**

* ``POST /v1/check``: the request body is a SIP Identity header value.
  It is checked with the configured expiry window, public key (or
  certificate fetched from the ``info`` URI) and fetch timeout.
  Responds ``200 OK``, ``400`` when the body cannot be read or is empty,
  or ``500 FAILED`` when the identity does not verify.

* ``POST /v1/sign-csv``: the request body is
  ``origTN,destTN,attest,origID,x5u``. The fields are signed with the
  configured private key through the same scalar path as the
  ``--sign-full`` command. Responds ``200`` with the Identity header
  value, or ``400`` for too few fields or a signing failure.

* ``GET /v1/pub/*``: static files from the ``--http-dir`` directory,
  mounted only when that option is set.

All bodies are plain text. The :class:`~stirshaken.config.Config` the
app is built with is stored on ``app.state`` and only ever read by the
handlers.

**Logging**

Structured JSON logging is configured for service mode. One-shot
commands log plain text to stderr.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from stirshaken.config import LOG_LEVEL, PUBLIC_FILES_PREFIX, VERSION, Config
from stirshaken.exceptions import CSVFieldsError
from stirshaken.resolver import check_request_for, parse_sign_csv
from stirshaken.stir.exceptions import STIRError


# ======================================================================
# Structured JSON logging
# ======================================================================


class _JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Produces one JSON object per log line with fields ``timestamp``,
    ``level``, ``logger``, ``message``, ``module`` and ``funcName``, plus
    ``exception`` when the record carries one.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = LOG_LEVEL, json_format: bool = True) -> None:
    """Configure the root logger.

    Existing handlers are removed first so nothing is logged twice when
    uvicorn has already installed its own.
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if json_format:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Suppress noisy third-party loggers.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger("stirshaken.main")


# ======================================================================
# Endpoints
# ======================================================================

router = APIRouter(prefix="/v1")


async def _read_body(request: Request) -> str:
    body = await request.body()
    return body.decode("utf-8")


@router.post(
    "/check",
    response_class=PlainTextResponse,
    summary="Check a SIP Identity header value",
)
async def check_identity(request: Request) -> PlainTextResponse:
    config: Config = request.app.state.config
    logger.info("incoming request for identity check ...")

    try:
        identity = await _read_body(request)
    except (ClientDisconnect, UnicodeDecodeError) as exc:
        logger.warning("error reading body: %s", exc)
        return PlainTextResponse("cannot read body\n", status_code=400)

    if not identity.strip():
        logger.warning("empty identity in request body")
        return PlainTextResponse("missing identity\n", status_code=400)

    try:
        ret = await check_request_for(identity, config).execute()
    except STIRError as exc:
        logger.warning("failed checking identity: %s (code %d)", exc.message, exc.code)
        return PlainTextResponse("FAILED\n", status_code=500)
    except Exception:
        logger.exception("Unhandled exception while checking identity")
        return PlainTextResponse("FAILED\n", status_code=500)

    logger.info("valid identity - return code: %d", ret)
    return PlainTextResponse("OK\n")


@router.post(
    "/sign-csv",
    response_class=PlainTextResponse,
    summary="Build a SIP Identity header value from CSV fields",
)
async def sign_csv(request: Request) -> PlainTextResponse:
    config: Config = request.app.state.config
    logger.info("incoming request for building identity ...")

    try:
        body = await _read_body(request)
    except (ClientDisconnect, UnicodeDecodeError) as exc:
        logger.warning("error reading body: %s", exc)
        return PlainTextResponse("cannot read body\n", status_code=400)

    try:
        scalar = parse_sign_csv(body, config.fprvkey)
    except CSVFieldsError as exc:
        logger.warning("%s", exc.message)
        return PlainTextResponse("too few tokens\n", status_code=400)

    try:
        identity = await run_in_threadpool(scalar.execute)
    except STIRError as exc:
        logger.warning("failed building identity: %s (code %d)", exc.message, exc.code)
        return PlainTextResponse("cannot build identity\n", status_code=400)

    return PlainTextResponse(f"{identity}\n")


# ======================================================================
# FastAPI application
# ======================================================================


def create_app(config: Config) -> FastAPI:
    """Build the service application around a frozen *config*."""
    app = FastAPI(
        title="stirshaken",
        description="STIR/SHAKEN Identity header signing and checking service.",
        version=VERSION,
    )
    app.state.config = config
    app.include_router(router)

    if config.http_dir:
        logger.info("serving files over http from directory: %s", config.http_dir)
        app.mount(
            PUBLIC_FILES_PREFIX,
            StaticFiles(directory=config.http_dir),
            name="pub",
        )

    return app
