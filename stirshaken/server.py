# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""HTTP and HTTPS listeners for the service application.

Each configured listener is a uvicorn server running as its own asyncio
task over the same FastAPI app. The listeners are joined with a single
first-completed wait: whichever one fails (or otherwise stops serving)
first ends the service, and the remaining listener is cancelled with it.
There is no restart and no request draining.

Usage:
    >>> listeners = listeners_for(config)
    >>> error = asyncio.run(run_listeners(create_app(config), listeners))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import uvicorn
from fastapi import FastAPI

from stirshaken.config import Config
from stirshaken.exceptions import ListenerError

logger = logging.getLogger(__name__)

__all__ = [
    "Listener",
    "build_server",
    "listeners_for",
    "parse_bind_address",
    "run_listeners",
]

_DEFAULT_HOST = "0.0.0.0"


@dataclass(frozen=True)
class Listener:
    """One bound service endpoint.

    Attributes:
        name:      ``"HTTP"`` or ``"HTTPS"``.
        address:   Bind address as given on the command line.
        host:      Resolved bind host.
        port:      Resolved bind port.
        certfile:  TLS certificate (HTTPS only).
        keyfile:   TLS private key (HTTPS only).
    """

    name: str
    address: str
    host: str
    port: int
    certfile: str = ""
    keyfile: str = ""

    @property
    def tls(self) -> bool:
        return bool(self.certfile and self.keyfile)


def parse_bind_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts.

    An empty host (``":8080"``) binds all interfaces; IPv6 hosts are
    written in brackets (``"[::1]:8080"``).

    Raises:
        ValueError: If the address has no valid port.
    """
    host, sep, port_text = address.strip().rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in address {address!r}")
    return host or _DEFAULT_HOST, port


def listeners_for(config: Config) -> List[Listener]:
    """Return the listeners *config* asks for (HTTP first, then HTTPS).

    Raises:
        ListenerError: If a bind address cannot be parsed.
    """
    listeners: List[Listener] = []

    if config.http_enabled:
        try:
            host, port = parse_bind_address(config.http_srv)
        except ValueError as exc:
            raise ListenerError("HTTP", config.http_srv, str(exc)) from exc
        listeners.append(Listener("HTTP", config.http_srv, host, port))

    if config.https_enabled:
        try:
            host, port = parse_bind_address(config.https_srv)
        except ValueError as exc:
            raise ListenerError("HTTPS", config.https_srv, str(exc)) from exc
        listeners.append(
            Listener(
                "HTTPS",
                config.https_srv,
                host,
                port,
                certfile=config.https_pubkey,
                keyfile=config.https_prvkey,
            )
        )

    return listeners


def build_server(app: FastAPI, listener: Listener) -> uvicorn.Server:
    kwargs = {}
    if listener.tls:
        kwargs = {"ssl_certfile": listener.certfile, "ssl_keyfile": listener.keyfile}
    config = uvicorn.Config(
        app,
        host=listener.host,
        port=listener.port,
        log_config=None,
        **kwargs,
    )
    return uvicorn.Server(config)


async def _serve(server: uvicorn.Server, listener: Listener) -> None:
    """Run *server* until it stops; always ends in :class:`ListenerError`."""
    logger.info("starting %s service on: %s ...", listener.name, listener.address)
    try:
        await server.serve()
    except SystemExit as exc:
        # uvicorn exits the process when it cannot bind.
        raise ListenerError(listener.name, listener.address, f"startup failed (exit {exc.code})") from exc
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        raise ListenerError(listener.name, listener.address, str(exc)) from exc
    raise ListenerError(listener.name, listener.address, "stopped serving")


async def run_listeners(app: FastAPI, listeners: Sequence[Listener]) -> ListenerError:
    """Serve *app* on every listener until the first one fails.

    Returns:
        The :class:`ListenerError` of the first listener to end.
    """
    if not listeners:
        raise ValueError("no listeners configured")

    tasks = [
        asyncio.create_task(_serve(build_server(app, listener), listener), name=listener.name)
        for listener in listeners
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    first = next(task for task in tasks if task in done)
    error = first.exception()
    if isinstance(error, ListenerError):
        return error
    return ListenerError(first.get_name(), "", repr(error))
