# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""stirshaken command line.

A single command whose flags select the run mode (see
:mod:`stirshaken.dispatch`):

    stirshaken --sign -k key.pem -o 493055555555 -d 493044444444 -a A
    stirshaken --sign --fheader header.json --fpayload payload.json -k key.pem
    stirshaken --sign-full -k key.pem -o 493055555555 -d 493044444444
    stirshaken --check --identity "<token>;info=<...>;alg=ES256;ppt=shaken"
    stirshaken --http-srv 127.0.0.1:8088 -k key.pem --http-dir ./certs
    stirshaken --ltest
"""

import logging

import typer

from stirshaken.config import (
    DEFAULT_ALG,
    DEFAULT_ATTEST,
    DEFAULT_CACHE_EXPIRE,
    DEFAULT_PPT,
    DEFAULT_TIMEOUT,
    DEFAULT_TYP,
    Config,
)
from stirshaken.dispatch import PROG_NAME, run
from stirshaken.main import configure_logging

app = typer.Typer(
    name=PROG_NAME,
    help="STIR/SHAKEN SIP Identity signing and checking.",
    add_completion=False,
)


@app.command()
def main(
    # HTTP / HTTPS service
    http_srv: str = typer.Option("", "--http-srv", "-H", help="HTTP listen address (e.g. 127.0.0.1:8088)"),
    https_srv: str = typer.Option("", "--https-srv", help="HTTPS listen address"),
    https_pubkey: str = typer.Option("", "--https-pubkey", help="HTTPS certificate file"),
    https_prvkey: str = typer.Option("", "--https-prvkey", help="HTTPS private key file"),
    http_dir: str = typer.Option("", "--http-dir", help="Directory served under /v1/pub/"),
    # keys
    fprvkey: str = typer.Option("", "--fprvkey", "-k", help="Path to the signing private key"),
    fpubkey: str = typer.Option("", "--fpubkey", "-p", help="Path to the checking public key"),
    # full JSON inputs
    header: str = typer.Option("", "--header", help="Header as JSON text"),
    fheader: str = typer.Option("", "--fheader", help="Path to header JSON file"),
    payload: str = typer.Option("", "--payload", help="Payload as JSON text"),
    fpayload: str = typer.Option("", "--fpayload", help="Path to payload JSON file"),
    identity: str = typer.Option("", "--identity", help="Identity header value"),
    fidentity: str = typer.Option("", "--fidentity", help="Path to identity header file"),
    # header fields
    alg: str = typer.Option(DEFAULT_ALG, "--alg", help="Header 'alg'"),
    ppt: str = typer.Option(DEFAULT_PPT, "--ppt", help="Header 'ppt'"),
    typ: str = typer.Option(DEFAULT_TYP, "--typ", help="Header 'typ'"),
    x5u: str = typer.Option("", "--x5u", help="Header 'x5u'"),
    # payload fields
    attest: str = typer.Option(DEFAULT_ATTEST, "--attest", "-a", help="Attestation level (A, B or C)"),
    dest_tn: str = typer.Option("", "--dest-tn", "-d", help="Destination telephone number"),
    orig_tn: str = typer.Option("", "--orig-tn", "-o", help="Origination telephone number"),
    iat: int = typer.Option(0, "--iat", help="Issued-at timestamp (0 uses the current time)"),
    orig_id: str = typer.Option("", "--orig-id", help="Origination identifier"),
    # commands
    check: bool = typer.Option(False, "--check", "-c", help="Check an identity header"),
    sign: bool = typer.Option(False, "--sign", "-s", help="Sign a PASSporT"),
    sign_full: bool = typer.Option(False, "--sign-full", "-S", help="Build a full identity header"),
    json_parse: bool = typer.Option(False, "--json-parse", help="Parse header and payload JSON before signing"),
    ltest: bool = typer.Option(False, "--ltest", "-l", help="Run the local self-test"),
    version: bool = typer.Option(False, "--version", help="Print the version"),
    # checking
    expire: int = typer.Option(0, "--expire", help="Token expiry window in seconds (0 disables)"),
    timeout: int = typer.Option(DEFAULT_TIMEOUT, "--timeout", help="Certificate fetch timeout in seconds"),
    # certificate handling
    cache_dir: str = typer.Option("", "--cache-dir", help="Certificate cache directory"),
    cache_expire: int = typer.Option(DEFAULT_CACHE_EXPIRE, "--cache-expire", help="Certificate cache lifetime in seconds"),
    ca_file: str = typer.Option("", "--ca-file", help="CA certificates file"),
    ca_inter: str = typer.Option("", "--ca-inter", help="Intermediate CA certificates file"),
    crl_file: str = typer.Option("", "--crl-file", help="Certificate revocation list file"),
    cert_verify: int = typer.Option(0, "--cert-verify", help="Certificate verification bitmask"),
    verbosity: int = typer.Option(0, "--verbosity", "-vl", help="Verbosity level"),
) -> None:
    """Sign and check STIR/SHAKEN PASSporTs, or serve both over HTTP."""
    config = Config(
        http_srv=http_srv,
        https_srv=https_srv,
        https_pubkey=https_pubkey,
        https_prvkey=https_prvkey,
        http_dir=http_dir,
        fprvkey=fprvkey,
        fpubkey=fpubkey,
        header=header,
        fheader=fheader,
        payload=payload,
        fpayload=fpayload,
        identity=identity,
        fidentity=fidentity,
        alg=alg,
        ppt=ppt,
        typ=typ,
        x5u=x5u,
        attest=attest,
        dest_tn=dest_tn,
        orig_tn=orig_tn,
        iat=iat,
        orig_id=orig_id,
        check=check,
        sign=sign,
        sign_full=sign_full,
        json_parse=json_parse,
        ltest=ltest,
        version=version,
        expire=expire,
        timeout=timeout,
        cache_dir=cache_dir,
        cache_expire=cache_expire,
        ca_file=ca_file,
        ca_inter=ca_inter,
        crl_file=crl_file,
        cert_verify=cert_verify,
        verbosity=verbosity,
    )

    configure_logging(
        level=logging.getLevelName(logging.DEBUG if config.verbose else logging.WARNING),
        json_format=False,
    )

    raise typer.Exit(run(config))


if __name__ == "__main__":
    app()
