# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the command line (stirshaken.cli)."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from stirshaken.cli import app
from stirshaken.config import VERSION, Config


runner = CliRunner()


def _captured_config(args):
    """Invoke the CLI with *args* and return the Config handed to the dispatcher."""
    seen = {}

    def fake_run(config):
        seen["config"] = config
        return 0

    with patch("stirshaken.cli.run", side_effect=fake_run):
        result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    return seen["config"]


class TestOptions:

    def test_defaults(self):
        assert _captured_config([]) == Config()

    def test_short_forms(self):
        config = _captured_config(
            ["-H", ":8088", "-k", "prv.pem", "-p", "pub.pem", "-a", "A", "-d", "2", "-o", "1",
             "-c", "-s", "-S", "-l", "-vl", "3"]
        )
        assert config.http_srv == ":8088"
        assert config.fprvkey == "prv.pem"
        assert config.fpubkey == "pub.pem"
        assert config.attest == "A"
        assert config.dest_tn == "2"
        assert config.orig_tn == "1"
        assert config.check and config.sign and config.sign_full and config.ltest
        assert config.verbosity == 3

    def test_long_forms(self):
        config = _captured_config(
            [
                "--https-srv", ":8443",
                "--https-pubkey", "cert.pem",
                "--https-prvkey", "key.pem",
                "--http-dir", "/srv/pub",
                "--fheader", "h.json",
                "--payload", "{}",
                "--fidentity", "id.txt",
                "--x5u", "https://x/c.pem",
                "--iat", "1700000000",
                "--orig-id", "abc",
                "--json-parse",
                "--expire", "60",
                "--timeout", "5",
                "--cache-dir", "/tmp/c",
                "--cache-expire", "120",
                "--ca-file", "ca.pem",
                "--ca-inter", "inter.pem",
                "--crl-file", "crl.pem",
                "--cert-verify", "31",
                "--version",
            ]
        )
        assert config.https_enabled
        assert config.http_dir == "/srv/pub"
        assert config.fheader == "h.json"
        assert config.payload == "{}"
        assert config.fidentity == "id.txt"
        assert config.iat == 1700000000
        assert config.json_parse and config.version
        assert (config.expire, config.timeout, config.cache_expire, config.cert_verify) == (60, 5, 120, 31)
        assert (config.ca_file, config.ca_inter, config.crl_file) == ("ca.pem", "inter.pem", "crl.pem")


class TestExitCodes:

    def test_help_banner(self):
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert f"stirshaken v{VERSION}" in result.output

    def test_version_exits_one(self):
        result = runner.invoke(app, ["--version", "--sign"])
        assert result.exit_code == 1
        assert f"stirshaken v{VERSION}" in result.output

    def test_sign_then_check(self, key_files):
        prv, pub = key_files
        signed = runner.invoke(app, ["-S", "-k", prv, "-o", "1", "-d", "2", "--x5u", "https://x/c.pem"])
        assert signed.exit_code == 0
        identity = signed.output.strip().splitlines()[-1]

        checked = runner.invoke(app, ["-c", "--identity", identity, "-p", pub])
        assert checked.exit_code == 0
        assert "ok" in checked.output.splitlines()

    @pytest.mark.parametrize("args", [["--sign"], ["--check"]])
    def test_input_errors_exit_minus_one(self, args):
        result = runner.invoke(app, args)
        assert result.exit_code == -1
