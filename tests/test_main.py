# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the HTTP service endpoints (stirshaken.main).

Covers ``POST /v1/check``, ``POST /v1/sign-csv`` and the optional
``/v1/pub`` static mount, plus the structured JSON log formatter.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from stirshaken.main import _JSONFormatter, create_app
from stirshaken.stir.exceptions import SignatureError
from stirshaken.stir.identity import get_identity
from stirshaken.stir.keys import load_public_key


CSV_BODY = "493055555555,493044444444,A,32c7e392-33fc-11ea-840b-784f435c76a8,https://example.org/cert.pem"


@pytest.fixture
def client(make_config, key_files):
    prv, pub = key_files
    return TestClient(create_app(make_config(http_srv=":8088", fprvkey=prv, fpubkey=pub)))


# =============================================================================
# POST /v1/sign-csv
# =============================================================================


class TestSignCSV:

    def test_valid_body(self, client):
        response = client.post("/v1/sign-csv", content=CSV_BODY)
        assert response.status_code == 200
        assert response.text.endswith("\n")
        token, _, params = response.text.strip().partition(";")
        assert token.count(".") == 2
        assert params == "info=<https://example.org/cert.pem>;alg=ES256;ppt=shaken"

    def test_too_few_fields(self, client):
        response = client.post("/v1/sign-csv", content="a,b,c")
        assert response.status_code == 400
        assert response.text == "too few tokens\n"

    def test_signing_error(self, make_config, tmp_path):
        app = create_app(make_config(http_srv=":8088", fprvkey=str(tmp_path / "missing.pem")))
        response = TestClient(app).post("/v1/sign-csv", content=CSV_BODY)
        assert response.status_code == 400
        assert response.text == "cannot build identity\n"

    def test_signed_identity_checks(self, client):
        identity = client.post("/v1/sign-csv", content=CSV_BODY).text
        response = client.post("/v1/check", content=identity)
        assert response.status_code == 200


# =============================================================================
# POST /v1/check
# =============================================================================


class TestCheck:

    def test_valid_identity(self, client, key_files):
        prv, _ = key_files
        identity = get_identity("1", "2", "A", "id", "https://example.org/cert.pem", prv)
        response = client.post("/v1/check", content=identity)
        assert response.status_code == 200
        assert response.text == "OK\n"

    def test_empty_body(self, client):
        with patch("stirshaken.stir.identity.check_full_identity") as check:
            response = client.post("/v1/check", content="")
        assert response.status_code == 400
        check.assert_not_called()

    def test_invalid_identity(self, client):
        response = client.post("/v1/check", content="not-a-token;info=<https://x>")
        assert response.status_code == 500
        assert response.text == "FAILED\n"

    def test_engine_error_maps_to_500(self, client):
        with patch(
            "stirshaken.stir.identity.check_full_identity",
            side_effect=SignatureError.invalid(),
        ):
            response = client.post("/v1/check", content="a.b.c")
        assert response.status_code == 500
        assert response.text == "FAILED\n"

    def test_unreadable_body(self, client):
        response = client.post("/v1/check", content=b"\xff\xfe\xfd")
        assert response.status_code == 400


class TestConcurrentRequests:
    """A slow identity check leaves other requests on the listener running."""

    @pytest.mark.asyncio
    async def test_slow_check_does_not_delay_sign_csv(self, make_config, key_files):
        prv, pub = key_files
        app = create_app(make_config(http_srv=":8088", fprvkey=prv, fpubkey=pub))
        identity = get_identity("1", "2", "A", "id", "https://example.org/cert.pem", prv)

        def slow_load(path):
            time.sleep(1.0)
            return load_public_key(path)

        async def timed(request):
            start = time.monotonic()
            response = await request
            return response, time.monotonic() - start

        transport = httpx.ASGITransport(app=app)
        with patch("stirshaken.stir.identity.load_public_key", side_effect=slow_load):
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                (checked, _), (signed, latency) = await asyncio.gather(
                    timed(http.post("/v1/check", content=identity)),
                    timed(http.post("/v1/sign-csv", content=CSV_BODY)),
                )

        assert checked.status_code == 200
        assert signed.status_code == 200
        assert latency < 0.5


# =============================================================================
# Static files
# =============================================================================


class TestStaticFiles:

    def test_served_under_prefix(self, make_config, tmp_path):
        (tmp_path / "cert.pem").write_text("PEM")
        client = TestClient(create_app(make_config(http_srv=":8088", http_dir=str(tmp_path))))
        response = client.get("/v1/pub/cert.pem")
        assert response.status_code == 200
        assert response.text == "PEM"

    def test_not_mounted_without_dir(self, client):
        assert client.get("/v1/pub/cert.pem").status_code == 404


# =============================================================================
# Logging
# =============================================================================


class TestJSONFormatter:

    def test_one_json_object_per_record(self):
        record = logging.LogRecord("stirshaken.main", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        entry = json.loads(_JSONFormatter().format(record))
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "stirshaken.main"
        assert "exception" not in entry
