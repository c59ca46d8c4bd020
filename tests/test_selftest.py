# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the local self-test (stirshaken.selftest)."""

from __future__ import annotations

import json
from unittest.mock import patch

from stirshaken.selftest import TEST_ORIG_ID, run_local_test
from stirshaken.stir.exceptions import SignatureError


class TestRunLocalTest:

    def test_prints_result_payload_signature(self):
        lines = []
        assert run_local_test(echo=lines.append)

        assert [line.split(":", 1)[0] for line in lines] == ["Result", "Payload", "Signature"]
        payload = json.loads(lines[1].split(": ", 1)[1])
        assert payload["origid"] == TEST_ORIG_ID
        assert lines[0].split(": ", 1)[1].count(".") == 2

    def test_engine_failure_reported(self):
        lines = []
        with patch("stirshaken.selftest.encode", side_effect=SignatureError.failure("boom")):
            assert not run_local_test(echo=lines.append)
        assert lines[-1].startswith("error: ")
